import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["STORE_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "testing"
os.environ["HUGGINGFACE_API_KEY"] = ""
os.environ["TTS_API_URL"] = ""
os.environ["NOTE_GENERATION_MODE"] = "inline"

import pytest
from fastapi.testclient import TestClient

from mediassist.main import app
from mediassist.tests.helpers import (
    CHEST_PAIN_TRANSCRIPT,
    SOAP_OUTPUT,
    auth_header,
    register,
    upload,
    use_nlp,
    use_stt,
)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def doctor(client):
    user, token = register(client, "doctor@example.com", "doctor", name="Dr. Ada Grey")
    return {"user": user, "token": token, "headers": auth_header(token)}


@pytest.fixture
def other_doctor(client):
    user, token = register(client, "other.doctor@example.com", "doctor", name="Dr. Bo Lind")
    return {"user": user, "token": token, "headers": auth_header(token)}


@pytest.fixture
def patient(client):
    user, token = register(client, "patient@example.com", "patient", name="Jane Doe")
    return {"user": user, "token": token, "headers": auth_header(token)}


@pytest.fixture
def generated_note(client, doctor, patient):
    """A pending note for ``patient``, produced by a full upload"""
    use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT, "confidence": 0.93})
    use_nlp(client, [{"generated_text": SOAP_OUTPUT}])
    response = upload(client, doctor["token"], patient_id=patient["user"]["id"])
    assert response.status_code == 200, response.text
    note_id = response.json()["note_id"]
    assert note_id
    return client.get(f"/api/notes/{note_id}", headers=doctor["headers"]).json()["note"]
