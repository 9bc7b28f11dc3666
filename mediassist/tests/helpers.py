"""
Shared test data and request helpers
"""

import httpx

from mediassist.services.nlp_service import NLPService
from mediassist.services.stt_service import STTService
from mediassist.services.tts_service import tone_wav

SOAP_OUTPUT = (
    "SUBJECTIVE: Patient reports chest pain for two days, worse on exertion.\n"
    "OBJECTIVE: BP 150/90 mmHg, HR 88 bpm. Chest wall tender to palpation.\n"
    "ASSESSMENT: Musculoskeletal chest pain. Hypertension noted as a diagnosis.\n"
    "PLAN: Ibuprofen 600mg q6h PRN. Follow-up in one week for treatment review."
)

CHEST_PAIN_TRANSCRIPT = (
    "Doctor: What brings you in today? Patient: I have had chest pain since this morning. "
    "I take lisinopril for my blood pressure."
)


def json_transport(payload, status_code=200):
    """Mock inference endpoint answering every request with the same JSON"""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


def auth_header(token: str):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, role, name="Test User", password="secret123"):
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "role": role},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"], body["access_token"]


def use_stt(client, payload, status_code=200):
    service = STTService(transport=json_transport(payload, status_code))
    service.api_key = "test-key"
    client.app.state.stt_service = service
    return service


def use_nlp(client, payload, status_code=200):
    service = NLPService(transport=json_transport(payload, status_code))
    service.api_key = "test-key"
    client.app.state.nlp_service = service
    return service


def upload(client, token, patient_name="Jane Doe", patient_id=None, language="en",
           audio=None, content_type="audio/wav"):
    data = {"patientName": patient_name, "language": language}
    if patient_id:
        data["patientId"] = patient_id
    return client.post(
        "/api/upload-audio",
        headers=auth_header(token),
        files={"audio": ("visit.wav", audio if audio is not None else tone_wav(20), content_type)},
        data=data,
    )
