import asyncio
from datetime import datetime

import pytest

from mediassist.db import DuplicateKeyError, MemoryStore, Repositories
from mediassist.db.memory import matches
from mediassist.models.documents import TranscriptDocument, UserDocument


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def repos():
    return Repositories(MemoryStore(unique_fields={"users": ["email"]}))


def transcript(**overrides):
    fields = dict(
        audio_file_id="audio_1",
        doctor_id="doc-1",
        patient_name="Jane Doe",
        session_id="session_1_doc-1",
    )
    fields.update(overrides)
    return TranscriptDocument(**fields)


def test_query_operators():
    document = {"status": "completed", "name": "Jane Doe", "score": 5, "meta": {"lang": "en"}}
    assert matches(document, {"status": {"$in": ["completed", "failed"]}})
    assert matches(document, {"status": {"$ne": "failed"}})
    assert matches(document, {"score": {"$gte": 5, "$lt": 6}})
    assert matches(document, {"name": {"$regex": "jane", "$options": "i"}})
    assert not matches(document, {"name": {"$regex": "jane"}})
    assert matches(document, {"meta.lang": "en"})
    assert not matches(document, {"missing": None})
    with pytest.raises(ValueError):
        matches(document, {"score": {"$exists": True}})


def test_unique_email(repos):
    run(repos.users.create(UserDocument(name="A", email="a@example.com", password_hash="x", role="doctor")))
    with pytest.raises(DuplicateKeyError):
        run(repos.users.create(UserDocument(name="B", email="a@example.com", password_hash="y", role="patient")))


def test_page_sorts_and_counts(repos):
    for day in (3, 1, 2):
        run(repos.transcripts.create(transcript(created_at=datetime(2024, 1, day))))
    run(repos.transcripts.create(transcript(doctor_id="doc-2")))

    items, total = run(repos.transcripts.page({"doctor_id": "doc-1"}, page=1, limit=2, sort=[("created_at", -1)]))
    assert total == 3
    assert [item.created_at.day for item in items] == [3, 2]

    rest, _ = run(repos.transcripts.page({"doctor_id": "doc-1"}, page=2, limit=2, sort=[("created_at", -1)]))
    assert [item.created_at.day for item in rest] == [1]


def test_update_sets_and_pushes(repos):
    doc = run(repos.transcripts.create(transcript()))
    assert run(repos.transcripts.update(doc.id, status="completed", text="hello"))

    stored = run(repos.transcripts.get(doc.id))
    assert stored.status == "completed"
    assert stored.text == "hello"
    assert stored.updated_at >= doc.updated_at

    assert not run(repos.transcripts.update("missing", text="x"))


def test_update_rejects_unknown_fields(repos):
    doc = run(repos.transcripts.create(transcript()))
    with pytest.raises(ValueError):
        run(repos.transcripts.update(doc.id, colour="blue"))


def test_returned_documents_are_copies(repos):
    doc = run(repos.transcripts.create(transcript()))
    raw = run(repos.store.collection("transcripts").find_one({"_id": doc.id}))
    raw["text"] = "mutated"
    assert run(repos.transcripts.get(doc.id)).text == ""


def test_update_with_where_condition(repos):
    doc = run(repos.transcripts.create(transcript()))
    assert not run(repos.transcripts.update(doc.id, where={"status": "completed"}, text="skipped"))
    assert run(repos.transcripts.get(doc.id)).text == ""

    assert run(repos.transcripts.update(doc.id, where={"status": {"$ne": "completed"}}, text="applied"))
    assert run(repos.transcripts.get(doc.id)).text == "applied"
