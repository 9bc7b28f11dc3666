from typing import Any, Dict, List

from mediassist.config import Settings, StoreBackend
from mediassist.db.base import DocumentCollection, DocumentStore, DuplicateKeyError
from mediassist.db.memory import MemoryStore
from mediassist.db.repositories import Repositories
from mediassist.models.documents import NoteDocument, TranscriptDocument, UserDocument

DOCUMENT_MODELS = (UserDocument, TranscriptDocument, NoteDocument)


def index_specs() -> Dict[str, List[Dict[str, Any]]]:
    return {model.Settings.name: list(model.Settings.indexes) for model in DOCUMENT_MODELS}


def unique_fields() -> Dict[str, List[str]]:
    fields: Dict[str, List[str]] = {}
    for name, specs in index_specs().items():
        for spec in specs:
            if spec.get("unique") and len(spec["keys"]) == 1:
                fields.setdefault(name, []).append(spec["keys"][0][0])
    return fields


def create_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == StoreBackend.MEMORY:
        return MemoryStore(unique_fields=unique_fields())

    from mediassist.db.mongo import MongoStore
    return MongoStore(settings, index_specs())


__all__ = [
    "DocumentCollection",
    "DocumentStore",
    "DuplicateKeyError",
    "MemoryStore",
    "Repositories",
    "create_store",
    "index_specs",
]
