"""
Typed repositories over the raw collections.

Documents are validated by their pydantic model on the way in and on the
way out; the model's ``id`` is stored as ``_id``.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from mediassist.db.base import DocumentCollection, DocumentStore, Query, Sort
from mediassist.models.documents import NoteDocument, TranscriptDocument, UserDocument

ModelT = TypeVar("ModelT", bound=BaseModel)


def to_store(model: BaseModel) -> Dict[str, Any]:
    data = model.model_dump()
    data["_id"] = data.pop("id")
    return data


def from_store(model_cls: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    data = dict(data)
    data["id"] = data.pop("_id")
    return model_cls.model_validate(data)


def _dump_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump_value(v) for v in value]
    return value


class Repository(Generic[ModelT]):
    model: Type[ModelT]

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def create(self, document: ModelT) -> ModelT:
        await self.collection.insert_one(to_store(document))
        return document

    async def get(self, document_id: str) -> Optional[ModelT]:
        data = await self.collection.find_one({"_id": document_id})
        return from_store(self.model, data) if data else None

    async def find_one(self, query: Query) -> Optional[ModelT]:
        data = await self.collection.find_one(query)
        return from_store(self.model, data) if data else None

    async def update(
        self,
        document_id: str,
        push: Optional[Dict[str, Any]] = None,
        touch: bool = True,
        where: Optional[Query] = None,
        **fields: Any,
    ) -> bool:
        """Set ``fields`` and append to the list fields named in ``push``.

        Values should come from an already validated document; only field
        names are checked here. ``touch=False`` leaves ``updated_at`` alone.
        ``where`` adds conditions the document must still meet; returns
        False when nothing matched.
        """
        for key in list(fields) + list(push or {}):
            if key not in self.model.model_fields:
                raise ValueError(f"{self.model.__name__} has no field '{key}'")
        if touch:
            fields["updated_at"] = datetime.utcnow()
        set_fields = {key: _dump_value(value) for key, value in fields.items()}
        push_fields = {key: _dump_value(value) for key, value in (push or {}).items()}
        query = {**(where or {}), "_id": document_id}
        return await self.collection.update_one(query, set_fields, push_fields)

    async def page(
        self,
        query: Query,
        page: int = 1,
        limit: int = 10,
        sort: Optional[Sort] = None,
    ) -> Tuple[List[ModelT], int]:
        page = max(page, 1)
        limit = max(limit, 1)
        rows = await self.collection.find(query, sort=sort, skip=(page - 1) * limit, limit=limit)
        total = await self.collection.count(query)
        return [from_store(self.model, row) for row in rows], total


class UserRepository(Repository[UserDocument]):
    model = UserDocument

    async def get_by_email(self, email: str) -> Optional[UserDocument]:
        return await self.find_one({"email": email.strip().lower()})


class TranscriptRepository(Repository[TranscriptDocument]):
    model = TranscriptDocument


class NoteRepository(Repository[NoteDocument]):
    model = NoteDocument


class Repositories:
    """The repositories a request works with, bound to one store."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.users = UserRepository(store.collection(UserDocument.Settings.name))
        self.transcripts = TranscriptRepository(store.collection(TranscriptDocument.Settings.name))
        self.notes = NoteRepository(store.collection(NoteDocument.Settings.name))
