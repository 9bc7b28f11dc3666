"""
Store interfaces shared by the MongoDB and in-process backends.

Queries use the MongoDB filter syntax; both backends support the same
subset: equality, ``$in``, ``$ne``, ``$gte``/``$lte``/``$gt``/``$lt`` and
``$regex`` with ``$options: "i"``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

Query = Dict[str, Any]
Sort = Sequence[Tuple[str, int]]


class DuplicateKeyError(Exception):
    """A unique index rejected the write."""


class DocumentCollection(ABC):
    name: str

    @abstractmethod
    async def insert_one(self, document: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def find_one(self, query: Query) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def find(
        self,
        query: Query,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, query: Query) -> int:
        ...

    @abstractmethod
    async def update_one(
        self,
        query: Query,
        set_fields: Optional[Dict[str, Any]] = None,
        push: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Apply ``$set`` and ``$push`` to the first match; False when nothing matched."""


class DocumentStore(ABC):
    """A named set of collections plus lifecycle hooks."""

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection:
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Verify connectivity and create declared indexes."""

    @abstractmethod
    async def ping(self) -> bool:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
