"""
In-process document store used for tests and local runs without MongoDB.
"""

import copy
import re
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple

from mediassist.db.base import DocumentCollection, DocumentStore, DuplicateKeyError, Query, Sort
from mediassist.core.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()


def _get_path(document: Dict[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _match_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict) or not any(str(k).startswith("$") for k in condition):
        return value is not _MISSING and value == condition

    for op, operand in condition.items():
        if op == "$options":
            continue
        if op == "$in":
            if value is _MISSING or value not in operand:
                return False
        elif op == "$ne":
            if value is not _MISSING and value == operand:
                return False
        elif op in ("$gte", "$lte", "$gt", "$lt"):
            if value is _MISSING or value is None:
                return False
            if op == "$gte" and not value >= operand:
                return False
            if op == "$lte" and not value <= operand:
                return False
            if op == "$gt" and not value > operand:
                return False
            if op == "$lt" and not value < operand:
                return False
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(operand, value, flags):
                return False
        else:
            raise ValueError(f"Unsupported query operator: {op}")
    return True


def matches(document: Dict[str, Any], query: Query) -> bool:
    return all(_match_condition(_get_path(document, key), cond) for key, cond in query.items())


class MemoryCollection(DocumentCollection):
    def __init__(self, name: str, unique_fields: Sequence[str] = ()):
        self.name = name
        self._unique_fields = tuple(unique_fields)
        self._lock = RLock()
        self._documents: Dict[str, Dict[str, Any]] = {}

    def _check_unique(self, document: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for field in self._unique_fields:
            value = _get_path(document, field)
            if value is _MISSING:
                continue
            for doc_id, existing in self._documents.items():
                if doc_id != exclude_id and _get_path(existing, field) == value:
                    raise DuplicateKeyError(f"Duplicate value for {self.name}.{field}")

    async def insert_one(self, document: Dict[str, Any]) -> str:
        with self._lock:
            doc_id = document["_id"]
            if doc_id in self._documents:
                raise DuplicateKeyError(f"Duplicate id in {self.name}: {doc_id}")
            self._check_unique(document)
            self._documents[doc_id] = copy.deepcopy(document)
            return doc_id

    async def find_one(self, query: Query) -> Optional[Dict[str, Any]]:
        with self._lock:
            for document in self._documents.values():
                if matches(document, query):
                    return copy.deepcopy(document)
        return None

    async def find(
        self,
        query: Query,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            results = [copy.deepcopy(d) for d in self._documents.values() if matches(d, query)]

        # Stable multi-key sort: apply keys last to first
        for field, direction in reversed(list(sort or [])):
            results.sort(
                key=lambda d: (_get_path(d, field) is _MISSING, _sort_key(_get_path(d, field))),
                reverse=direction < 0,
            )
        if skip:
            results = results[skip:]
        if limit:
            results = results[:limit]
        return results

    async def count(self, query: Query) -> int:
        with self._lock:
            return sum(1 for d in self._documents.values() if matches(d, query))

    async def update_one(
        self,
        query: Query,
        set_fields: Optional[Dict[str, Any]] = None,
        push: Optional[Dict[str, Any]] = None,
    ) -> bool:
        with self._lock:
            for doc_id, document in self._documents.items():
                if not matches(document, query):
                    continue
                updated = copy.deepcopy(document)
                for key, value in (set_fields or {}).items():
                    updated[key] = copy.deepcopy(value)
                for key, value in (push or {}).items():
                    updated.setdefault(key, []).append(copy.deepcopy(value))
                self._check_unique(updated, exclude_id=doc_id)
                self._documents[doc_id] = updated
                return True
        return False


def _sort_key(value: Any) -> Tuple[int, Any]:
    if value is _MISSING or value is None:
        return (0, 0)
    return (1, value)


class MemoryStore(DocumentStore):
    def __init__(self, unique_fields: Optional[Dict[str, Sequence[str]]] = None):
        self._unique_fields = unique_fields or {}
        self._collections: Dict[str, MemoryCollection] = {}

    def collection(self, name: str) -> MemoryCollection:
        if name not in self._collections:
            self._collections[name] = MemoryCollection(name, self._unique_fields.get(name, ()))
        return self._collections[name]

    async def connect(self) -> None:
        logger.info("Using in-process document store", collections=sorted(self._unique_fields))

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._collections.clear()
