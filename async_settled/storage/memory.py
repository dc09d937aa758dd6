"""In-process document store for paper mode and tests.

Mirrors the parts of MongoDB semantics the ledger relies on: unique compound
keys reject duplicate inserts, and match filters understand equality plus
simple comparison operators.
"""

import copy
import logging
import operator
from typing import Any, Callable, Iterable

from ..models import IDENTITY_FIELDS

logger = logging.getLogger(__name__)

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$lt": operator.lt,
    "$lte": operator.le,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$ne": operator.ne,
}


def _matches(document: dict[str, Any], match: dict[str, Any]) -> bool:
    for field, expected in match.items():
        value = document.get(field)
        if isinstance(expected, dict):
            for op, operand in expected.items():
                if op not in _OPERATORS:
                    raise ValueError(f"Unsupported match operator: {op}")
                if value is None or not _OPERATORS[op](value, operand):
                    return False
        elif value != expected:
            return False
    return True


class InMemoryDocumentStore:
    def __init__(self, unique_keys: dict[str, Iterable[str]] | None = None):
        self._collections: dict[str, list[dict[str, Any]]] = {}
        self._unique_keys = {
            name: tuple(fields) for name, fields in (unique_keys or {}).items()
        }

    def documents(self, collection: str) -> list[dict[str, Any]]:
        """Snapshot of every document in ``collection``."""
        return copy.deepcopy(self._collections.get(collection, []))

    async def insert(self, collection: str, document: dict[str, Any]) -> bool:
        rows = self._collections.setdefault(collection, [])
        key_fields = self._unique_keys.get(collection)
        if key_fields:
            key = {field: document.get(field) for field in key_fields}
            if any(_matches(row, key) for row in rows):
                logger.debug(f"Duplicate key on {collection}: {key}")
                return False
        rows.append(copy.deepcopy(document))
        return True

    async def update_conditional(
        self,
        collection: str,
        match: dict[str, Any],
        fields: dict[str, Any],
    ) -> bool:
        for row in self._collections.get(collection, []):
            if _matches(row, match):
                row.update(copy.deepcopy(fields))
                return True
        return False

    async def query_one(self, collection: str, match: dict[str, Any]) -> dict[str, Any] | None:
        for row in self._collections.get(collection, []):
            if _matches(row, match):
                return copy.deepcopy(row)
        return None


class InMemoryStoreManager:
    """One isolated store per operator plus a shared default store."""

    def __init__(self, settled_collection: str = "async_settled"):
        self._unique_keys = {settled_collection: IDENTITY_FIELDS}
        self._operators: dict[str, InMemoryDocumentStore] = {}
        self._default = InMemoryDocumentStore()

    def for_operator(self, op_code: str) -> InMemoryDocumentStore:
        if op_code not in self._operators:
            self._operators[op_code] = InMemoryDocumentStore(self._unique_keys)
        return self._operators[op_code]

    def default(self) -> InMemoryDocumentStore:
        return self._default

    async def close(self) -> None:
        self._operators.clear()
