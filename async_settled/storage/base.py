"""Document store interfaces consumed by the ledger core."""

from typing import Any, Protocol


class DocumentStore(Protocol):
    """Minimal schemaless document store.

    ``match`` maps field names to either a literal (equality) or an operator
    dict such as ``{"$lt": 1700000000000}``.
    """

    async def insert(self, collection: str, document: dict[str, Any]) -> bool:
        """Insert one document. False when it collides with a unique key."""
        ...

    async def update_conditional(
        self,
        collection: str,
        match: dict[str, Any],
        fields: dict[str, Any],
    ) -> bool:
        """Overwrite ``fields`` on the document matching ``match``.

        True only if a document matched.
        """
        ...

    async def query_one(self, collection: str, match: dict[str, Any]) -> dict[str, Any] | None:
        ...


class StoreManager(Protocol):
    """Routes operators to their own store and exposes the shared one."""

    def for_operator(self, op_code: str) -> DocumentStore: ...

    def default(self) -> DocumentStore: ...

    async def close(self) -> None: ...
