"""Storage layer for async-settled.

This package provides:
- DocumentStore / StoreManager interfaces the ledger core depends on
- MongoDB implementation (Motor) with per-operator database routing
- In-memory implementation for paper mode and tests
"""

from ..config import Settings
from .base import DocumentStore, StoreManager
from .memory import InMemoryDocumentStore, InMemoryStoreManager
from .mongo import MongoDocumentStore, MongoStoreManager


def create_store_manager(settings: Settings) -> MongoStoreManager | InMemoryStoreManager:
    if settings.storage_backend == "memory":
        return InMemoryStoreManager(settings.ledger.settled_collection)
    return MongoStoreManager(settings.mongo, settings.ledger)


__all__ = [
    "DocumentStore",
    "StoreManager",
    "InMemoryDocumentStore",
    "InMemoryStoreManager",
    "MongoDocumentStore",
    "MongoStoreManager",
    "create_store_manager",
]
