"""
Storage module for ledger data.

Provides the storage Protocols and two conforming adapters: a durable one on
SQLite and a volatile in-memory one for tests and short-lived caches.
"""

from .database import BlockRecord, BlockRepository, Database, TokenSupplyRepository
from .memory import InMemoryDatabase
from .namespaces import (
    BlockNamespace,
    LogNamespace,
    ReceiptNamespace,
    TokenSupplyNamespace,
    TransactionNamespace,
)
from .sqlite import SQLiteDatabase

__all__ = [
    "BlockRecord",
    "BlockRepository",
    "Database",
    "InMemoryDatabase",
    "SQLiteDatabase",
    "TokenSupplyRepository",
    "BlockNamespace",
    "TransactionNamespace",
    "ReceiptNamespace",
    "LogNamespace",
    "TokenSupplyNamespace",
]
