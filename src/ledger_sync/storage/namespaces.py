"""
Table definitions for the relational storage adapter.

Each namespace groups a table name with its schema. Blocks own their
transactions, a transaction owns its receipt, and a receipt owns its logs.
Token supply records reference blocks. Every ownership edge is a foreign
key with ON DELETE CASCADE, so removing a block removes everything below it.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BlockNamespace:
    """
    Namespace for block storage.

    The row id is AUTOINCREMENT so ids are never handed out twice, even after
    the block holding the highest id is replaced.
    """

    TABLE_NAME: str = "blocks"
    """Table name for block storage."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS blocks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            number INTEGER NOT NULL UNIQUE,
            hash TEXT NOT NULL,
            parent_hash TEXT NOT NULL,
            uncle_hash TEXT,
            nonce TEXT,
            time INTEGER NOT NULL,
            gas_limit INTEGER NOT NULL,
            gas_used INTEGER NOT NULL,
            size INTEGER NOT NULL,
            difficulty TEXT NOT NULL,
            miner TEXT,
            extra_data TEXT NOT NULL,
            is_final INTEGER NOT NULL DEFAULT 0
        )
    """
    """SQL to create blocks table. Difficulty is decimal text (may exceed 64 bits)."""

    CREATE_INDEX: str = """
        CREATE INDEX IF NOT EXISTS idx_blocks_final ON blocks(is_final, number)
    """
    """SQL to create the finality index used by the bulk finalize update."""


@dataclass(frozen=True, slots=True)
class TransactionNamespace:
    """Namespace for transactions, ordered within a block by `tx_index`."""

    TABLE_NAME: str = "transactions"
    """Table name for transaction storage."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            block_id INTEGER NOT NULL REFERENCES blocks(id) ON DELETE CASCADE,
            tx_index INTEGER NOT NULL,
            hash TEXT NOT NULL,
            from_address TEXT,
            to_address TEXT,
            value TEXT NOT NULL,
            gas_limit INTEGER NOT NULL,
            gas_price TEXT NOT NULL,
            nonce INTEGER NOT NULL,
            input_data TEXT NOT NULL
        )
    """
    """SQL to create transactions table. Value and gas price are decimal text."""

    CREATE_INDEX: str = """
        CREATE INDEX IF NOT EXISTS idx_transactions_block ON transactions(block_id, tx_index)
    """
    """SQL to create the per-block transaction index."""


@dataclass(frozen=True, slots=True)
class ReceiptNamespace:
    """Namespace for receipts. At most one per transaction."""

    TABLE_NAME: str = "receipts"
    """Table name for receipt storage."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS receipts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            transaction_id INTEGER NOT NULL UNIQUE
                REFERENCES transactions(id) ON DELETE CASCADE,
            tx_hash TEXT NOT NULL,
            contract_address TEXT,
            cumulative_gas_used INTEGER NOT NULL,
            gas_used INTEGER NOT NULL,
            state_root TEXT,
            status INTEGER
        )
    """
    """SQL to create receipts table."""


@dataclass(frozen=True, slots=True)
class LogNamespace:
    """Namespace for logs. Topics are stored as a JSON array."""

    TABLE_NAME: str = "logs"
    """Table name for log storage."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            receipt_id INTEGER NOT NULL REFERENCES receipts(id) ON DELETE CASCADE,
            block_number INTEGER NOT NULL,
            tx_hash TEXT NOT NULL,
            log_index INTEGER NOT NULL,
            address TEXT NOT NULL,
            topics TEXT NOT NULL,
            data TEXT NOT NULL
        )
    """
    """SQL to create logs table."""

    CREATE_INDEX: str = """
        CREATE INDEX IF NOT EXISTS idx_logs_receipt ON logs(receipt_id, log_index)
    """
    """SQL to create the per-receipt log index."""


@dataclass(frozen=True, slots=True)
class TokenSupplyNamespace:
    """Namespace for token supply records, append-only."""

    TABLE_NAME: str = "token_supply"
    """Table name for token supply storage."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS token_supply (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            block_id INTEGER NOT NULL REFERENCES blocks(id) ON DELETE CASCADE,
            token_address TEXT NOT NULL,
            supply TEXT NOT NULL
        )
    """
    """SQL to create token supply table. Supply is decimal text (uint256)."""

    CREATE_INDEX: str = """
        CREATE INDEX IF NOT EXISTS idx_token_supply_token ON token_supply(token_address, block_id)
    """
    """SQL to create the per-token lookup index."""


# Singleton instances for convenient access
BLOCKS = BlockNamespace()
TRANSACTIONS = TransactionNamespace()
RECEIPTS = ReceiptNamespace()
LOGS = LogNamespace()
TOKEN_SUPPLY = TokenSupplyNamespace()

ALL_NAMESPACES = [BLOCKS, TRANSACTIONS, RECEIPTS, LOGS, TOKEN_SUPPLY]
"""All namespace definitions, in foreign key order, for schema initialization."""
