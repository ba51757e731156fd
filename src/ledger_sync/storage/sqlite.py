"""
SQLite database implementation for ledger storage.

This module provides the durable storage adapter:

- Blocks indexed by number, with a never-reused integer row id
- Transactions, receipts and logs owned by their block
- Token supply records referencing blocks by row id

Integers that may exceed 64 bits (wei values, difficulty, token supplies)
are stored as decimal text and converted back on read.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ledger_sync.containers import Block, Log, Receipt, TokenSupply, Transaction, normalize_hex
from ledger_sync.types import BackingStoreError, NotFoundError

from .database import BlockRecord
from .namespaces import ALL_NAMESPACES, BLOCKS, LOGS, RECEIPTS, TOKEN_SUPPLY, TRANSACTIONS

logger = logging.getLogger(__name__)


class SQLiteDatabase:
    """
    SQLite implementation of the Database protocol.

    Stores ledger data in a single SQLite file.

    One connection is shared by all callers. Every public method holds the
    connection lock for its whole duration, so a write is never interleaved
    with another caller's statements and is committed (or rolled back) as a
    unit before the lock is released.
    """

    def __init__(self, path: Path | str) -> None:
        """
        Initialize SQLite database.

        Creates database file and tables if they don't exist.

        Args:
            path: Path to SQLite database file.
                  Use ":memory:" for an in-memory database.

        Raises:
            BackingStoreError: If the file cannot be opened or initialized.
        """
        self._path = Path(path) if isinstance(path, str) else path
        self._lock = threading.RLock()

        try:
            # check_same_thread=False lets watchers running in worker threads
            # share this connection. The lock above serializes its use.
            self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row

            # Foreign keys are off by default in SQLite and must be enabled
            # per connection. Cascades and the token supply precondition
            # depend on them.
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._init_schema()
        except sqlite3.Error as exc:
            raise self._store_error("open", exc) from exc

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._conn:
            for namespace in ALL_NAMESPACES:
                self._conn.execute(namespace.CREATE_TABLE)
                create_index = getattr(namespace, "CREATE_INDEX", None)
                if create_index is not None:
                    self._conn.execute(create_index)

    @staticmethod
    def _store_error(
        operation: str,
        exc: sqlite3.Error | OverflowError,
        block_number: int | None = None,
    ) -> BackingStoreError:
        """Log a medium failure with its context and wrap it."""
        error = BackingStoreError(operation, str(exc), block_number=block_number)
        logger.error("%s (cause: %s)", error, type(exc).__name__)
        return error

    @contextmanager
    def _transaction(self, operation: str, block_number: int | None = None) -> Iterator[None]:
        """
        Run a unit of work under the connection lock.

        Commits on success, rolls back on any error. SQLite errors, and
        integers too large to bind as SQLite INTEGER, surface as
        BackingStoreError annotated with the operation and block number.
        """
        with self._lock:
            try:
                with self._conn:
                    yield
            except (sqlite3.Error, OverflowError) as exc:
                raise self._store_error(operation, exc, block_number) from exc

    # -------------------------------------------------------------------------
    # Block Operations
    # -------------------------------------------------------------------------

    def put_block(self, block: Block) -> int:
        """Insert or replace the block stored under its number."""
        with self._transaction("put_block", block.number):
            row = self._conn.execute(
                f"SELECT id FROM {BLOCKS.TABLE_NAME} WHERE number = ?",
                (block.number,),
            ).fetchone()

            if row is not None:
                # Same content: nothing to do, keep the id and the finality flag.
                existing = self._load_block(row["id"])
                if existing.matches(block):
                    return int(row["id"])

                # Different content is a replacement. The cascade removes the
                # transactions, receipts, logs and derived records of the old row.
                logger.info(
                    "Replacing block %d: %s -> %s", block.number, existing.hash, block.hash
                )
                self._conn.execute(f"DELETE FROM {BLOCKS.TABLE_NAME} WHERE id = ?", (row["id"],))

            return self._insert_block(block)

    def _insert_block(self, block: Block) -> int:
        """Insert a block and everything it owns. Caller holds the transaction."""
        cursor = self._conn.execute(
            f"""
            INSERT INTO {BLOCKS.TABLE_NAME} (
                number, hash, parent_hash, uncle_hash, nonce, time, gas_limit,
                gas_used, size, difficulty, miner, extra_data, is_final
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                block.number,
                block.hash,
                block.parent_hash,
                block.uncle_hash,
                block.nonce,
                block.time,
                block.gas_limit,
                block.gas_used,
                block.size,
                str(block.difficulty),
                block.miner,
                block.extra_data,
                int(block.is_final),
            ),
        )
        block_id = cursor.lastrowid
        assert block_id is not None

        for tx_index, tx in enumerate(block.transactions):
            tx_cursor = self._conn.execute(
                f"""
                INSERT INTO {TRANSACTIONS.TABLE_NAME} (
                    block_id, tx_index, hash, from_address, to_address, value,
                    gas_limit, gas_price, nonce, input_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    block_id,
                    tx_index,
                    tx.hash,
                    tx.from_address,
                    tx.to_address,
                    str(tx.value),
                    tx.gas_limit,
                    str(tx.gas_price),
                    tx.nonce,
                    tx.input_data,
                ),
            )
            if tx.receipt is not None:
                self._insert_receipt(tx.receipt, tx_cursor.lastrowid)

        return int(block_id)

    def _insert_receipt(self, receipt: Receipt, transaction_id: int | None) -> None:
        """Insert a receipt and its logs. Caller holds the transaction."""
        cursor = self._conn.execute(
            f"""
            INSERT INTO {RECEIPTS.TABLE_NAME} (
                transaction_id, tx_hash, contract_address, cumulative_gas_used,
                gas_used, state_root, status
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                transaction_id,
                receipt.tx_hash,
                receipt.contract_address,
                receipt.cumulative_gas_used,
                receipt.gas_used,
                receipt.state_root,
                receipt.status,
            ),
        )
        self._conn.executemany(
            f"""
            INSERT INTO {LOGS.TABLE_NAME} (
                receipt_id, block_number, tx_hash, log_index, address, topics, data
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    cursor.lastrowid,
                    log.block_number,
                    log.tx_hash,
                    log.log_index,
                    log.address,
                    json.dumps(list(log.topics)),
                    log.data,
                )
                for log in receipt.logs
            ],
        )

    def get_block(self, number: int) -> Block:
        """Retrieve a block by number."""
        return self.get_block_record(number).block

    def get_block_record(self, number: int) -> BlockRecord:
        """Retrieve a block together with its row id."""
        with self._transaction("get_block", number):
            row = self._conn.execute(
                f"SELECT id FROM {BLOCKS.TABLE_NAME} WHERE number = ?",
                (number,),
            ).fetchone()
            if row is None:
                raise NotFoundError(number)
            return BlockRecord(id=int(row["id"]), block=self._load_block(row["id"]))

    def _load_block(self, block_id: int) -> Block:
        """
        Rebuild a block and everything it owns from its row id.

        Uses three queries per block (block, transactions with receipts,
        logs) rather than one query per transaction.
        """
        row = self._conn.execute(
            f"SELECT * FROM {BLOCKS.TABLE_NAME} WHERE id = ?",
            (block_id,),
        ).fetchone()

        logs_by_receipt: dict[int, list[Log]] = defaultdict(list)
        for log_row in self._conn.execute(
            f"""
            SELECT l.* FROM {LOGS.TABLE_NAME} l
            JOIN {RECEIPTS.TABLE_NAME} r ON r.id = l.receipt_id
            JOIN {TRANSACTIONS.TABLE_NAME} t ON t.id = r.transaction_id
            WHERE t.block_id = ?
            ORDER BY l.receipt_id, l.id
            """,
            (block_id,),
        ):
            logs_by_receipt[log_row["receipt_id"]].append(
                Log(
                    block_number=log_row["block_number"],
                    tx_hash=log_row["tx_hash"],
                    log_index=log_row["log_index"],
                    address=log_row["address"],
                    topics=tuple(json.loads(log_row["topics"])),
                    data=log_row["data"],
                )
            )

        transactions = []
        for tx_row in self._conn.execute(
            f"""
            SELECT t.*, r.id AS receipt_id, r.tx_hash AS receipt_tx_hash,
                   r.contract_address, r.cumulative_gas_used,
                   r.gas_used AS receipt_gas_used, r.state_root, r.status
            FROM {TRANSACTIONS.TABLE_NAME} t
            LEFT JOIN {RECEIPTS.TABLE_NAME} r ON r.transaction_id = t.id
            WHERE t.block_id = ?
            ORDER BY t.tx_index
            """,
            (block_id,),
        ):
            receipt = None
            if tx_row["receipt_id"] is not None:
                receipt = Receipt(
                    tx_hash=tx_row["receipt_tx_hash"],
                    contract_address=tx_row["contract_address"],
                    cumulative_gas_used=tx_row["cumulative_gas_used"],
                    gas_used=tx_row["receipt_gas_used"],
                    state_root=tx_row["state_root"],
                    status=tx_row["status"],
                    logs=tuple(logs_by_receipt.get(tx_row["receipt_id"], ())),
                )
            transactions.append(
                Transaction(
                    hash=tx_row["hash"],
                    from_address=tx_row["from_address"],
                    to_address=tx_row["to_address"],
                    value=int(tx_row["value"]),
                    gas_limit=tx_row["gas_limit"],
                    gas_price=int(tx_row["gas_price"]),
                    nonce=tx_row["nonce"],
                    input_data=tx_row["input_data"],
                    receipt=receipt,
                )
            )

        return Block(
            number=row["number"],
            hash=row["hash"],
            parent_hash=row["parent_hash"],
            uncle_hash=row["uncle_hash"],
            nonce=row["nonce"],
            time=row["time"],
            gas_limit=row["gas_limit"],
            gas_used=row["gas_used"],
            size=row["size"],
            difficulty=int(row["difficulty"]),
            miner=row["miner"],
            extra_data=row["extra_data"],
            transactions=tuple(transactions),
            is_final=bool(row["is_final"]),
        )

    def has_block(self, number: int) -> bool:
        """Check if a block is stored under that number."""
        with self._transaction("has_block", number):
            row = self._conn.execute(
                f"SELECT 1 FROM {BLOCKS.TABLE_NAME} WHERE number = ?",
                (number,),
            ).fetchone()
            return row is not None

    def missing_block_numbers(self, start: int, end: int, limit: int) -> list[int]:
        """List numbers in [start, end] without a stored block, ascending."""
        missing: list[int] = []
        if start > end or limit <= 0:
            return missing

        with self._transaction("missing_block_numbers", start):
            # Walk the stored numbers in index order and emit the holes
            # between them. Stops as soon as the page is full, so a mostly
            # complete range costs one index scan up to the first `limit` gaps.
            expected = start
            cursor = self._conn.execute(
                f"""
                SELECT number FROM {BLOCKS.TABLE_NAME}
                WHERE number BETWEEN ? AND ?
                ORDER BY number
                """,
                (start, end),
            )
            for row in cursor:
                stored = row["number"]
                while expected < stored and len(missing) < limit:
                    missing.append(expected)
                    expected += 1
                if len(missing) >= limit:
                    return missing
                expected = stored + 1

            while expected <= end and len(missing) < limit:
                missing.append(expected)
                expected += 1

        return missing

    def set_final_below(self, head: int, window: int) -> int:
        """Mark every stored block with number <= head - window as final."""
        with self._transaction("set_final_below", head):
            cursor = self._conn.execute(
                f"UPDATE {BLOCKS.TABLE_NAME} SET is_final = 1 WHERE is_final = 0 AND number <= ?",
                (head - window,),
            )
            return cursor.rowcount

    def block_count(self) -> int:
        """Total number of stored blocks."""
        with self._transaction("block_count"):
            row = self._conn.execute(f"SELECT COUNT(*) AS n FROM {BLOCKS.TABLE_NAME}").fetchone()
            return int(row["n"])

    # -------------------------------------------------------------------------
    # Token Supply Operations
    # -------------------------------------------------------------------------

    def put_token_supply(self, supply: TokenSupply, block_id: int) -> int:
        """Append a token supply record for the block with the given row id."""
        with self._transaction("put_token_supply", supply.block_number):
            # The foreign key rejects ids of blocks that were never stored or
            # have been replaced since the caller looked them up.
            cursor = self._conn.execute(
                f"""
                INSERT INTO {TOKEN_SUPPLY.TABLE_NAME} (block_id, token_address, supply)
                VALUES (?, ?, ?)
                """,
                (block_id, supply.token_address, str(supply.value)),
            )
            assert cursor.lastrowid is not None
            return int(cursor.lastrowid)

    def get_token_supplies(
        self,
        token_address: str,
        block_number: int | None = None,
    ) -> list[TokenSupply]:
        """Retrieve records for a token in insertion order."""
        query = f"""
            SELECT t.token_address, b.number, t.supply
            FROM {TOKEN_SUPPLY.TABLE_NAME} t
            JOIN {BLOCKS.TABLE_NAME} b ON b.id = t.block_id
            WHERE t.token_address = ?
        """
        params: tuple[object, ...] = (normalize_hex(token_address),)
        if block_number is not None:
            query += " AND b.number = ?"
            params += (block_number,)
        query += " ORDER BY t.id"

        with self._transaction("get_token_supplies", block_number):
            return [
                TokenSupply(
                    token_address=row["token_address"],
                    block_number=row["number"],
                    value=int(row["supply"]),
                )
                for row in self._conn.execute(query, params)
            ]

    def token_supply_count(self, token_address: str | None = None) -> int:
        """Number of records, for one token or across all tokens."""
        with self._transaction("token_supply_count"):
            if token_address is None:
                row = self._conn.execute(
                    f"SELECT COUNT(*) AS n FROM {TOKEN_SUPPLY.TABLE_NAME}"
                ).fetchone()
            else:
                row = self._conn.execute(
                    f"SELECT COUNT(*) AS n FROM {TOKEN_SUPPLY.TABLE_NAME} WHERE token_address = ?",
                    (normalize_hex(token_address),),
                ).fetchone()
            return int(row["n"])

    def missing_token_supply_blocks(
        self,
        token_address: str,
        start: int,
        end: int,
        limit: int,
    ) -> list[int]:
        """List stored blocks in [start, end] without a record for the token."""
        if start > end or limit <= 0:
            return []

        with self._transaction("missing_token_supply_blocks", start):
            return [
                row["number"]
                for row in self._conn.execute(
                    f"""
                    SELECT b.number FROM {BLOCKS.TABLE_NAME} b
                    WHERE b.number BETWEEN ? AND ?
                    AND NOT EXISTS (
                        SELECT 1 FROM {TOKEN_SUPPLY.TABLE_NAME} t
                        WHERE t.block_id = b.id AND t.token_address = ?
                    )
                    ORDER BY b.number
                    LIMIT ?
                    """,
                    (start, end, normalize_hex(token_address), limit),
                )
            ]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> SQLiteDatabase:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
