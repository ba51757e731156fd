"""
Volatile in-process implementation of the Database protocol.

Used by tests and short-lived caches. Observable behavior matches the SQLite
adapter exactly: row ids are never reused, replacing a block drops its
derived records, and derived records cannot reference unknown blocks.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from ledger_sync.containers import MAX_QUANTITY, Block, TokenSupply, normalize_hex
from ledger_sync.types import BackingStoreError, NotFoundError

from .database import BlockRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _SupplyRow:
    """A stored token supply record and the block row it references."""

    id: int
    block_id: int
    supply: TokenSupply


class InMemoryDatabase:
    """
    In-memory implementation of the Database protocol.

    Locking
    -------
    Writers to the same block number serialize on a per-number lock, so the
    last writer wins and no write is merged with another. Writers to
    different numbers only share a short structural lock held while a dict
    is updated, never while content is compared.

    Stored models are frozen pydantic models, so handing them out does not
    expose mutable state.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._blocks: dict[int, BlockRecord] = {}
        """Stored blocks keyed by number."""

        self._numbers_by_id: dict[int, int] = {}
        """Block row id to block number, for derived record foreign keys."""

        self._supplies: dict[int, _SupplyRow] = {}
        """Token supply records keyed by row id, in insertion order."""

        self._block_ids = itertools.count(1)
        self._supply_ids = itertools.count(1)

        self._lock = threading.Lock()
        """Structural lock guarding the dicts and id counters."""

        self._number_locks: dict[int, threading.Lock] = {}
        """Per-number write locks, created on first use."""

        self._closed = False

    def _check_open(self, operation: str, block_number: int | None = None) -> None:
        """Fail like an unreachable medium once closed."""
        if self._closed:
            error = BackingStoreError(operation, "database is closed", block_number=block_number)
            logger.error("%s", error)
            raise error

    def _check_range(self, operation: str, *values: int, block_number: int | None = None) -> None:
        """Reject query numbers a 64-bit storage integer cannot hold."""
        for value in values:
            if not -MAX_QUANTITY - 1 <= value <= MAX_QUANTITY:
                error = BackingStoreError(
                    operation, f"integer {value} out of storage range", block_number=block_number
                )
                logger.error("%s", error)
                raise error

    @contextmanager
    def _number_lock(self, number: int) -> Iterator[None]:
        """Serialize writers of one block number."""
        with self._lock:
            lock = self._number_locks.setdefault(number, threading.Lock())
        with lock:
            yield

    # -------------------------------------------------------------------------
    # Block Operations
    # -------------------------------------------------------------------------

    def put_block(self, block: Block) -> int:
        """Insert or replace the block stored under its number."""
        self._check_open("put_block", block.number)

        with self._number_lock(block.number):
            existing = self._blocks.get(block.number)
            if existing is not None and existing.block.matches(block):
                return existing.id

            with self._lock:
                if existing is not None:
                    logger.info(
                        "Replacing block %d: %s -> %s",
                        block.number,
                        existing.block.hash,
                        block.hash,
                    )
                    self._drop_block(existing.id)

                record = BlockRecord(id=next(self._block_ids), block=block)
                self._blocks[block.number] = record
                self._numbers_by_id[record.id] = block.number
                return record.id

    def _drop_block(self, block_id: int) -> None:
        """Remove a block row and cascade to its records. Caller holds the lock."""
        del self._numbers_by_id[block_id]
        for row_id in [r.id for r in self._supplies.values() if r.block_id == block_id]:
            del self._supplies[row_id]

    def get_block(self, number: int) -> Block:
        """Retrieve a block by number."""
        return self.get_block_record(number).block

    def get_block_record(self, number: int) -> BlockRecord:
        """Retrieve a block together with its row id."""
        self._check_open("get_block", number)
        self._check_range("get_block", number, block_number=number)
        record = self._blocks.get(number)
        if record is None:
            raise NotFoundError(number)
        return record

    def has_block(self, number: int) -> bool:
        """Check if a block is stored under that number."""
        self._check_open("has_block", number)
        self._check_range("has_block", number, block_number=number)
        return number in self._blocks

    def missing_block_numbers(self, start: int, end: int, limit: int) -> list[int]:
        """List numbers in [start, end] without a stored block, ascending."""
        self._check_open("missing_block_numbers", start)
        missing: list[int] = []
        if start > end or limit <= 0:
            return missing
        self._check_range("missing_block_numbers", start, end, block_number=start)
        number = start
        while number <= end and len(missing) < limit:
            if number not in self._blocks:
                missing.append(number)
            number += 1
        return missing

    def set_final_below(self, head: int, window: int) -> int:
        """Mark every stored block with number <= head - window as final."""
        self._check_open("set_final_below", head)
        boundary = head - window
        self._check_range("set_final_below", boundary, block_number=head)
        changed = 0
        with self._lock:
            for number, record in list(self._blocks.items()):
                if number <= boundary and not record.block.is_final:
                    self._blocks[number] = BlockRecord(id=record.id, block=record.block.finalized())
                    changed += 1
        return changed

    def block_count(self) -> int:
        """Total number of stored blocks."""
        self._check_open("block_count")
        return len(self._blocks)

    # -------------------------------------------------------------------------
    # Token Supply Operations
    # -------------------------------------------------------------------------

    def put_token_supply(self, supply: TokenSupply, block_id: int) -> int:
        """Append a token supply record for the block with the given row id."""
        self._check_open("put_token_supply", supply.block_number)
        with self._lock:
            if block_id not in self._numbers_by_id:
                error = BackingStoreError(
                    "put_token_supply",
                    f"block id {block_id} does not exist",
                    block_number=supply.block_number,
                )
                logger.error("%s", error)
                raise error

            row = _SupplyRow(id=next(self._supply_ids), block_id=block_id, supply=supply)
            self._supplies[row.id] = row
            return row.id

    def get_token_supplies(
        self,
        token_address: str,
        block_number: int | None = None,
    ) -> list[TokenSupply]:
        """Retrieve records for a token in insertion order."""
        self._check_open("get_token_supplies", block_number)
        if block_number is not None:
            self._check_range("get_token_supplies", block_number, block_number=block_number)
        address = normalize_hex(token_address)
        with self._lock:
            rows = list(self._supplies.values())
        return [
            row.supply
            for row in rows
            if row.supply.token_address == address
            and (block_number is None or self._numbers_by_id.get(row.block_id) == block_number)
        ]

    def token_supply_count(self, token_address: str | None = None) -> int:
        """Number of records, for one token or across all tokens."""
        self._check_open("token_supply_count")
        if token_address is None:
            return len(self._supplies)
        address = normalize_hex(token_address)
        with self._lock:
            return sum(1 for row in self._supplies.values() if row.supply.token_address == address)

    def missing_token_supply_blocks(
        self,
        token_address: str,
        start: int,
        end: int,
        limit: int,
    ) -> list[int]:
        """List stored blocks in [start, end] without a record for the token."""
        self._check_open("missing_token_supply_blocks", start)
        if start > end or limit <= 0:
            return []

        self._check_range("missing_token_supply_blocks", start, end, limit, block_number=start)
        address = normalize_hex(token_address)
        with self._lock:
            covered = {
                row.block_id
                for row in self._supplies.values()
                if row.supply.token_address == address
            }
            candidates = sorted(
                number
                for number, record in self._blocks.items()
                if start <= number <= end and record.id not in covered
            )
        return candidates[:limit]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Drop all data. Later calls fail with BackingStoreError."""
        with self._lock:
            self._closed = True
            self._blocks.clear()
            self._numbers_by_id.clear()
            self._supplies.clear()

    def __enter__(self) -> InMemoryDatabase:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
