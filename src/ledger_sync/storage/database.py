"""
Abstract storage interface for ledger data.

Defines the Protocols that every storage adapter must follow. The durable
SQLite adapter and the volatile in-memory adapter both satisfy them and are
checked against one shared contract test suite.

Numbers passed to a query must fit a signed 64-bit storage integer. Both
adapters reject anything outside that range with BackingStoreError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ledger_sync.containers import Block, TokenSupply


@dataclass(frozen=True, slots=True)
class BlockRecord:
    """A stored block together with its storage-internal row id."""

    id: int
    """
    Row id assigned by the storage medium.

    Ids are never reused. A block replaced after a reorg gets a fresh id, so
    derived records that point at the old id cannot be confused with records
    computed for the replacement.
    """

    block: Block
    """The stored block."""

    @property
    def number(self) -> int:
        """Block number of the stored block."""
        return self.block.number


class BlockRepository(Protocol):
    """
    Protocol for block storage.

    Uses structural subtyping: any class with matching methods satisfies it.

    No implementation may cache results across calls. The volatile adapter's
    contents serve as the test oracle for concurrent writers, which only works
    if every call observes the medium as it is.
    """

    def put_block(self, block: Block) -> int:
        """
        Insert or replace the block stored under `block.number`.

        Storing content identical to what is already stored (ignoring the
        finality flag) changes nothing. Different content replaces the old
        block, together with its transactions and derived records, in one
        atomic write.

        Args:
            block: Block to store.

        Returns:
            Storage-internal row id of the stored block (diagnostics and
            foreign references only; not the block number).

        Raises:
            BackingStoreError: If the medium is unreachable or rejects the write.
        """
        ...

    def get_block(self, number: int) -> Block:
        """
        Retrieve a block by number.

        Raises:
            NotFoundError: If no block is stored under that number.
        """
        ...

    def get_block_record(self, number: int) -> BlockRecord:
        """
        Retrieve a block together with its row id.

        Raises:
            NotFoundError: If no block is stored under that number.
        """
        ...

    def has_block(self, number: int) -> bool:
        """Check if a block is stored under that number."""
        ...

    def missing_block_numbers(self, start: int, end: int, limit: int) -> list[int]:
        """
        List numbers in the inclusive range [start, end] without a stored block.

        Args:
            start: First number of the range.
            end: Last number of the range.
            limit: Maximum amount of numbers to return.

        Returns:
            Missing numbers in ascending order, at most `limit` of them.
        """
        ...

    def set_final_below(self, head: int, window: int) -> int:
        """
        Mark every stored block with `number <= head - window` as final.

        Runs as a single bulk update. Already-final blocks are left alone.

        Returns:
            Number of blocks that changed from pending to final.
        """
        ...

    def block_count(self) -> int:
        """Total number of stored blocks."""
        ...


class TokenSupplyRepository(Protocol):
    """
    Protocol for token supply storage, the token supply watcher's port.

    Records reference blocks by row id. Deleting a block deletes its records.
    """

    def put_token_supply(self, supply: TokenSupply, block_id: int) -> int:
        """
        Append a token supply record.

        Args:
            supply: Record to store.
            block_id: Row id of the block the value was computed for.

        Returns:
            Row id of the new record. Every call creates a new record.

        Raises:
            BackingStoreError: If `block_id` references no stored block or
                the medium rejects the write.
        """
        ...

    def get_token_supplies(
        self,
        token_address: str,
        block_number: int | None = None,
    ) -> list[TokenSupply]:
        """
        Retrieve records for a token, optionally restricted to one block.

        Returns:
            Records in insertion order.
        """
        ...

    def token_supply_count(self, token_address: str | None = None) -> int:
        """Number of records, for one token or across all tokens."""
        ...

    def missing_token_supply_blocks(
        self,
        token_address: str,
        start: int,
        end: int,
        limit: int,
    ) -> list[int]:
        """
        List stored blocks in [start, end] that have no record for the token.

        Returns:
            Block numbers in ascending order, at most `limit` of them.
        """
        ...


class Database(BlockRepository, TokenSupplyRepository, Protocol):
    """Protocol for a complete storage adapter."""

    def close(self) -> None:
        """Close the medium and release resources."""
        ...
