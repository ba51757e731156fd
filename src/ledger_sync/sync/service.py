"""
Sync service orchestrator.

Keeps local storage filled with every block between a low watermark and the
chain head.

How It Works
------------
Each pass:

1. Fetch the current head from the chain reader.
2. Ask storage which numbers in [low_watermark, head] are missing, one page
   at a time.
3. Fetch, convert and store each missing block. A block that fails is
   logged and recorded, and the pass moves on. It is still missing on the
   next pass, so it will be tried again.
4. Finalize stored blocks that left the confirmation window.

State Machine
-------------
::

    IDLE --> SYNCING --> SYNCED
      ^         |           |
      +---------+-----------+

- **IDLE**: Not running.
- **SYNCING**: Gaps were found and are being filled.
- **SYNCED**: The last scan found nothing missing up to the head.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

from ledger_sync import metrics
from ledger_sync.chain import BlockConverter, ChainReader
from ledger_sync.containers import MAX_QUANTITY
from ledger_sync.storage import Database
from ledger_sync.types import (
    BackingStoreError,
    ConversionError,
    LedgerSyncError,
    TransientError,
)

from .config import FETCH_TIMEOUT, FINALITY_WINDOW, MISSING_BLOCKS_PAGE_SIZE, POLL_INTERVAL
from .finality import FinalityTracker
from .gaps import find_missing_blocks, format_ranges
from .states import SyncState

logger = logging.getLogger(__name__)

T = TypeVar("T")

BLOCK_FAILURES = (TransientError, ConversionError, BackingStoreError)
"""Errors that fail a single block, or a whole pass, without stopping the loop."""


@dataclass(slots=True)
class BatchResult:
    """Outcome of one sync pass."""

    head: int
    """Chain head the pass worked towards."""

    missing: list[int] = field(default_factory=list)
    """Numbers found missing at the start of the pass."""

    stored: dict[int, int] = field(default_factory=dict)
    """Block number to the row id it was stored under."""

    failures: dict[int, LedgerSyncError] = field(default_factory=dict)
    """Block number to the error that prevented ingestion."""

    finalized: int = 0
    """Blocks that became final after the pass."""

    @property
    def complete(self) -> bool:
        """True when nothing was missing."""
        return not self.missing


@dataclass(slots=True)
class SyncProgress:
    """
    Current synchronization progress.

    Provides a snapshot of sync state for monitoring and logging.
    """

    state: SyncState
    """Current sync state machine state."""

    head: int | None = None
    """Last chain head seen."""

    blocks_ingested: int = 0
    """Blocks stored this session."""

    failures: int = 0
    """Block failures this session."""

    stored_blocks: int = 0
    """Total blocks in storage."""


@dataclass(slots=True)
class SyncService:
    """
    Main ingestion loop.

    The service owns no chain or storage state of its own beyond counters:
    what to fetch next is always derived from storage.
    """

    database: Database
    """Storage for blocks."""

    reader: ChainReader
    """Source of raw blocks and the head number."""

    converter: BlockConverter
    """Turns raw blocks into Block models."""

    low_watermark: int = 0
    """First block number to keep in storage."""

    page_size: int = MISSING_BLOCKS_PAGE_SIZE
    """Maximum blocks fetched per pass."""

    finality_window: int = FINALITY_WINDOW
    """Confirmation window for finality."""

    fetch_timeout: float = FETCH_TIMEOUT
    """Upper bound in seconds on a single chain reader call."""

    poll_interval: float = POLL_INTERVAL
    """Pause in seconds after a pass that found nothing to do."""

    _finality: FinalityTracker | None = field(default=None)
    """Finality tracker (created in __post_init__)."""

    _state: SyncState = field(default=SyncState.IDLE)
    """Current sync state."""

    _blocks_ingested: int = field(default=0)
    _failures: int = field(default=0)

    _stop_requested: bool = field(default=False)
    """Set by stop(). Checked between passes."""

    def __post_init__(self) -> None:
        """Create the finality tracker."""
        self._finality = FinalityTracker(self.database, window=self.finality_window)

    @property
    def state(self) -> SyncState:
        """Current sync state."""
        return self._state

    @property
    def finality(self) -> FinalityTracker:
        """Finality tracker used after every pass."""
        assert self._finality is not None
        return self._finality

    def get_progress(self) -> SyncProgress:
        """Snapshot of the current progress."""
        return SyncProgress(
            state=self._state,
            head=self.finality.last_head,
            blocks_ingested=self._blocks_ingested,
            failures=self._failures,
            stored_blocks=self.database.block_count(),
        )

    def _transition_to(self, new_state: SyncState) -> None:
        """
        Move the state machine, rejecting invalid transitions.

        Staying in the same state is a no-op.
        """
        if new_state == self._state:
            return
        if not self._state.can_transition_to(new_state):
            raise ValueError(f"Invalid state transition: {self._state.name} -> {new_state.name}")
        logger.info("Sync state %s -> %s", self._state.name, new_state.name)
        self._state = new_state

    async def _bounded(self, awaitable: Awaitable[T], *, block_number: int | None = None) -> T:
        """Await a chain reader call with the fetch timeout applied."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.fetch_timeout)
        except asyncio.TimeoutError as exc:
            raise TransientError(
                f"chain reader did not answer within {self.fetch_timeout}s",
                block_number=block_number,
            ) from exc

    async def fetch_head(self) -> int:
        """Fetch the chain head within the fetch timeout."""
        head = await self._bounded(self.reader.fetch_head())
        if not 0 <= head <= MAX_QUANTITY:
            # A node reporting an impossible head is treated like one that
            # did not answer.
            raise TransientError(f"chain reader reported an invalid head {head}")
        metrics.chain_head.set(head)
        return head

    async def ingest_block(self, number: int) -> int:
        """
        Fetch, convert and store one block.

        Returns:
            Row id the block is stored under.

        Raises:
            TransientError: If the reader failed or timed out.
            ConversionError: If the raw block could not be converted.
            BackingStoreError: If the write failed.
        """
        raw = await self._bounded(self.reader.fetch_block(number), block_number=number)
        block = self.converter.to_block(raw)
        if block.number != number:
            raise ConversionError(
                f"reader returned block {block.number} for a request of {number}",
                block_number=number,
            )

        start = time.perf_counter()
        block_id = self.database.put_block(block)
        metrics.block_put_time.observe(time.perf_counter() - start)
        return block_id

    async def sync_once(self) -> BatchResult:
        """
        Run one pass: fill up to a page of gaps, then update finality.

        Raises:
            TransientError: If the head could not be fetched.
        """
        head = await self.fetch_head()
        if self._state == SyncState.IDLE:
            self._transition_to(SyncState.SYNCING)

        result = BatchResult(head=head)
        if head < self.low_watermark:
            logger.warning("Head %d is below the low watermark %d", head, self.low_watermark)
        else:
            result.missing = find_missing_blocks(
                self.database, self.low_watermark, head, self.page_size
            )
        metrics.missing_blocks.set(len(result.missing))

        if result.missing:
            self._transition_to(SyncState.SYNCING)
            logger.info("Head %d, fetching missing blocks %s", head, format_ranges(result.missing))

        for number in result.missing:
            try:
                result.stored[number] = await self.ingest_block(number)
            except BLOCK_FAILURES as exc:
                metrics.block_failures.labels(kind=type(exc).__name__).inc()
                logger.warning("Block %d not ingested, will retry: %s", number, exc)
                result.failures[number] = exc
            else:
                metrics.blocks_ingested.inc()

        self._blocks_ingested += len(result.stored)
        self._failures += len(result.failures)

        result.finalized = self.finality.update(head)

        if not result.missing:
            self._transition_to(SyncState.SYNCED)
        return result

    async def run(self) -> None:
        """
        Run passes until stop() is called.

        A pass is never interrupted. The stop flag is checked between passes
        and during the idle pause.
        """
        self._stop_requested = False
        logger.info("Sync loop started from block %d", self.low_watermark)

        while not self._stop_requested:
            try:
                result = await self.sync_once()
            except BLOCK_FAILURES as exc:
                logger.warning("Pass failed, retrying in %.1fs: %s", self.poll_interval, exc)
                await self._pause()
                continue

            if result.complete or not result.stored:
                # Caught up, or no missing block could be stored.
                await self._pause()
            else:
                await asyncio.sleep(0)

        self._transition_to(SyncState.IDLE)
        logger.info("Sync loop stopped")

    async def _pause(self) -> None:
        """Sleep for the poll interval, waking early on stop()."""
        deadline = time.monotonic() + self.poll_interval
        await asyncio.sleep(0)
        while not self._stop_requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            await asyncio.sleep(min(remaining, 0.1))

    def stop(self) -> None:
        """Ask the loop to stop after the current pass."""
        self._stop_requested = True
