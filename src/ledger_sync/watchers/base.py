"""
Generic watcher runner.

A watcher derives one value for a block that is already stored and appends
it as a record keyed by that block's row id. Watchers never fetch blocks:
if the block is absent, the observation fails with DependencyMissingError
and can be retried once the sync loop has ingested it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from ledger_sync import metrics
from ledger_sync.storage import BlockRepository
from ledger_sync.types import (
    ConversionError,
    DependencyMissingError,
    LedgerSyncError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class ValueSource(Protocol):
    """Computes the value a watcher records for one block."""

    async def compute(self, subject: str, block_number: int) -> int:
        """
        Compute the value of `subject` as of `block_number`.

        Raises:
            TransientError: When the underlying source is unavailable.
            ConversionError: When the source answered with unusable data.
        """
        ...


@dataclass(slots=True)
class WatchResult:
    """Outcome of observing a range of blocks."""

    observed: dict[int, int] = field(default_factory=dict)
    """Block number to the id of the record written for it."""

    failures: dict[int, LedgerSyncError] = field(default_factory=dict)
    """Block number to the error that prevented the observation."""

    @property
    def ok(self) -> bool:
        """True when every block was observed."""
        return not self.failures


@dataclass(slots=True)
class BlockWatcher(ABC):
    """
    Runs a value source over stored blocks and appends the results.

    Subclasses decide what record to build and where it goes. The runner
    owns the precondition check, logging and metrics.
    """

    blocks: BlockRepository
    """Storage holding ingested blocks."""

    source: ValueSource
    """Where observed values come from."""

    name: str = "watcher"
    """Label used in logs and metrics."""

    def check_subject(self, subject: str) -> str:
        """
        Validate a subject and return its canonical form.

        Raises:
            ConversionError: If the subject can never produce a record.
        """
        return subject

    @abstractmethod
    def make_record(self, subject: str, block_number: int, value: int) -> Any:
        """Build the record for an observed value."""

    @abstractmethod
    def persist(self, record: Any, block_id: int) -> int:
        """Append a record for the block with row id `block_id` and return its id."""

    @abstractmethod
    def missing_blocks(self, subject: str, start: int, end: int) -> list[int]:
        """Stored block numbers in [start, end] that have no record for `subject`."""

    async def observe(self, subject: str, block_number: int) -> int:
        """
        Observe `subject` at one stored block and append the result.

        Args:
            subject: What is observed, e.g. a token address.
            block_number: Block the observation belongs to.

        Returns:
            Row id of the new record.

        Raises:
            DependencyMissingError: If the block has not been ingested yet.
            ConversionError: If the subject or the computed value cannot form
                a record.
            BackingStoreError: If storage failed. Propagated unchanged.
        """
        subject = self.check_subject(subject)
        try:
            record = self.blocks.get_block_record(block_number)
        except NotFoundError as exc:
            error = DependencyMissingError(block_number, watcher=self.name)
            logger.warning("%s: observe %s failed: %s (cause: %s)", self.name, subject, error, exc)
            raise error from exc

        value = await self.source.compute(subject, block_number)
        try:
            new_record = self.make_record(subject, block_number, value)
        except ValidationError as exc:
            error = ConversionError(
                f"{self.name}: invalid record for {subject}: {exc.errors()[0]['msg']}",
                block_number=block_number,
            )
            logger.warning("%s", error)
            raise error from exc
        record_id = self.persist(new_record, record.id)

        metrics.watcher_records.labels(watcher=self.name).inc()
        logger.debug("%s: recorded %s at block %d = %d", self.name, subject, block_number, value)
        return record_id

    async def observe_range(self, subject: str, start: int, end: int) -> WatchResult:
        """
        Observe every stored block in [start, end] that lacks a record.

        Failures are collected per block and do not stop the pass. An invalid
        subject fails the whole call before any block is looked at.

        Raises:
            ConversionError: If the subject is invalid.
        """
        subject = self.check_subject(subject)
        result = WatchResult()
        for number in self.missing_blocks(subject, start, end):
            try:
                result.observed[number] = await self.observe(subject, number)
            except LedgerSyncError as exc:
                metrics.watcher_failures.labels(
                    watcher=self.name, kind=type(exc).__name__
                ).inc()
                logger.warning("%s: block %d skipped: %s", self.name, number, exc)
                result.failures[number] = exc

        if result.observed or result.failures:
            logger.info(
                "%s: %s observed %d blocks in [%d, %d], %d failed",
                self.name,
                subject,
                len(result.observed),
                start,
                end,
                len(result.failures),
            )
        return result
