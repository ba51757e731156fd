"""Test doubles for the chain reader and value sources."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from ledger_sync.types import LedgerSyncError, TransientError

from .builders import make_raw_block


@dataclass
class MockChainReader:
    """
    Chain reader serving generated raw blocks up to a configurable head.

    Numbers in `failures` raise the given error; numbers in `delays` sleep
    before answering, which lets tests trigger the fetch timeout.
    """

    head: int = 0
    """Head number returned by fetch_head."""

    tags: dict[int, int] = field(default_factory=dict)
    """Fork tag per block number. Changing a tag models a reorg."""

    failures: dict[int, Exception] = field(default_factory=dict)
    """Errors to raise per block number."""

    delays: dict[int, float] = field(default_factory=dict)
    """Seconds to sleep before answering per block number."""

    head_error: Exception | None = None
    """Error raised by fetch_head, if set."""

    requested: list[int] = field(default_factory=list)
    """Every block number requested, in order."""

    async def fetch_head(self) -> int:
        if self.head_error is not None:
            raise self.head_error
        return self.head

    async def fetch_block(self, number: int) -> dict[str, Any]:
        self.requested.append(number)
        if number in self.delays:
            await asyncio.sleep(self.delays[number])
        if number in self.failures:
            raise self.failures[number]
        if number > self.head:
            raise TransientError("node returned no block", block_number=number)
        return make_raw_block(number, tag=self.tags.get(number, 0))

    async def fetch_logs(self, address: str, from_block: int, to_block: int) -> list[Any]:
        return []


@dataclass
class MockValueSource:
    """Value source returning `base + block_number`, or failing for chosen blocks."""

    base: int = 1_000
    failures: dict[int, LedgerSyncError] = field(default_factory=dict)
    calls: list[tuple[str, int]] = field(default_factory=list)

    async def compute(self, subject: str, block_number: int) -> int:
        self.calls.append((subject, block_number))
        if block_number in self.failures:
            raise self.failures[block_number]
        return self.base + block_number


@dataclass
class MockContractCaller:
    """Contract caller returning canned `eth_call` results."""

    result: str = "0x" + "00" * 31 + "2a"
    calls: list[tuple[str, str, int]] = field(default_factory=list)

    async def call(self, to: str, data: str, block_number: int) -> str:
        self.calls.append((to, data, block_number))
        return self.result
