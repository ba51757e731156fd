"""Test helpers for ledger_sync unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import (
    MINER,
    TOKEN,
    make_address,
    make_block,
    make_hash,
    make_log,
    make_raw_block,
    make_raw_receipt,
    make_supply,
    make_transaction,
)
from .mocks import MockChainReader, MockContractCaller, MockValueSource

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    # Builders
    "make_address",
    "make_block",
    "make_hash",
    "make_log",
    "make_raw_block",
    "make_raw_receipt",
    "make_supply",
    "make_transaction",
    # Mocks
    "MockChainReader",
    "MockContractCaller",
    "MockValueSource",
    # Constants
    "MINER",
    "TOKEN",
    # Async utilities
    "run_async",
]
