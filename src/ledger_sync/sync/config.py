"""
Sync service configuration constants.

Operational parameters for synchronization: page sizes, windows and timeouts.
The test environment shortens the timing constants so loops finish quickly.
"""

from __future__ import annotations

from typing import Final

from ledger_sync.config import LEDGER_ENV

MISSING_BLOCKS_PAGE_SIZE: Final[int] = 20
"""Maximum missing block numbers returned by one gap scan."""

FINALITY_WINDOW: Final[int] = 20
"""Blocks within this distance of the head may still be reorganized away."""

FETCH_TIMEOUT: Final[float] = 1.0 if LEDGER_ENV == "test" else 10.0
"""Upper bound in seconds on a single chain reader call."""

POLL_INTERVAL: Final[float] = 0.01 if LEDGER_ENV == "test" else 5.0
"""Seconds to wait before the next pass once storage has caught up."""
