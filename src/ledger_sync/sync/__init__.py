"""
Sync: keep storage filled with every block up to the chain head.

Gap detection finds what is absent, the service fetches it, and the
finality tracker settles blocks that left the confirmation window.
"""

from .config import FETCH_TIMEOUT, FINALITY_WINDOW, MISSING_BLOCKS_PAGE_SIZE, POLL_INTERVAL
from .finality import FinalityTracker
from .gaps import find_missing_blocks, format_ranges, split_ranges
from .service import BatchResult, SyncProgress, SyncService
from .states import SyncState

__all__ = [
    "FETCH_TIMEOUT",
    "FINALITY_WINDOW",
    "MISSING_BLOCKS_PAGE_SIZE",
    "POLL_INTERVAL",
    "BatchResult",
    "FinalityTracker",
    "SyncProgress",
    "SyncService",
    "SyncState",
    "find_missing_blocks",
    "format_ranges",
    "split_ranges",
]
