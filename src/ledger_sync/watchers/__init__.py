"""Watchers: values derived from already-ingested blocks."""

from .base import BlockWatcher, ValueSource, WatchResult
from .token_supply import TokenSupplyWatcher

__all__ = [
    "BlockWatcher",
    "TokenSupplyWatcher",
    "ValueSource",
    "WatchResult",
]
