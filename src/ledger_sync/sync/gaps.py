"""
Gap detection: which block numbers are missing from local storage.

Blocks arrive out of order, nodes drop requests, and reorgs near the tip
replace blocks. Rather than tracking any of this in memory, the sync loop
asks storage what is absent. A number that failed to ingest is simply still
missing on the next pass, so absence from storage doubles as the retry queue.

Scans are paged. One call never returns more than `page_size` numbers, which
bounds query cost and lets the orchestrator make steady incremental progress
instead of planning an unbounded range up front.
"""

from __future__ import annotations

from collections.abc import Iterable

from ledger_sync.containers import MAX_QUANTITY
from ledger_sync.storage import BlockRepository
from ledger_sync.types import InvalidRangeError

from .config import MISSING_BLOCKS_PAGE_SIZE


def find_missing_blocks(
    repository: BlockRepository,
    start: int,
    end: int,
    page_size: int = MISSING_BLOCKS_PAGE_SIZE,
) -> list[int]:
    """
    Find block numbers in [start, end] that are absent from storage.

    Deterministic: for a fixed storage state the same range always yields the
    same numbers, in ascending order.

    Args:
        repository: Storage to inspect.
        start: First number of the inclusive range.
        end: Last number of the inclusive range.
        page_size: Maximum amount of numbers to return.

    Returns:
        Missing numbers, ascending, at most `page_size` of them. Empty when
        `start > end`.

    Raises:
        InvalidRangeError: If a bound is negative or past MAX_QUANTITY, or the
            page size is not positive.
    """
    if start < 0 or end < 0:
        raise InvalidRangeError(
            f"block range [{start}, {end}] has a negative bound", start=start, end=end
        )
    if start > MAX_QUANTITY or end > MAX_QUANTITY:
        raise InvalidRangeError(
            f"block range [{start}, {end}] exceeds the largest block number {MAX_QUANTITY}",
            start=start,
            end=end,
        )
    if page_size <= 0:
        raise InvalidRangeError(f"page size must be positive, got {page_size}")
    if start > end:
        return []
    return repository.missing_block_numbers(start, end, page_size)


def split_ranges(numbers: Iterable[int]) -> list[tuple[int, int]]:
    """
    Collapse ascending block numbers into contiguous inclusive ranges.

    Example: [3, 4, 5, 9, 11, 12] -> [(3, 5), (9, 9), (11, 12)].
    """
    ranges: list[tuple[int, int]] = []
    for number in numbers:
        if ranges and number == ranges[-1][1] + 1:
            ranges[-1] = (ranges[-1][0], number)
        else:
            ranges.append((number, number))
    return ranges


def format_ranges(numbers: Iterable[int]) -> str:
    """Render block numbers compactly for logs, e.g. "3-5,9,11-12"."""
    return ",".join(
        str(first) if first == last else f"{first}-{last}" for first, last in split_ranges(numbers)
    )
