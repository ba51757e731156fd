"""Tests for gap detection."""

from __future__ import annotations

import pytest

from ledger_sync.containers import MAX_QUANTITY
from ledger_sync.storage import Database
from ledger_sync.sync import (
    MISSING_BLOCKS_PAGE_SIZE,
    find_missing_blocks,
    format_ranges,
    split_ranges,
)
from ledger_sync.types import InvalidRangeError
from tests.ledger_sync.helpers import make_block


class TestFindMissingBlocks:
    """Tests for find_missing_blocks."""

    def test_empty_store(self, database: Database) -> None:
        """All of [100, 105] is missing from an empty store."""
        assert find_missing_blocks(database, 100, 105) == [100, 101, 102, 103, 104, 105]

    def test_after_partial_ingest(self, database: Database) -> None:
        """After storing 100-103, only 104 and 105 remain."""
        for number in range(100, 104):
            database.put_block(make_block(number))

        assert find_missing_blocks(database, 100, 105) == [104, 105]

    def test_default_page_size(self, database: Database) -> None:
        """Without a page size, at most 20 numbers come back."""
        missing = find_missing_blocks(database, 0, 1_000)

        assert MISSING_BLOCKS_PAGE_SIZE == 20
        assert missing == list(range(20))

    def test_deterministic(self, database: Database) -> None:
        """The same state and range always give the same answer."""
        for number in (3, 7):
            database.put_block(make_block(number))

        assert find_missing_blocks(database, 0, 10) == find_missing_blocks(database, 0, 10)

    def test_start_after_end_is_empty(self, database: Database) -> None:
        """An empty range has nothing missing."""
        assert find_missing_blocks(database, 10, 5) == []

    @pytest.mark.parametrize(("start", "end"), [(-1, 5), (0, -1)])
    def test_negative_bound_rejected(self, database: Database, start: int, end: int) -> None:
        """Negative bounds are a caller error."""
        with pytest.raises(InvalidRangeError):
            find_missing_blocks(database, start, end)

    @pytest.mark.parametrize(
        ("start", "end"), [(MAX_QUANTITY + 1, MAX_QUANTITY + 2), (0, MAX_QUANTITY + 1)]
    )
    def test_bound_past_max_quantity_rejected(
        self, database: Database, start: int, end: int
    ) -> None:
        """No stored block can carry such a number, on any adapter."""
        with pytest.raises(InvalidRangeError):
            find_missing_blocks(database, start, end)

    def test_range_ending_at_max_quantity(self, database: Database) -> None:
        """The top of the range is still scanned."""
        assert find_missing_blocks(database, MAX_QUANTITY - 1, MAX_QUANTITY) == [
            MAX_QUANTITY - 1,
            MAX_QUANTITY,
        ]

    def test_non_positive_page_size_rejected(self, database: Database) -> None:
        """A page size of zero is a caller error."""
        with pytest.raises(InvalidRangeError):
            find_missing_blocks(database, 0, 5, page_size=0)


class TestRanges:
    """Tests for range formatting helpers."""

    def test_split_ranges(self) -> None:
        """Contiguous runs collapse into inclusive pairs."""
        assert split_ranges([3, 4, 5, 9, 11, 12]) == [(3, 5), (9, 9), (11, 12)]

    def test_split_empty(self) -> None:
        """No numbers, no ranges."""
        assert split_ranges([]) == []

    def test_format_ranges(self) -> None:
        """Single numbers print bare, runs print as first-last."""
        assert format_ranges([3, 4, 5, 9, 11, 12]) == "3-5,9,11-12"
