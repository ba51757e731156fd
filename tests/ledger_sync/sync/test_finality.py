"""Tests for the finality tracker."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_sync.containers import MAX_QUANTITY
from ledger_sync.storage import Database, InMemoryDatabase
from ledger_sync.sync import FINALITY_WINDOW, FinalityTracker
from ledger_sync.types import InvalidRangeError
from tests.ledger_sync.helpers import make_block


class TestFinalityTracker:
    """Tests for FinalityTracker.update."""

    def test_default_window(self, database: Database) -> None:
        """The default confirmation window is 20 blocks."""
        assert FinalityTracker(database).window == FINALITY_WINDOW == 20

    def test_head_130(self, database: Database) -> None:
        """Blocks 90-110 become final at head 130, 111-130 stay pending."""
        for number in range(90, 131):
            database.put_block(make_block(number))
        tracker = FinalityTracker(database)

        assert tracker.update(130) == 21
        assert tracker.final_boundary(130) == 110
        assert [database.get_block(n).is_final for n in (90, 110, 111, 130)] == [
            True,
            True,
            False,
            False,
        ]

    def test_tracks_highest_head(self, database: Database) -> None:
        """last_head only moves forward."""
        tracker = FinalityTracker(database)
        tracker.update(50)
        tracker.update(40)

        assert tracker.last_head == 50

    def test_head_below_window_finalizes_nothing(self, database: Database) -> None:
        """With head < window the boundary is negative."""
        database.put_block(make_block(0))

        assert FinalityTracker(database).update(5) == 0
        assert not database.get_block(0).is_final

    def test_negative_head_rejected(self, database: Database) -> None:
        """A negative head is a caller error."""
        with pytest.raises(InvalidRangeError):
            FinalityTracker(database).update(-1)

    def test_head_past_max_quantity_rejected(self, database: Database) -> None:
        """A head no stored block could reach is a caller error."""
        with pytest.raises(InvalidRangeError):
            FinalityTracker(database).update(MAX_QUANTITY + 1)

    def test_negative_window_rejected(self, database: Database) -> None:
        """A negative window cannot be constructed."""
        with pytest.raises(InvalidRangeError):
            FinalityTracker(database, window=-1)

    @given(heads=st.lists(st.integers(min_value=0, max_value=80), min_size=1, max_size=10))
    def test_finality_is_monotonic(self, heads: list[int]) -> None:
        """Whatever the order of heads, a final block never becomes pending."""
        with InMemoryDatabase() as db:
            for number in range(60):
                db.put_block(make_block(number))
            tracker = FinalityTracker(db, window=10)

            final: set[int] = set()
            for head in heads:
                tracker.update(head)
                now_final = {n for n in range(60) if db.get_block(n).is_final}
                assert final <= now_final
                final = now_final

            assert final == {n for n in range(60) if n <= max(heads) - 10}
