"""Tests for the environment flag."""

from __future__ import annotations

from ledger_sync.config import LEDGER_ENV
from ledger_sync.sync import FETCH_TIMEOUT, POLL_INTERVAL


class TestLedgerEnv:
    """The test suite runs with LEDGER_ENV=test."""

    def test_env_is_test(self) -> None:
        """conftest sets the flag before the package is imported."""
        assert LEDGER_ENV == "test"

    def test_timings_shortened(self) -> None:
        """Timing constants are short in the test environment."""
        assert POLL_INTERVAL < 1.0
        assert FETCH_TIMEOUT <= 1.0
