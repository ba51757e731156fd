"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from ledger_sync.types import (
    BackingStoreError,
    ConversionError,
    DependencyMissingError,
    InvalidRangeError,
    LedgerSyncError,
    NotFoundError,
    TransientError,
)


class TestHierarchy:
    """All errors share one base."""

    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError(1),
            BackingStoreError("put_block", "disk full", block_number=1),
            DependencyMissingError(1),
            TransientError("timeout", block_number=1),
            ConversionError("bad", block_number=1),
            InvalidRangeError("bad range"),
        ],
    )
    def test_subclasses_base(self, error: LedgerSyncError) -> None:
        """Every error can be caught as LedgerSyncError."""
        assert isinstance(error, LedgerSyncError)


class TestMessages:
    """Messages carry the block number and context."""

    def test_block_number_prefix(self) -> None:
        """Errors about a block say which one."""
        assert str(TransientError("timeout", block_number=42)) == "block 42: timeout"

    def test_no_prefix_without_number(self) -> None:
        """Errors without a block have a plain message."""
        assert str(TransientError("node down")) == "node down"

    def test_backing_store_error(self) -> None:
        """The failed operation is part of the message."""
        error = BackingStoreError("put_block", "disk full", block_number=7)

        assert error.operation == "put_block"
        assert str(error) == "block 7: put_block failed: disk full"

    def test_dependency_missing_names_watcher(self) -> None:
        """The watcher that needed the block is named."""
        error = DependencyMissingError(9, watcher="token_supply")

        assert error.block_number == 9
        assert "token_supply" in str(error)

    def test_conversion_error_names_field(self) -> None:
        """The offending field is part of the message."""
        error = ConversionError("not hex", block_number=3, field="gasUsed")

        assert error.field == "gasUsed"
        assert "gasUsed" in str(error)

    def test_repr(self) -> None:
        """repr shows the raw message and number."""
        assert repr(NotFoundError(5)) == "NotFoundError('block does not exist', block_number=5)"
