"""Tests for the watcher runner and the token supply watcher."""

from __future__ import annotations

import pytest

from ledger_sync.storage import Database, InMemoryDatabase
from ledger_sync.types import (
    BackingStoreError,
    ConversionError,
    DependencyMissingError,
    NotFoundError,
    TransientError,
)
from ledger_sync.watchers import TokenSupplyWatcher
from tests.ledger_sync.helpers import TOKEN, MockValueSource, make_block, make_supply, run_async


@pytest.fixture
def watcher(database: Database, source: MockValueSource) -> TokenSupplyWatcher:
    """Token supply watcher writing to the shared store."""
    return TokenSupplyWatcher(blocks=database, source=source)


class TestObserve:
    """Tests for a single observation."""

    def test_records_value_for_stored_block(
        self, database: Database, watcher: TokenSupplyWatcher
    ) -> None:
        """The computed value is appended for the stored block."""
        database.put_block(make_block(5))

        record_id = run_async(watcher.observe(TOKEN, 5))

        assert record_id > 0
        assert database.get_token_supplies(TOKEN, block_number=5) == [make_supply(5, 1_005)]

    def test_missing_block_raises_dependency_missing(
        self, database: Database, watcher: TokenSupplyWatcher, source: MockValueSource
    ) -> None:
        """Observing an absent block fails without computing or recording."""
        with pytest.raises(DependencyMissingError) as exc_info:
            run_async(watcher.observe(TOKEN, 8))

        assert exc_info.value.block_number == 8
        assert isinstance(exc_info.value.__cause__, NotFoundError)
        assert source.calls == []
        assert database.token_supply_count() == 0

    def test_observing_twice_appends_twice(
        self, database: Database, watcher: TokenSupplyWatcher
    ) -> None:
        """Records are append-only: two observations, two records."""
        database.put_block(make_block(5))

        first = run_async(watcher.observe(TOKEN, 5))
        second = run_async(watcher.observe(TOKEN, 5))

        assert first != second
        assert database.token_supply_count(TOKEN) == 2

    def test_subject_is_normalized(
        self, database: Database, watcher: TokenSupplyWatcher, source: MockValueSource
    ) -> None:
        """Checksum-cased addresses are observed under their lower-case form."""
        database.put_block(make_block(5))

        run_async(watcher.observe("0x" + TOKEN[2:].upper(), 5))

        assert source.calls == [(TOKEN, 5)]
        assert database.token_supply_count(TOKEN) == 1

    def test_invalid_subject_rejected(
        self, database: Database, watcher: TokenSupplyWatcher, source: MockValueSource
    ) -> None:
        """A subject that is not an address fails before anything is computed."""
        database.put_block(make_block(5))

        with pytest.raises(ConversionError) as exc_info:
            run_async(watcher.observe("usdc", 5))

        assert exc_info.value.field == "token_address"
        assert source.calls == []
        assert database.token_supply_count() == 0

    def test_invalid_value_becomes_conversion_error(self, database: Database) -> None:
        """A value no record can hold fails the observation with the block number."""
        database.put_block(make_block(5))
        watcher = TokenSupplyWatcher(blocks=database, source=MockValueSource(base=-100))

        with pytest.raises(ConversionError) as exc_info:
            run_async(watcher.observe(TOKEN, 5))

        assert exc_info.value.block_number == 5
        assert database.token_supply_count() == 0

    def test_source_error_propagates(
        self, database: Database, watcher: TokenSupplyWatcher, source: MockValueSource
    ) -> None:
        """A failing source leaves no record behind."""
        database.put_block(make_block(5))
        source.failures[5] = TransientError("rpc down", block_number=5)

        with pytest.raises(TransientError):
            run_async(watcher.observe(TOKEN, 5))

        assert database.token_supply_count() == 0

    def test_persistence_error_propagates(self, source: MockValueSource) -> None:
        """Storage failures reach the caller unchanged."""

        class RejectingRepository:
            def put_token_supply(self, supply: object, block_id: int) -> int:
                raise BackingStoreError("put_token_supply", "read-only", block_number=5)

            def missing_token_supply_blocks(
                self, token_address: str, start: int, end: int, limit: int
            ) -> list[int]:
                return []

        with InMemoryDatabase() as blocks:
            blocks.put_block(make_block(5))
            watcher = TokenSupplyWatcher(
                blocks=blocks, source=source, repository=RejectingRepository()
            )

            with pytest.raises(BackingStoreError):
                run_async(watcher.observe(TOKEN, 5))


class TestObserveRange:
    """Tests for range observation."""

    def test_fills_blocks_without_records(
        self, database: Database, watcher: TokenSupplyWatcher
    ) -> None:
        """Only stored blocks lacking a record are observed."""
        ids = {n: database.put_block(make_block(n)) for n in (1, 2, 3, 5)}
        database.put_token_supply(make_supply(2), ids[2])

        result = run_async(watcher.observe_range(TOKEN, 0, 10))

        assert result.ok
        assert sorted(result.observed) == [1, 3, 5]
        assert database.missing_token_supply_blocks(TOKEN, 0, 10, 20) == []

    def test_failures_do_not_abort_range(
        self, database: Database, watcher: TokenSupplyWatcher, source: MockValueSource
    ) -> None:
        """One failing block is reported while the others are recorded."""
        for number in range(4):
            database.put_block(make_block(number))
        source.failures[2] = TransientError("rpc down", block_number=2)

        result = run_async(watcher.observe_range(TOKEN, 0, 3))

        assert sorted(result.observed) == [0, 1, 3]
        assert list(result.failures) == [2]
        assert not result.ok
        assert database.missing_token_supply_blocks(TOKEN, 0, 3, 20) == [2]

    def test_invalid_values_do_not_abort_range(self, database: Database) -> None:
        """Blocks whose value cannot form a record are reported per block."""
        for number in range(1, 6):
            database.put_block(make_block(number))
        watcher = TokenSupplyWatcher(blocks=database, source=MockValueSource(base=-3))

        result = run_async(watcher.observe_range(TOKEN, 1, 5))

        assert sorted(result.observed) == [3, 4, 5]
        assert sorted(result.failures) == [1, 2]
        assert all(isinstance(e, ConversionError) for e in result.failures.values())

    def test_invalid_subject_fails_whole_range(
        self, database: Database, watcher: TokenSupplyWatcher, source: MockValueSource
    ) -> None:
        """No block is looked at for a subject that can never be recorded."""
        database.put_block(make_block(1))

        with pytest.raises(ConversionError):
            run_async(watcher.observe_range("0xnothex", 0, 10))

        assert source.calls == []

    def test_replaced_block_is_observed_again(
        self, database: Database, watcher: TokenSupplyWatcher
    ) -> None:
        """A reorg drops the old record, so the new block needs one."""
        database.put_block(make_block(4, tag=0))
        run_async(watcher.observe_range(TOKEN, 0, 10))

        database.put_block(make_block(4, tag=1))
        result = run_async(watcher.observe_range(TOKEN, 0, 10))

        assert list(result.observed) == [4]
        assert database.token_supply_count(TOKEN) == 1


class TestConstruction:
    """Tests for watcher wiring."""

    def test_requires_supply_repository(self, source: MockValueSource) -> None:
        """A block-only repository cannot host supply records."""

        class BlocksOnly:
            def get_block_record(self, number: int) -> object:
                raise NotFoundError(number)

        with pytest.raises(TypeError):
            TokenSupplyWatcher(blocks=BlocksOnly(), source=source)  # type: ignore[arg-type]

    def test_default_name(self, watcher: TokenSupplyWatcher) -> None:
        """Logs and metrics are labeled token_supply."""
        assert watcher.name == "token_supply"
