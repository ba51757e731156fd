"""Tests for the YAML settings loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ledger_sync.settings import MEMORY_DATABASE, SyncConfig
from ledger_sync.sync import FINALITY_WINDOW, MISSING_BLOCKS_PAGE_SIZE


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self) -> None:
        """An empty document yields the built-in defaults."""
        config = SyncConfig.from_yaml("")

        assert config.database == MEMORY_DATABASE
        assert config.low_watermark == 0
        assert config.page_size == MISSING_BLOCKS_PAGE_SIZE
        assert config.finality_window == FINALITY_WINDOW
        assert config.tokens == []


class TestYamlLoading:
    """Tests for loading from YAML."""

    def test_uppercase_keys(self) -> None:
        """Keys follow the UPPERCASE convention."""
        config = SyncConfig.from_yaml(
            """
            RPC_URL: http://node:8545
            DATABASE: /var/lib/ledger.sqlite
            LOW_WATERMARK: 17000000
            FINALITY_WINDOW: 64
            FETCH_TIMEOUT: 2.5
            INCLUDE_RECEIPTS: true
            """
        )

        assert config.rpc_url == "http://node:8545"
        assert config.database == "/var/lib/ledger.sqlite"
        assert config.low_watermark == 17_000_000
        assert config.finality_window == 64
        assert config.fetch_timeout == 2.5
        assert config.include_receipts is True

    def test_tokens_normalized(self) -> None:
        """Token addresses are lower-cased, including ones YAML read as integers."""
        config = SyncConfig.from_yaml(
            """
            TOKENS:
            - "0xA0B86991C6218B36C1D19D4A2E9EB0CE3606EB48"
            - 0x00000000000000000000000000000000000000aa
            """
        )

        assert config.tokens == [
            "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
            "0x00000000000000000000000000000000000000aa",
        ]

    def test_from_file(self, tmp_path: Path) -> None:
        """Files load the same way as strings."""
        path = tmp_path / "ledger.yaml"
        path.write_text("PAGE_SIZE: 5\n", encoding="utf-8")

        assert SyncConfig.from_yaml_file(path).page_size == 5

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            SyncConfig.from_yaml_file(tmp_path / "absent.yaml")


class TestValidation:
    """Tests for rejected settings."""

    @pytest.mark.parametrize(
        "document",
        [
            "PAGE_SIZE: 0",
            "LOW_WATERMARK: -1",
            "FINALITY_WINDOW: -5",
            "FETCH_TIMEOUT: 0",
            "TOKENS: 0xnothex",
            "TOKENS: [not-an-address]",
            "UNKNOWN_KEY: 1",
        ],
    )
    def test_invalid_documents(self, document: str) -> None:
        """Out-of-range values and unknown keys are rejected."""
        with pytest.raises(ValidationError):
            SyncConfig.from_yaml(document)
