"""Runtime settings loader.

Loads the ingestion settings from a YAML file. Keys are UPPERCASE:

    RPC_URL: http://localhost:8545
    DATABASE: ./ledger.sqlite
    LOW_WATERMARK: 17000000
    FINALITY_WINDOW: 20
    TOKENS:
    - 0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator

from ledger_sync.containers import MAX_QUANTITY, normalize_hex
from ledger_sync.sync.config import (
    FETCH_TIMEOUT,
    FINALITY_WINDOW,
    MISSING_BLOCKS_PAGE_SIZE,
    POLL_INTERVAL,
)
from ledger_sync.types import StrictBaseModel

MEMORY_DATABASE = ":memory:"
"""DATABASE value selecting the volatile in-process store."""


class SyncConfig(StrictBaseModel):
    """
    Settings for one ingestion process.

    Field names use UPPERCASE in YAML. Pydantic aliases map them to
    snake_case Python attributes.
    """

    rpc_url: str = Field(default="http://localhost:8545", alias="RPC_URL")
    """JSON-RPC endpoint of the node."""

    database: str = Field(default=MEMORY_DATABASE, alias="DATABASE")
    """SQLite file path, or ":memory:" for the in-process store."""

    low_watermark: int = Field(default=0, ge=0, le=MAX_QUANTITY, alias="LOW_WATERMARK")
    """First block number to keep in storage."""

    page_size: int = Field(default=MISSING_BLOCKS_PAGE_SIZE, gt=0, alias="PAGE_SIZE")
    """Maximum blocks fetched per pass."""

    finality_window: int = Field(default=FINALITY_WINDOW, ge=0, alias="FINALITY_WINDOW")
    """Blocks within this distance of the head stay pending."""

    fetch_timeout: float = Field(default=FETCH_TIMEOUT, gt=0, alias="FETCH_TIMEOUT")
    """Upper bound in seconds on one chain reader call."""

    poll_interval: float = Field(default=POLL_INTERVAL, ge=0, alias="POLL_INTERVAL")
    """Pause in seconds once storage has caught up with the head."""

    include_receipts: bool = Field(default=False, alias="INCLUDE_RECEIPTS")
    """Fetch transaction receipts and logs with every block."""

    tokens: list[str] = Field(default_factory=list, alias="TOKENS")
    """ERC-20 contracts whose total supply is recorded per block."""

    @field_validator("tokens", mode="before")
    @classmethod
    def parse_token_addresses(cls, v: Any) -> list[str]:
        """
        Normalize token addresses to lowercase hex.

        YAML parsers may interpret 0x-prefixed values as integers.
        """
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError(f"TOKENS must be a list, got {type(v).__name__}")
        return [normalize_hex(f"0x{t:040x}" if isinstance(t, int) else t) for t in v]

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> SyncConfig:
        """
        Load settings from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the data fails validation.
        """
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml(cls, content: str) -> SyncConfig:
        """Load settings from a YAML string."""
        return cls.model_validate(yaml.safe_load(content) or {})
