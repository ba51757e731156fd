"""Watcher recording ERC-20 total supply per block."""

from __future__ import annotations

from dataclasses import dataclass

from ledger_sync.containers import TokenSupply, normalize_hex
from ledger_sync.storage import TokenSupplyRepository
from ledger_sync.sync.config import MISSING_BLOCKS_PAGE_SIZE
from ledger_sync.types import ConversionError

from .base import BlockWatcher


@dataclass(slots=True)
class TokenSupplyWatcher(BlockWatcher):
    """
    Appends one TokenSupply record per observation.

    Records are never updated in place. Observing the same block twice
    leaves two records.
    """

    repository: TokenSupplyRepository | None = None
    """Where supply records are written. Defaults to `blocks` when it is a full Database."""

    name: str = "token_supply"
    page_size: int = MISSING_BLOCKS_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.repository is None:
            if not hasattr(self.blocks, "put_token_supply"):
                raise TypeError("TokenSupplyWatcher needs a TokenSupplyRepository")
            self.repository = self.blocks  # type: ignore[assignment]

    def check_subject(self, subject: str) -> str:
        """Token addresses must be hex. Returns the lower-cased address."""
        try:
            return normalize_hex(subject)
        except ValueError as exc:
            raise ConversionError(str(exc), field="token_address") from exc

    def make_record(self, subject: str, block_number: int, value: int) -> TokenSupply:
        return TokenSupply(token_address=subject, block_number=block_number, value=value)

    def persist(self, record: TokenSupply, block_id: int) -> int:
        assert self.repository is not None
        return self.repository.put_token_supply(record, block_id)

    def missing_blocks(self, subject: str, start: int, end: int) -> list[int]:
        assert self.repository is not None
        return self.repository.missing_token_supply_blocks(subject, start, end, self.page_size)
