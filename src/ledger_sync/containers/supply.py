"""Token supply: the derived record produced by the token supply watcher."""

from __future__ import annotations

from pydantic import Field

from ledger_sync.types import StrictBaseModel

from .hex import MAX_QUANTITY, HexStr


class TokenSupply(StrictBaseModel):
    """
    Total supply of an ERC-20 token as of a given block.

    Records are append-only. Observing the same token at the same block twice
    yields two records, each tied to the stored block it was computed for.
    """

    token_address: HexStr
    """Token contract address."""

    block_number: int = Field(ge=0, le=MAX_QUANTITY)
    """Block the supply was read at."""

    value: int = Field(ge=0)
    """Raw total supply (not scaled by decimals)."""
