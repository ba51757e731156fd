"""ERC-20 total supply read through a contract call."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ledger_sync.types import ConversionError

from .reader import ContractCaller

logger = logging.getLogger(__name__)

TOTAL_SUPPLY_SELECTOR = "0x18160ddd"
"""Function selector of `totalSupply()`: first 4 bytes of its keccak-256 hash."""


def decode_uint256(data: str, *, block_number: int | None = None) -> int:
    """
    Decode a single ABI-encoded uint256 return value.

    Raises:
        ConversionError: If the data is empty or not 32 bytes of hex.
    """
    digits = data[2:] if data.startswith(("0x", "0X")) else data
    if not digits:
        # A call to an address without code returns empty data.
        raise ConversionError(
            "empty return data; address is not an ERC-20 contract at this block",
            block_number=block_number,
        )
    if len(digits) != 64:
        raise ConversionError(
            f"expected 32 bytes of return data, got {len(digits) // 2}", block_number=block_number
        )
    try:
        return int(digits, 16)
    except ValueError:
        raise ConversionError("return data is not hex", block_number=block_number) from None


@dataclass(slots=True)
class RpcTokenSupplySource:
    """Value source reading `totalSupply()` of a token as of a block."""

    caller: ContractCaller
    """Contract call transport, usually an RpcChainReader."""

    async def compute(self, subject: str, block_number: int) -> int:
        """Read the total supply of token `subject` at `block_number`."""
        data = await self.caller.call(subject, TOTAL_SUPPLY_SELECTOR, block_number)
        supply = decode_uint256(data, block_number=block_number)
        logger.debug("totalSupply(%s) at %d = %d", subject, block_number, supply)
        return supply
