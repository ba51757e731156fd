"""Hex string types and integer bounds shared by the ledger containers."""

from __future__ import annotations

from typing import Annotated, Final

from pydantic import AfterValidator


def normalize_hex(value: str) -> str:
    """
    Lower-case a 0x-prefixed hex string.

    Nodes are inconsistent about checksum casing. Comparing addresses and
    hashes only works reliably once everything is folded to one case.

    Raises:
        ValueError: If the value is not 0x-prefixed hex.
    """
    if not value.startswith(("0x", "0X")):
        raise ValueError(f"expected 0x-prefixed hex, got {value[:20]!r}")
    digits = value[2:]
    try:
        if digits:
            int(digits, 16)
    except ValueError:
        raise ValueError(f"invalid hex digits in {value[:20]!r}") from None
    return "0x" + digits.lower()


HexStr = Annotated[str, AfterValidator(normalize_hex)]
"""A 0x-prefixed hex string normalized to lower case (hashes, addresses, data)."""

MAX_QUANTITY: Final = 2**63 - 1
"""
Largest block number, counter or gas amount a container accepts.

Matches a signed 64-bit storage integer. Quantities that can exceed it
(wei values, difficulty, token supplies) are unbounded and stored as text.
"""
