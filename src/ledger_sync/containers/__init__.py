"""Ledger containers: blocks, transactions and derived records."""

from .block import Block, BlockStatus
from .hex import MAX_QUANTITY, HexStr, normalize_hex
from .supply import TokenSupply
from .transaction import MAX_LOG_TOPICS, Log, Receipt, Transaction

__all__ = [
    "Block",
    "BlockStatus",
    "HexStr",
    "Log",
    "MAX_LOG_TOPICS",
    "MAX_QUANTITY",
    "Receipt",
    "TokenSupply",
    "Transaction",
    "normalize_hex",
]
