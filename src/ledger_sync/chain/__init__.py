"""
Chain access: interfaces the sync core consumes and JSON-RPC adapters for them.

The core depends only on the Protocols in `reader`. The RPC adapters are one
possible implementation for Ethereum-compatible nodes.
"""

from .converter import RpcBlockConverter, hex_to_int, to_log, to_receipt
from .reader import (
    LATEST_BLOCK,
    BlockConverter,
    ChainReader,
    ContractCaller,
    RawBlock,
)
from .rpc import RpcChainReader, block_tag
from .token import TOTAL_SUPPLY_SELECTOR, RpcTokenSupplySource, decode_uint256

__all__ = [
    "LATEST_BLOCK",
    "BlockConverter",
    "ChainReader",
    "ContractCaller",
    "RawBlock",
    "RpcBlockConverter",
    "RpcChainReader",
    "RpcTokenSupplySource",
    "TOTAL_SUPPLY_SELECTOR",
    "block_tag",
    "decode_uint256",
    "hex_to_int",
    "to_log",
    "to_receipt",
]
