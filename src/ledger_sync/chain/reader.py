"""
Chain reader and converter interfaces.

The sync core never talks to a node directly. It consumes these Protocols,
which keeps the core testable against fakes and independent of any
particular transport.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ledger_sync.containers import Block, Log

RawBlock = dict[str, Any]
"""A block as returned by the node, before conversion."""

LATEST_BLOCK = -1
"""Block number placeholder meaning "the node's latest block"."""


class ChainReader(Protocol):
    """
    Protocol for reading the external chain.

    Implementers should:
    - Bound every call with their own timeout
    - Raise TransientError for anything that may succeed on a later attempt
    """

    async def fetch_block(self, number: int) -> RawBlock:
        """
        Fetch a raw block by number.

        Args:
            number: Block number, or LATEST_BLOCK for the node's head.

        Raises:
            TransientError: On network errors, timeouts, or an unknown block.
        """
        ...

    async def fetch_head(self) -> int:
        """
        Fetch the number of the node's latest block.

        Raises:
            TransientError: On network errors or timeouts.
        """
        ...

    async def fetch_logs(self, address: str, from_block: int, to_block: int) -> list[Log]:
        """
        Fetch logs emitted by a contract in an inclusive block range.

        Raises:
            TransientError: On network errors or timeouts.
        """
        ...


class ContractCaller(Protocol):
    """Protocol for read-only contract calls evaluated at a given block."""

    async def call(self, to: str, data: str, block_number: int) -> str:
        """
        Execute a call without creating a transaction.

        Returns:
            Hex-encoded return data.

        Raises:
            TransientError: On network errors or timeouts.
        """
        ...


class BlockConverter(Protocol):
    """Protocol for converting raw node blocks into the local Block shape."""

    def to_block(self, raw: RawBlock) -> Block:
        """
        Convert a raw block.

        Raises:
            ConversionError: If a field is missing or malformed.
        """
        ...
