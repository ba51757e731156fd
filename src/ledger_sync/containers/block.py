"""Block container and its finality state machine."""

from __future__ import annotations

from enum import Enum, auto

from pydantic import Field

from ledger_sync.types import StrictBaseModel

from .hex import MAX_QUANTITY, HexStr
from .transaction import Transaction


class BlockStatus(Enum):
    """
    Finality state of a stored block.

    State Machine Diagram
    ---------------------
    ::

        PENDING --> FINAL

    Blocks close to the chain head can still be reorganized away, so they
    start out PENDING. Once a block falls outside the confirmation window it
    is treated as settled and becomes FINAL. There is no way back.
    """

    PENDING = auto()
    """Within the confirmation window: may still be replaced by a reorg."""

    FINAL = auto()
    """Outside the confirmation window: immutable."""

    def can_transition_to(self, target: BlockStatus) -> bool:
        """
        Check if a transition to the target status is valid.

        Re-finalizing a final block is allowed and is a no-op.
        """
        return target in _VALID_TRANSITIONS[self]


_VALID_TRANSITIONS: dict[BlockStatus, set[BlockStatus]] = {
    BlockStatus.PENDING: {BlockStatus.PENDING, BlockStatus.FINAL},
    BlockStatus.FINAL: {BlockStatus.FINAL},
}
"""Valid status transitions for stored blocks."""


class Block(StrictBaseModel):
    """
    One entry of the external ledger.

    The number identifies the block within local storage: at most one block
    per number is stored at any time.
    """

    number: int = Field(ge=0, le=MAX_QUANTITY)
    """Height of the block. Unique within storage."""

    hash: HexStr
    """Block hash."""

    parent_hash: HexStr
    """Hash of the parent block."""

    uncle_hash: HexStr | None = None
    """Hash of the ommers list."""

    nonce: HexStr | None = None
    """Proof-of-work nonce."""

    time: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Block timestamp in unix seconds."""

    gas_limit: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Maximum gas the block may consume."""

    gas_used: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Gas consumed by all transactions in the block."""

    size: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Encoded size in bytes."""

    difficulty: int = Field(default=0, ge=0)
    """Proof-of-work difficulty. Zero after the merge."""

    miner: HexStr | None = None
    """Beneficiary of the block reward."""

    extra_data: HexStr = "0x"
    """Free-form data set by the block producer."""

    transactions: tuple[Transaction, ...] = ()
    """Transactions in block order."""

    is_final: bool = False
    """Whether the block is outside the confirmation window."""

    @property
    def status(self) -> BlockStatus:
        """Finality status derived from the stored flag."""
        return BlockStatus.FINAL if self.is_final else BlockStatus.PENDING

    def finalized(self) -> Block:
        """Return this block marked final."""
        if not self.status.can_transition_to(BlockStatus.FINAL):
            raise ValueError(f"block {self.number} cannot become final")
        return self if self.is_final else self.model_copy(update={"is_final": True})

    def matches(self, other: Block) -> bool:
        """Compare ledger content, ignoring the finality flag."""
        return self.same_content(other, ignore=frozenset({"is_final"}))
