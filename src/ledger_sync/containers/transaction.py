"""Transaction, receipt and log containers."""

from __future__ import annotations

from pydantic import Field

from ledger_sync.types import StrictBaseModel

from .hex import MAX_QUANTITY, HexStr

MAX_LOG_TOPICS = 4
"""An EVM log carries at most four indexed topics (LOG0..LOG4)."""


class Log(StrictBaseModel):
    """An event emitted by a contract during transaction execution."""

    block_number: int = Field(ge=0, le=MAX_QUANTITY)
    """Number of the block that contains the emitting transaction."""

    tx_hash: HexStr
    """Hash of the emitting transaction."""

    log_index: int = Field(ge=0, le=MAX_QUANTITY)
    """Position of the log within its block."""

    address: HexStr
    """Contract that emitted the log."""

    topics: tuple[HexStr, ...] = Field(default=(), max_length=MAX_LOG_TOPICS)
    """Indexed event parameters. Topic 0 is usually the event signature."""

    data: HexStr = "0x"
    """ABI-encoded non-indexed parameters."""


class Receipt(StrictBaseModel):
    """Execution outcome of a single transaction."""

    tx_hash: HexStr
    """Hash of the transaction this receipt belongs to."""

    contract_address: HexStr | None = None
    """Address of the created contract, for contract-creation transactions."""

    cumulative_gas_used: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Gas used by this and all preceding transactions in the block."""

    gas_used: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Gas used by this transaction alone."""

    state_root: HexStr | None = None
    """Post-transaction state root (pre-Byzantium receipts only)."""

    status: int | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    """1 on success, 0 on failure. Absent on pre-Byzantium receipts."""

    logs: tuple[Log, ...] = ()
    """Logs emitted by the transaction, in order."""


class Transaction(StrictBaseModel):
    """
    A transaction included in a block.

    Transactions are owned by their block. They are stored and removed
    together with it and never looked up on their own.
    """

    hash: HexStr
    """Transaction hash."""

    from_address: HexStr | None = None
    """Sender address."""

    to_address: HexStr | None = None
    """Recipient address. None for contract creation."""

    value: int = Field(default=0, ge=0)
    """Transferred amount in wei. Arbitrary precision."""

    gas_limit: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Gas limit set by the sender."""

    gas_price: int = Field(default=0, ge=0)
    """Gas price in wei."""

    nonce: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    """Sender nonce."""

    input_data: HexStr = "0x"
    """Call data."""

    receipt: Receipt | None = None
    """Execution receipt, when the chain reader fetched it."""

    @property
    def logs(self) -> tuple[Log, ...]:
        """Logs emitted by this transaction (empty without a receipt)."""
        return self.receipt.logs if self.receipt is not None else ()
