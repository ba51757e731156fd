"""
Conversion of Ethereum JSON-RPC payloads into ledger containers.

Nodes encode every quantity as a 0x-prefixed hex string. Conversion parses
those, attaches receipts to their transactions when the reader fetched
them, and reports the first bad field as a ConversionError.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ledger_sync.containers import Block, Log, Receipt, Transaction
from ledger_sync.types import ConversionError

from .reader import RawBlock


def hex_to_int(value: Any, *, field: str, block_number: int | None = None) -> int:
    """
    Parse a JSON-RPC quantity.

    Raises:
        ConversionError: If the value is not a hex string.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise ConversionError(
            f"expected hex quantity, got {type(value).__name__}",
            block_number=block_number,
            field=field,
        )
    try:
        return int(value, 16)
    except ValueError:
        raise ConversionError(
            f"invalid hex quantity {value[:20]!r}", block_number=block_number, field=field
        ) from None


def _optional_int(raw: dict[str, Any], key: str, block_number: int | None) -> int | None:
    value = raw.get(key)
    return None if value is None else hex_to_int(value, field=key, block_number=block_number)


def to_log(raw: dict[str, Any]) -> Log:
    """Convert a raw log object."""
    number = _optional_int(raw, "blockNumber", None)
    try:
        return Log(
            block_number=hex_to_int(raw.get("blockNumber"), field="blockNumber"),
            tx_hash=raw["transactionHash"],
            log_index=hex_to_int(raw.get("logIndex"), field="logIndex", block_number=number),
            address=raw["address"],
            topics=tuple(raw.get("topics", ())),
            data=raw.get("data", "0x"),
        )
    except KeyError as exc:
        raise ConversionError("missing field", block_number=number, field=str(exc.args[0])) from exc
    except ValidationError as exc:
        raise ConversionError(_describe(exc), block_number=number) from exc


def to_receipt(raw: dict[str, Any], block_number: int | None = None) -> Receipt:
    """Convert a raw receipt object."""
    try:
        return Receipt(
            tx_hash=raw["transactionHash"],
            contract_address=raw.get("contractAddress"),
            cumulative_gas_used=hex_to_int(
                raw.get("cumulativeGasUsed", "0x0"),
                field="cumulativeGasUsed",
                block_number=block_number,
            ),
            gas_used=hex_to_int(
                raw.get("gasUsed", "0x0"), field="gasUsed", block_number=block_number
            ),
            state_root=raw.get("root"),
            status=_optional_int(raw, "status", block_number),
            logs=tuple(to_log(log) for log in raw.get("logs", ())),
        )
    except KeyError as exc:
        raise ConversionError(
            "missing field", block_number=block_number, field=str(exc.args[0])
        ) from exc
    except ValidationError as exc:
        raise ConversionError(_describe(exc), block_number=block_number) from exc


def _describe(exc: ValidationError) -> str:
    """First validation problem, as a short message."""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}"


class RpcBlockConverter:
    """
    Converts `eth_getBlockByNumber` payloads (full transaction objects).

    Receipts are optional. When the reader attached a `receipts` list to the
    raw block, each receipt is matched to its transaction by hash.
    """

    def to_block(self, raw: RawBlock) -> Block:
        """Convert a raw block."""
        number = hex_to_int(raw.get("number"), field="number")

        receipts = {
            receipt.tx_hash: receipt
            for receipt in (to_receipt(r, number) for r in raw.get("receipts") or ())
        }

        try:
            transactions = tuple(
                self._to_transaction(tx, receipts, number) for tx in raw.get("transactions", ())
            )
            return Block(
                number=number,
                hash=raw["hash"],
                parent_hash=raw["parentHash"],
                uncle_hash=raw.get("sha3Uncles"),
                nonce=raw.get("nonce"),
                time=hex_to_int(
                    raw.get("timestamp", "0x0"), field="timestamp", block_number=number
                ),
                gas_limit=hex_to_int(
                    raw.get("gasLimit", "0x0"), field="gasLimit", block_number=number
                ),
                gas_used=hex_to_int(
                    raw.get("gasUsed", "0x0"), field="gasUsed", block_number=number
                ),
                size=hex_to_int(raw.get("size", "0x0"), field="size", block_number=number),
                difficulty=hex_to_int(
                    raw.get("difficulty", "0x0"), field="difficulty", block_number=number
                ),
                miner=raw.get("miner"),
                extra_data=raw.get("extraData", "0x"),
                transactions=transactions,
            )
        except KeyError as exc:
            raise ConversionError(
                "missing field", block_number=number, field=str(exc.args[0])
            ) from exc
        except ValidationError as exc:
            raise ConversionError(_describe(exc), block_number=number) from exc

    @staticmethod
    def _to_transaction(
        raw: dict[str, Any] | str,
        receipts: dict[str, Receipt],
        block_number: int,
    ) -> Transaction:
        """Convert one raw transaction object."""
        if isinstance(raw, str):
            # Only hashes: the reader asked for the block without full transactions.
            raise ConversionError(
                "block holds transaction hashes, not transaction objects",
                block_number=block_number,
                field="transactions",
            )
        tx_hash = raw["hash"]
        return Transaction(
            hash=tx_hash,
            from_address=raw.get("from"),
            to_address=raw.get("to"),
            value=hex_to_int(raw.get("value", "0x0"), field="value", block_number=block_number),
            gas_limit=hex_to_int(raw.get("gas", "0x0"), field="gas", block_number=block_number),
            gas_price=hex_to_int(
                raw.get("gasPrice", "0x0"), field="gasPrice", block_number=block_number
            ),
            nonce=hex_to_int(raw.get("nonce", "0x0"), field="nonce", block_number=block_number),
            input_data=raw.get("input", "0x"),
            receipt=receipts.get(str(tx_hash).lower()),
        )
