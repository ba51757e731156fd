"""
Ethereum JSON-RPC chain reader.

Reads blocks, the head number, logs and contract call results from a node
over HTTP. Every transport problem (timeouts, connection errors, HTTP
errors, JSON-RPC error objects, a block the node does not have yet) is
reported as a TransientError, which the sync loop answers by leaving the
block missing and retrying it on a later pass.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ledger_sync.containers import Log
from ledger_sync.types import ConversionError, TransientError

from .converter import hex_to_int, to_log
from .reader import LATEST_BLOCK, RawBlock

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
"""HTTP request timeout in seconds."""


def block_tag(number: int) -> str:
    """Encode a block number as a JSON-RPC block parameter."""
    return "latest" if number == LATEST_BLOCK else hex(number)


@dataclass(slots=True)
class RpcChainReader:
    """
    JSON-RPC implementation of ChainReader and ContractCaller.

    Owns an `httpx.AsyncClient` unless one is injected. Use it as an async
    context manager, or call `aclose()`, to release connections.
    """

    url: str
    """HTTP endpoint of the node."""

    timeout: float = DEFAULT_TIMEOUT
    """Per-request timeout in seconds."""

    include_receipts: bool = False
    """Fetch a receipt for every transaction of a block (one batched request)."""

    client: httpx.AsyncClient | None = None
    """HTTP client. Created on first use when not injected."""

    _ids: itertools.count[int] = field(default_factory=lambda: itertools.count(1))
    """JSON-RPC request id sequence."""

    _owns_client: bool = field(default=False)
    """Whether `aclose()` should close the client."""

    def _client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self.client

    def _request(self, method: str, params: list[Any]) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

    async def _post(self, payload: Any, *, block_number: int | None) -> Any:
        """Send a payload and return the decoded JSON body."""
        try:
            response = await self._client().post(self.url, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise TransientError(
                f"request to {self.url} timed out", block_number=block_number
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise TransientError(
                f"HTTP error {exc.response.status_code}: {exc.response.text[:200]}",
                block_number=block_number,
            ) from exc
        except httpx.RequestError as exc:
            raise TransientError(
                f"network error while connecting to {self.url}: {exc}", block_number=block_number
            ) from exc
        except ValueError as exc:
            raise TransientError(
                f"node returned invalid JSON: {exc}", block_number=block_number
            ) from exc

    @staticmethod
    def _result(body: Any, method: str, block_number: int | None) -> Any:
        """Extract the result of a JSON-RPC response object."""
        if not isinstance(body, dict):
            raise TransientError(f"{method}: malformed response", block_number=block_number)
        error = body.get("error")
        if error is not None:
            raise TransientError(
                f"{method}: rpc error {error.get('code')}: {error.get('message')}",
                block_number=block_number,
            )
        return body.get("result")

    async def _call(
        self, method: str, params: list[Any], *, block_number: int | None = None
    ) -> Any:
        body = await self._post(self._request(method, params), block_number=block_number)
        return self._result(body, method, block_number)

    # -------------------------------------------------------------------------
    # ChainReader
    # -------------------------------------------------------------------------

    async def fetch_head(self) -> int:
        """Fetch the number of the node's latest block."""
        result = await self._call("eth_blockNumber", [])
        try:
            return hex_to_int(result, field="result")
        except ConversionError as exc:
            raise TransientError(f"eth_blockNumber: unexpected result {result!r}") from exc

    async def fetch_block(self, number: int) -> RawBlock:
        """Fetch a block with full transaction objects (and receipts if enabled)."""
        number_arg = None if number == LATEST_BLOCK else number
        block = await self._call(
            "eth_getBlockByNumber", [block_tag(number), True], block_number=number_arg
        )
        if block is None:
            # The node has not seen this block yet (lagging or behind a load
            # balancer). Asking again later is the right answer.
            raise TransientError("node returned no block", block_number=number_arg)
        if not isinstance(block, dict):
            raise TransientError("eth_getBlockByNumber: malformed result", block_number=number_arg)

        if self.include_receipts and block.get("transactions"):
            block["receipts"] = await self._fetch_receipts(block, number_arg)
        return block

    async def _fetch_receipts(self, block: RawBlock, number: int | None) -> list[dict[str, Any]]:
        """Fetch the receipts of all transactions in one batched request."""
        hashes = [tx["hash"] if isinstance(tx, dict) else tx for tx in block["transactions"]]
        batch = [self._request("eth_getTransactionReceipt", [h]) for h in hashes]
        body = await self._post(batch, block_number=number)
        if not isinstance(body, list):
            raise TransientError("receipt batch: malformed response", block_number=number)

        # Batch responses may come back in any order.
        by_id = {item.get("id"): item for item in body if isinstance(item, dict)}
        receipts = []
        for request in batch:
            receipt = self._result(
                by_id.get(request["id"]), "eth_getTransactionReceipt", number
            )
            if receipt is None:
                raise TransientError(
                    f"no receipt for transaction {request['params'][0]}", block_number=number
                )
            receipts.append(receipt)
        return receipts

    async def fetch_logs(self, address: str, from_block: int, to_block: int) -> list[Log]:
        """Fetch logs emitted by `address` between two blocks, inclusive."""
        result = await self._call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "fromBlock": block_tag(from_block),
                    "toBlock": block_tag(to_block),
                }
            ],
            block_number=from_block,
        )
        if not isinstance(result, list):
            raise TransientError("eth_getLogs: malformed result", block_number=from_block)
        return [to_log(raw) for raw in result]

    # -------------------------------------------------------------------------
    # ContractCaller
    # -------------------------------------------------------------------------

    async def call(self, to: str, data: str, block_number: int) -> str:
        """Run `eth_call` against the state at `block_number`."""
        number_arg = None if block_number == LATEST_BLOCK else block_number
        result = await self._call(
            "eth_call", [{"to": to, "data": data}, block_tag(block_number)], block_number=number_arg
        )
        if not isinstance(result, str):
            raise TransientError("eth_call: malformed result", block_number=number_arg)
        return result

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the HTTP client if this reader created it."""
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None
            self._owns_client = False

    async def __aenter__(self) -> RpcChainReader:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
