"""EVM JSON-RPC client: chain tip, blocks, gas price and balances over HTTP POST."""

import itertools
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from walletsync.domain.models.block import Block
from walletsync.exceptions import DecodingError, RpcExecutionError, TransportError
from walletsync.infra.blockchain.base import ChainClient
from walletsync.infra.blockchain.evm.block_tag import BlockTag
from walletsync.infra.blockchain.evm.hex_codec import decode_big_int, decode_int, encode_block_tag
from walletsync.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

_RATE_LIMITED = 429


class JsonRpcChainClient(ChainClient):
    """One JSON-RPC request per call. Never retries; callers own retry policy."""

    def __init__(self, rpc_url: str, http_client: RateLimitedClient) -> None:
        self._rpc_url = rpc_url
        self._http = http_client
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list) -> Any:
        """Execute a JSON-RPC call and return the result field."""
        request_id = next(self._ids)
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }
        try:
            resp = await self._http.post(self._rpc_url, json=payload)
        except httpx.TransportError as e:
            raise TransportError(f"{method} failed: {e!r}") from e

        if resp.status_code == _RATE_LIMITED or resp.status_code >= 500:
            raise TransportError(f"{method} failed: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise DecodingError(f"{method}: response is not JSON") from e
        if not isinstance(data, dict):
            raise DecodingError(f"{method}: unexpected response {type(data).__name__}")

        if "error" in data:
            error = data["error"]
            if not isinstance(error, dict) or "code" not in error:
                raise DecodingError(f"{method}: malformed error envelope {error!r}")
            raise RpcExecutionError(
                code=error["code"],
                message=error.get("message", ""),
                data=error.get("data"),
            )

        if "result" not in data:
            raise DecodingError(f"{method}: response has neither result nor error")
        if data.get("id") != request_id:
            raise DecodingError(f"{method}: response id {data.get('id')!r} does not match request {request_id}")

        return data["result"]

    async def fetch_chain_tip(self) -> int:
        result = await self._call("eth_blockNumber", [])
        return decode_int(result)

    async def fetch_block(self, height: int, include_transactions: bool = True) -> Block:
        result = await self._call("eth_getBlockByNumber", [encode_block_tag(height), include_transactions])
        if not isinstance(result, dict):
            raise DecodingError(f"Block {height} not available (result={result!r})")

        try:
            number = decode_int(result["number"])
            block = Block(
                number=number,
                hash=result.get("hash"),
                timestamp=result["timestamp"],
                transactions=result["transactions"],
            )
        except (KeyError, ValidationError) as e:
            raise DecodingError(f"Block {height} has unexpected shape: {e}") from e

        if block.number != height:
            raise DecodingError(f"Requested block {height}, node returned {block.number}")
        logger.debug("Fetched block %d with %d transactions", height, len(block.transactions))
        return block

    async def fetch_gas_price(self) -> int:
        result = await self._call("eth_gasPrice", [])
        return decode_big_int(result)

    async def fetch_balance(self, address: str, block: BlockTag = BlockTag.LATEST) -> int:
        result = await self._call("eth_getBalance", [address, encode_block_tag(block)])
        return decode_big_int(result)
