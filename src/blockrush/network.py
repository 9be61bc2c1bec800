"""Node capabilities used by the load engine, and their web3 implementation."""
import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

import blockrush.constants as C
from blockrush.fee_info import FeeInfo
from blockrush.models import Artifact, Block, CallRequest, Outcome

if TYPE_CHECKING:
    from blockrush.identity import Identity

log = logging.getLogger("blockrush.network")


class Network(Protocol):
    async def pending_nonce(self, address: str) -> int: ...
    async def fee_info(self) -> FeeInfo: ...
    async def estimate_gas(self, sender: str, to: str, data: bytes, value: int) -> int: ...
    def sign(self, tx: dict[str, Any], identity: "Identity") -> tuple[str, bytes]: ...
    async def submit(self, artifact: Artifact) -> None: ...
    async def call(self, request: CallRequest) -> bytes: ...
    async def fetch_outcome(self, tx_hash: str) -> Outcome | None: ...
    async def fetch_block(self, block_hash: str) -> Block: ...
    async def block_number(self) -> int: ...


class Web3Network:
    """EVM JSON-RPC node reached through web3's async HTTP provider."""

    def __init__(self, rpc_url: str, chain_id: int, *, timeout: float = C.RPC_TIMEOUT):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.timeout = timeout
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))

    async def _rpc(self, aw, *, t: float | None = None):
        return await asyncio.wait_for(aw, timeout=t or self.timeout)

    async def pending_nonce(self, address: str) -> int:
        return await self._rpc(self.w3.eth.get_transaction_count(address, "pending"))

    async def fee_info(self) -> FeeInfo:
        tip_cap = await self._rpc(self.w3.eth.max_priority_fee)  # maxPriorityFeePerGas
        fee_cap = await self._rpc(self.w3.eth.gas_price)  # maxFeePerGas
        return FeeInfo.from_rpc(tip_cap, fee_cap)

    async def estimate_gas(self, sender: str, to: str, data: bytes, value: int) -> int:
        msg: dict[str, Any] = {"from": sender, "to": to, "value": value}
        if data:
            msg["data"] = data
        return await self._rpc(self.w3.eth.estimate_gas(msg))

    def sign(self, tx: dict[str, Any], identity: "Identity") -> tuple[str, bytes]:
        signed = identity.account.sign_transaction(tx)
        return Web3.to_hex(signed.hash), bytes(signed.raw_transaction)

    async def submit(self, artifact: Artifact) -> None:
        await self._rpc(self.w3.eth.send_raw_transaction(artifact.raw))

    async def call(self, request: CallRequest) -> bytes:
        return await self._rpc(self.w3.eth.call({"to": request.to, "data": request.data}))

    async def fetch_outcome(self, tx_hash: str) -> Outcome | None:
        try:
            r = await self._rpc(self.w3.eth.get_transaction_receipt(tx_hash))
        except TransactionNotFound:
            return None
        return Outcome(
            block_number=int(r["blockNumber"]),
            block_hash=Web3.to_hex(r["blockHash"]),
            success=int(r["status"]) == 1,
            effective_gas_price=int(r.get("effectiveGasPrice", 0) or 0),
        )

    async def fetch_block(self, block_hash: str) -> Block:
        b = await self._rpc(self.w3.eth.get_block(block_hash))
        return Block(
            number=int(b["number"]),
            hash=Web3.to_hex(b["hash"]),
            tx_count=len(b["transactions"]),
            gas_used=int(b["gasUsed"]),
            timestamp=int(b["timestamp"]),
        )

    async def block_number(self) -> int:
        return await self._rpc(self.w3.eth.block_number)


async def probe_node(url: str, max_retries: int = C.PROBE_RETRIES, retry_delay: float = C.PROBE_DELAY) -> int:
    """Probe the node's JSON-RPC endpoint with retries until it answers.

    Args:
        url: RPC endpoint URL
        max_retries: Maximum number of attempts
        retry_delay: Seconds to wait between attempts

    Returns:
        The block number reported by the node.
    """
    payload = {"jsonrpc": "2.0", "method": "eth_blockNumber", "params": [], "id": 1}

    for attempt in range(1, max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=C.RPC_TIMEOUT) as http:
                r = await http.post(url, json=payload)
                r.raise_for_status()
                data = r.json()
                if "error" in data:
                    raise RuntimeError(data["error"])
                height = int(data["result"], 16)
                log.info(f"RPC endpoint responding at block {height} (attempt {attempt}/{max_retries})")
                return height
        except Exception as e:
            if attempt < max_retries:
                log.info(f"RPC not ready yet (attempt {attempt}/{max_retries}): {e.__class__.__name__} - retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                log.error(f"RPC failed after {max_retries} attempts")
                raise
    raise RuntimeError("unreachable")
