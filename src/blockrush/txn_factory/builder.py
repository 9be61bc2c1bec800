import logging
from dataclasses import dataclass
from typing import Any

from eth_utils import is_hex_address, to_checksum_address

import blockrush.constants as C
from blockrush.errors import ContractError, FeeEstimationError, SigningError
from blockrush.identity import Identity
from blockrush.models import Artifact, CallRequest, TestCase
from blockrush.network import Network
from blockrush.txn_factory.params import build_call_data

log = logging.getLogger("blockrush.txn")


def filler_payload(size: int) -> bytes:
    """Payload of exactly `size` bytes. Only the size matters."""
    return bytes([C.FILLER_BYTE]) * size


def contract_address(test: TestCase) -> str:
    addr = test.contract.address
    if not is_hex_address(addr):
        raise ContractError(f"invalid contract address for test '{test.name}': {addr!r}")
    return to_checksum_address(addr)


def payload_for(test: TestCase) -> bytes:
    """Call data for a contract test, filler for a sized transfer, else empty.

    Contract data is encoded once per test and reused for every artifact.
    """
    if test.is_contract:
        fn = test.contract.function
        return build_call_data(fn.abi, fn.name, fn.params)
    if test.data_size > 0:
        return filler_payload(test.data_size)
    return b""


@dataclass(slots=True)
class RequestBuilder:
    network: Network
    chain_id: int

    async def build(self, identity: Identity, to: str, value: int, data: bytes) -> Artifact:
        """Estimate fees and gas, sign, and return an artifact carrying the identity's next nonce.

        The nonce is only consumed once signing succeeded. Estimation and
        signing failures are fatal for the run.
        """
        try:
            fees = await self.network.fee_info()
        except Exception as e:
            raise FeeEstimationError(f"error getting fee suggestion: {e}") from e

        try:
            gas = await self.network.estimate_gas(identity.address, to, data, value)
        except Exception as e:
            raise FeeEstimationError(f"failed to estimate gas: {e}") from e

        nonce = identity.peek()
        tx: dict[str, Any] = {
            "type": 2,
            "chainId": self.chain_id,
            "nonce": nonce,
            "to": to,
            "value": value,
            "gas": gas,
            **fees.as_tx_fields(),
        }
        if data:
            tx["data"] = data

        try:
            tx_hash, raw = self.network.sign(tx, identity)
        except Exception as e:
            raise SigningError(f"failed to sign transaction for {identity.address}: {e}") from e

        identity.next()
        return Artifact(sender=identity.address, nonce=nonce, tx_hash=tx_hash, raw=raw, tx=tx)


async def sign_transactions(builder: RequestBuilder, test: TestCase) -> int:
    """Build `request_count // len(identities)` artifacts for each identity of a send-mode test.

    Returns the number of artifacts built.
    """
    data = payload_for(test)
    receiver = contract_address(test) if test.is_contract else None
    per_identity = test.per_identity

    built = 0
    for identity in test.identities:
        to = receiver or identity.address  # plain transfers go back to the sender
        arts = test.artifacts.setdefault(identity.address, [])
        for _ in range(per_identity):
            arts.append(await builder.build(identity, to, test.value, data))
            built += 1
        log.debug("%s: built %s txns for %s (nonces %s..%s)", test.name, per_identity, identity.address,
                  arts[0].nonce if arts else None, arts[-1].nonce if arts else None)

    dropped = test.request_count - built
    if dropped:
        log.info("%s: %s requests do not divide evenly across %s senders and are dropped",
                 test.name, dropped, len(test.identities))
    return built


def prepare_call(test: TestCase) -> CallRequest:
    """Read-only request for a call-mode test."""
    if not test.is_contract:
        raise ContractError(f"call test '{test.name}' needs contract address, function name and ABI")
    return CallRequest(to=contract_address(test), data=payload_for(test))
