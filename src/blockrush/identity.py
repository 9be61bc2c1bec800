import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_account import Account
from eth_account.signers.local import LocalAccount

from blockrush.errors import IdentityError, NonceSourceUnavailable

if TYPE_CHECKING:
    from blockrush.network import Network

log = logging.getLogger("blockrush.identity")


@dataclass(slots=True)
class Identity:
    """A signing key, its address and its nonce counter.

    The counter is only ever advanced by the builder that owns this identity
    at the time, so it carries no lock.
    """

    account: LocalAccount
    nonce: int

    @property
    def address(self) -> str:
        return self.account.address

    def peek(self) -> int:
        return self.nonce

    def next(self) -> int:
        n = self.nonce
        self.nonce += 1
        return n

    def __str__(self):
        return f"{self.address} (next nonce {self.nonce})"


def load_account(private_key: str) -> LocalAccount:
    key = private_key.strip()
    if not key.startswith("0x"):
        key = f"0x{key}"
    try:
        return Account.from_key(key)
    except (ValueError, TypeError) as e:
        raise IdentityError("failed to decrypt sender's private key, verify the provided key") from e


async def create_identity(network: "Network", private_key: str) -> Identity:
    account = load_account(private_key)
    try:
        nonce = await network.pending_nonce(account.address)
    except Exception as e:
        raise NonceSourceUnavailable(account.address, e) from e
    log.debug("identity %s starts at nonce %s", account.address, nonce)
    return Identity(account=account, nonce=nonce)


async def create_identities(network: "Network", private_keys: list[str] | tuple[str, ...]) -> list[Identity]:
    """Create identities in config order. Any failure is fatal for the run."""
    identities = []
    for pk in private_keys:
        identities.append(await create_identity(network, pk))
    log.info("Prepared %s senders", len(identities))
    return identities
