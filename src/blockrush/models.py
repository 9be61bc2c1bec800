import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from blockrush.config import ContractConfig, TestEntity
from blockrush.constants import CollectState, TestMode

if TYPE_CHECKING:
    from blockrush.identity import Identity
    from blockrush.metrics import CallMetrics, Metrics

log = logging.getLogger("blockrush.models")


@dataclass(frozen=True, slots=True)
class Outcome:
    block_number: int
    block_hash: str
    success: bool
    effective_gas_price: int  # wei


@dataclass(frozen=True, slots=True)
class Block:
    number: int
    hash: str
    tx_count: int
    gas_used: int
    timestamp: int  # seconds


@dataclass(slots=True)
class Artifact:
    """One signed transaction, ready for submission."""

    sender: str
    nonce: int
    tx_hash: str
    raw: bytes
    tx: dict[str, Any]
    sent_block: int | None = None
    sent_at_ms: int | None = None
    submit_error: str | None = None
    outcome: Outcome | None = None

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    def resolve(self, outcome: Outcome) -> bool:
        """Record the outcome. Returns False (and keeps the first one) if already resolved."""
        if self.outcome is not None:
            log.debug("outcome already recorded for %s, ignoring", self.tx_hash)
            return False
        self.outcome = outcome
        return True

    def __str__(self):
        return f"{self.sender} -- nonce={self.nonce} -- {self.tx_hash}"


@dataclass(frozen=True, slots=True)
class CallRequest:
    """A read-only contract call shared by every identity of a call-mode test."""

    to: str
    data: bytes


@dataclass(slots=True)
class TestCase:
    name: str
    mode: TestMode
    tps: int
    duration: int
    senders: int
    data_size: int = 0
    value: int = 0
    contract: ContractConfig = field(default_factory=ContractConfig)

    # run state
    identities: list["Identity"] = field(default_factory=list)
    artifacts: dict[str, list[Artifact]] = field(default_factory=dict)
    call_request: CallRequest | None = None
    collect_state: dict[str, CollectState] = field(default_factory=dict)
    blocks: list[Block] = field(default_factory=list)
    start_block: int | None = None
    end_block: int | None = None
    metrics: "Metrics | None" = None
    call_metrics: "CallMetrics | None" = None
    error: str | None = None

    __test__ = False

    @classmethod
    def from_entity(cls, name: str, entity: TestEntity) -> "TestCase":
        c = entity.config
        return cls(
            name=name,
            mode=entity.type,
            tps=c.tps,
            duration=c.duration,
            senders=c.senders,
            data_size=c.data_size,
            value=parse_value(c.value, name),
            contract=c.contract,
        )

    @property
    def request_count(self) -> int:
        return self.tps * self.duration

    @property
    def per_identity(self) -> int:
        """Requests per identity; the remainder of an uneven split is dropped."""
        if not self.identities:
            return 0
        return self.request_count // len(self.identities)

    @property
    def is_contract(self) -> bool:
        return self.contract.is_set

    def all_artifacts(self) -> list[Artifact]:
        return [a for arts in self.artifacts.values() for a in arts]


def parse_value(raw: str, test_name: str) -> int:
    if raw == "":
        return 0
    try:
        value = int(raw, 10)
    except ValueError:
        log.warning("failed to parse value for test '%s': using default value 0", test_name)
        return 0
    if value < 0:
        log.warning("negative value for test '%s': using default value 0", test_name)
        return 0
    return value
