"""In-memory stand-ins for the node and the clock."""
import asyncio
from typing import Any

from blockrush.config import Config, ContractConfig, FunctionConfig, NodeConfig, TestConfig, TestEntity
from blockrush.constants import TestMode
from blockrush.fee_info import FeeInfo
from blockrush.models import Artifact, Block, CallRequest, Outcome

# well-known local development keys
KEYS = (
    "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
    "59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d",
    "5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a",
)

TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

ERC20_ABI = (
    '[{"inputs":[{"name":"to","type":"address"},{"name":"value","type":"uint256"}],'
    '"name":"transfer","outputs":[{"name":"","type":"bool"}],"stateMutability":"nonpayable","type":"function"},'
    '{"inputs":[{"name":"account","type":"address"}],"name":"balanceOf",'
    '"outputs":[{"name":"","type":"uint256"}],"stateMutability":"view","type":"function"},'
    '{"anonymous":false,"inputs":[],"name":"Paused","type":"event"}]'
)


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)

    def wall_ms(self) -> int:
        return 1_700_000_000_000 + int(self.now * 1000)


class FakeNetwork:
    """Node double. Submitted transactions are mined into the next block when `auto_mine` is set."""

    def __init__(self, *, height: int = 100, start_nonce: int = 0, auto_mine: bool = True):
        self.height = height
        self.start_nonce = start_nonce
        self.auto_mine = auto_mine
        self.fees = FeeInfo(max_priority_fee_per_gas=1_000_000_000, max_fee_per_gas=2_000_000_000)
        self.gas = 21_000
        self.gas_price = 1_500_000_000

        self.nonce_error: Exception | None = None
        self.fee_error: Exception | None = None
        self.sign_error: Exception | None = None
        self.height_error: Exception | None = None
        self.block_error: Exception | None = None
        self.submit_fail_nonces: set[int] = set()
        self.call_fail_at: set[int] = set()
        self.never_mined: set[str] = set()
        self.hidden_polls: dict[str, int] = {}

        self.submitted: list[Artifact] = []
        self.events: list[str] = []
        self.calls = 0
        self.polls: dict[str, int] = {}
        self.receipts: dict[str, Outcome] = {}
        self.blocks: dict[str, Block] = {}

    async def pending_nonce(self, address: str) -> int:
        if self.nonce_error is not None:
            raise self.nonce_error
        return self.start_nonce

    async def fee_info(self) -> FeeInfo:
        if self.fee_error is not None:
            raise self.fee_error
        return self.fees

    async def estimate_gas(self, sender: str, to: str, data: bytes, value: int) -> int:
        return self.gas + 16 * len(data)

    def sign(self, tx: dict[str, Any], identity) -> tuple[str, bytes]:
        if self.sign_error is not None:
            raise self.sign_error
        tx_hash = f"0x{identity.address[2:].lower()}{tx['nonce']:024x}"
        return tx_hash, repr(sorted(tx.items())).encode()

    def mine(self, tx_hash: str, number: int, *, success: bool = True, timestamp: int | None = None) -> Outcome:
        block_hash = f"0x{number:064x}"
        outcome = Outcome(block_number=number, block_hash=block_hash, success=success,
                          effective_gas_price=self.gas_price)
        self.receipts[tx_hash] = outcome
        prev = self.blocks.get(block_hash)
        self.blocks[block_hash] = Block(
            number=number,
            hash=block_hash,
            tx_count=(prev.tx_count if prev else 0) + 1,
            gas_used=(prev.gas_used if prev else 0) + self.gas,
            timestamp=timestamp if timestamp is not None else 1_700_000_000 + number,
        )
        return outcome

    async def submit(self, artifact: Artifact) -> None:
        if artifact.nonce in self.submit_fail_nonces:
            raise RuntimeError("nonce too low")
        self.submitted.append(artifact)
        self.events.append("submit")
        if self.auto_mine and artifact.tx_hash not in self.never_mined:
            self.mine(artifact.tx_hash, self.height + 1)

    async def call(self, request: CallRequest) -> bytes:
        n = self.calls
        self.calls += 1
        self.events.append("call")
        if n in self.call_fail_at:
            raise RuntimeError(f"execution reverted ({n})")
        return b"\x00" * 32

    async def fetch_outcome(self, tx_hash: str) -> Outcome | None:
        self.polls[tx_hash] = self.polls.get(tx_hash, 0) + 1
        if self.hidden_polls.get(tx_hash, 0) >= self.polls[tx_hash]:
            return None
        return self.receipts.get(tx_hash)

    async def fetch_block(self, block_hash: str) -> Block:
        if self.block_error is not None:
            raise self.block_error
        return self.blocks[block_hash]

    async def block_number(self) -> int:
        if self.height_error is not None:
            raise self.height_error
        return self.height


def send_entity(senders: int, tps: int, duration: int = 1, **kw) -> TestEntity:
    return TestEntity(type=TestMode.SEND, config=TestConfig(senders=senders, duration=duration, tps=tps, **kw))


def call_entity(senders: int, tps: int, duration: int = 1, *, contract: ContractConfig | None = None) -> TestEntity:
    return TestEntity(
        type=TestMode.CALL,
        config=TestConfig(senders=senders, duration=duration, tps=tps, contract=contract or ContractConfig()),
    )


def balance_of_contract() -> ContractConfig:
    return ContractConfig(
        address=TOKEN.lower(),
        function=FunctionConfig(name="balanceOf", abi=ERC20_ABI, params=(RECIPIENT,)),
    )


def transfer_contract() -> ContractConfig:
    return ContractConfig(
        address=TOKEN,
        function=FunctionConfig(name="transfer", abi=ERC20_ABI, params=(RECIPIENT, "100")),
    )


def make_config(tests: dict[str, TestEntity], keys=KEYS[:2]) -> Config:
    return Config(node=NodeConfig(rpc_url="http://127.0.0.1:8545", chain_id=1337), tests=tests,
                  private_keys=tuple(keys))
