"""Reconcile submitted transactions against receipts and blocks.

Each identity is polled by its own task through a small state machine:

    PENDING(attempt) --all receipts found--> RESOLVED
    PENDING(attempt) --attempt budget spent--> ABANDONED

Abandoned transactions keep `outcome=None` and are left out of every metric.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field

import blockrush.constants as C
from blockrush.constants import CollectState
from blockrush.errors import CollectionError
from blockrush.models import Artifact, TestCase
from blockrush.network import Network
from blockrush.pacing import Clock, Sleep, Ticker

log = logging.getLogger("blockrush.collect")


@dataclass(slots=True)
class PollState:
    max_attempts: int
    attempt: int = 0
    state: CollectState = CollectState.PENDING

    def after_sweep(self, complete: bool) -> CollectState:
        if self.state != CollectState.PENDING:
            return self.state
        if complete:
            self.state = CollectState.RESOLVED
        else:
            self.attempt += 1
            if self.attempt >= self.max_attempts:
                self.state = CollectState.ABANDONED
        return self.state


@dataclass(slots=True)
class CollectProgress:
    """Suite-wide collected/total counter, written by every collecting task."""

    total: int = 0
    collected: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    async def add(self, n: int = 1) -> None:
        async with self._lock:
            self.collected += n

    def __str__(self):
        return f"{self.collected}/{self.total}"


class Collector:
    def __init__(
        self,
        network: Network,
        progress: CollectProgress | None = None,
        *,
        max_attempts: int = C.ATTEMPTS_TO_COLLECT,
        interval: float = C.COLLECT_INTERVAL_SEC,
        rpc_rate: float = C.RPC_CALLS_PER_SECOND,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.network = network
        self.progress = progress or CollectProgress()
        self.max_attempts = max_attempts
        self.interval = interval
        self.rpc_rate = rpc_rate
        self._clock = clock
        self._sleep = sleep

    async def collect(self, test: TestCase) -> None:
        """Poll every identity's receipts, then fetch each referenced block once."""
        ticker = Ticker(self.rpc_rate, clock=self._clock, sleep=self._sleep)
        block_hashes: set[str] = set()
        lock = asyncio.Lock()

        async with asyncio.TaskGroup() as tg:
            tasks = {
                address: tg.create_task(
                    self._collect_identity(test.name, arts, ticker, block_hashes, lock),
                    name=f"collect:{test.name}:{address}",
                )
                for address, arts in test.artifacts.items()
            }
        test.collect_state = {address: t.result() for address, t in tasks.items()}

        blocks = []
        for block_hash in block_hashes:
            try:
                blocks.append(await self.network.fetch_block(block_hash))
            except Exception as e:
                raise CollectionError(f"test '{test.name}': failed to fetch block {block_hash}: {e}") from e
        test.blocks = sorted(blocks, key=lambda b: b.number)
        log.info("%s: collected %s blocks", test.name, len(test.blocks))

    async def _collect_identity(
        self,
        test_name: str,
        artifacts: list[Artifact],
        ticker: Ticker,
        block_hashes: set[str],
        lock: asyncio.Lock,
    ) -> CollectState:
        # a failed submission never gets an outcome, don't wait for it
        pollable = [a for a in artifacts if a.submit_error is None]
        poll = PollState(self.max_attempts)

        while True:
            for art in pollable:
                if art.resolved:
                    continue
                await self._poll_one(art, poll.attempt, block_hashes, lock)
                await ticker.wait()

            state = poll.after_sweep(all(a.resolved for a in pollable))
            if state == CollectState.RESOLVED:
                return state
            if state == CollectState.ABANDONED:
                left = sum(1 for a in pollable if not a.resolved)
                sender = pollable[0].sender if pollable else "?"
                log.warning("%s: giving up on %s txns from %s after %s attempts", test_name, left, sender,
                            poll.attempt)
                return state
            await self._sleep(self.interval)

    async def _poll_one(self, art: Artifact, attempt: int, block_hashes: set[str], lock: asyncio.Lock) -> None:
        try:
            outcome = await self.network.fetch_outcome(art.tx_hash)
        except Exception as e:
            log.warning("receipt lookup failed (attempt %s): txHash=%s: %s", attempt + 1, art.tx_hash, e)
            return
        if outcome is None:
            log.debug("transaction not mined yet (attempt %s): txHash=%s", attempt + 1, art.tx_hash)
            return
        if art.resolve(outcome):
            async with lock:
                block_hashes.add(outcome.block_hash)
            await self.progress.add()
