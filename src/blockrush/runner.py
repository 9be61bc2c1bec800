import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import blockrush.constants as C
from blockrush.collect import CollectProgress, Collector
from blockrush.config import Config
from blockrush.constants import SuitePhase, TestMode
from blockrush.dispatch import Dispatcher
from blockrush.errors import EmptySuite, InsufficientIdentities, TestCaseError
from blockrush.identity import Identity, create_identities
from blockrush.metrics import aggregate
from blockrush.models import TestCase
from blockrush.network import Network
from blockrush.pacing import Clock, Sleep, now_ms
from blockrush.txn_factory.builder import RequestBuilder, prepare_call, sign_transactions

log = logging.getLogger("blockrush.runner")


class TestOrchestrator:
    """Owns one test case: build -> dispatch -> collect -> aggregate."""

    __test__ = False

    def __init__(self, test: TestCase, builder: RequestBuilder, dispatcher: Dispatcher, collector: Collector):
        self.test = test
        self.builder = builder
        self.dispatcher = dispatcher
        self.collector = collector

    async def build(self) -> int:
        if self.test.mode == TestMode.SEND:
            return await sign_transactions(self.builder, self.test)
        self.test.call_request = prepare_call(self.test)
        return 0

    async def dispatch(self) -> None:
        await self.dispatcher.run(self.test)

    async def collect(self) -> None:
        if self.test.mode == TestMode.SEND:
            await self.collector.collect(self.test)

    def aggregate(self) -> None:
        aggregate(self.test)

    async def run(self) -> TestCase:
        await self.build()
        await self.dispatch()
        await self.collect()
        self.aggregate()
        return self.test


@dataclass(slots=True)
class SuiteResult:
    tests: list[TestCase]
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        out = []
        for t in self.tests:
            out.append({
                "name": t.name,
                "mode": str(t.mode),
                "senders": len(t.identities),
                "start_block": t.start_block,
                "end_block": t.end_block,
                "blocks": [
                    {"number": b.number, "hash": b.hash, "tx_count": b.tx_count,
                     "gas_used": b.gas_used, "timestamp": b.timestamp}
                    for b in t.blocks
                ],
                "metrics": t.metrics.as_dict() if t.metrics else None,
                "call_metrics": t.call_metrics.as_dict() if t.call_metrics else None,
                "collect_state": {a: str(s) for a, s in t.collect_state.items()},
                "error": t.error,
            })
        return {"tests": out, "errors": list(self.errors)}


class Runner:
    """Runs every configured test case against one shared pool of identities.

    Test-level errors are recorded and the remaining tests carry on; fatal
    errors (identities, fee estimation, signing) propagate out of `start()`.
    """

    def __init__(
        self,
        config: Config,
        network: Network,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        wall_ms: Callable[[], int] = now_ms,
        collect_delay: float = C.COLLECT_INTERVAL_SEC,
        collector_opts: dict[str, Any] | None = None,
        progress_interval: float = 1.0,
    ):
        self.config = config
        self.network = network
        self._sleep = sleep
        self.collect_delay = collect_delay
        self.progress_interval = progress_interval

        self.phase = SuitePhase.IDLE
        self.identities: list[Identity] = []
        self.tests: list[TestCase] = []
        self.errors: list[str] = []
        self.progress = CollectProgress()

        self.builder = RequestBuilder(network, config.node.chain_id)
        self.dispatcher = Dispatcher(network, clock=clock, sleep=sleep, wall_ms=wall_ms)
        self.collector = Collector(network, self.progress, clock=clock, sleep=sleep, **(collector_opts or {}))
        self._orchestrators: list[TestOrchestrator] = []

    def _fail(self, test: TestCase, err: Exception) -> None:
        test.error = str(err)
        self.errors.append(f"{test.name}: {err}")
        log.error("test %s aborted: %s", test.name, err)

    def _active(self) -> list[TestOrchestrator]:
        return [o for o in self._orchestrators if o.test.error is None]

    async def start(self) -> SuiteResult:
        if not self.config.tests:
            raise EmptySuite()

        try:
            log.info("Start Preparing data")
            self.phase = SuitePhase.PREPARING
            await self.prepare_senders()
            self.prepare_tests()
            await self.prepare_transactions()
            log.info("Tests Are Prepared")

            self.phase = SuitePhase.DISPATCH
            await self.run()
            log.info("Txs Were Sent")

            self.phase = SuitePhase.COLLECT
            await self.collect_data()

            self.phase = SuitePhase.METRICS
            self.collect_metrics()
        except BaseException:
            self.phase = SuitePhase.FAILED
            raise

        self.phase = SuitePhase.DONE
        if self.errors:
            log.warning("Errors occurred:")
            for err in self.errors:
                log.warning("  %s", err)
        return SuiteResult(tests=list(self.tests), errors=list(self.errors))

    async def prepare_senders(self) -> None:
        log.info("Preparing Senders")
        self.identities = await create_identities(self.network, self.config.private_keys)

    def prepare_tests(self) -> None:
        log.info("Preparing Tests")
        for name, entity in self.config.tests.items():
            test = TestCase.from_entity(name, entity)
            self.tests.append(test)
            self._orchestrators.append(TestOrchestrator(test, self.builder, self.dispatcher, self.collector))
            if test.senders > len(self.identities):
                self._fail(test, InsufficientIdentities(name, test.senders, len(self.identities)))
                continue
            test.identities = self.identities[: test.senders]

    async def prepare_transactions(self) -> None:
        """Sign everything up front. Tests share identities, so this runs one test at a time."""
        log.info("Prepare And Signing Transactions")
        for o in self._active():
            try:
                built = await o.build()
            except TestCaseError as e:
                self._fail(o.test, e)
                continue
            self.progress.total += built
            log.info("%s: prepared %s transactions", o.test.name, built)

    async def _dispatch_one(self, o: TestOrchestrator) -> None:
        try:
            await o.dispatch()
        except TestCaseError as e:
            self._fail(o.test, e)

    async def _dispatch_after(self, o: TestOrchestrator, earlier: list[asyncio.Event], done: asyncio.Event) -> None:
        try:
            for ev in earlier:
                await ev.wait()
            await self._dispatch_one(o)
        finally:
            done.set()

    async def run(self) -> None:
        """Dispatch every test concurrently, except that a send test waits for
        earlier send tests that use any of its identities.

        Builds hand out nonces in config order, so submitting in the same
        order keeps each identity's nonces gap-free on the wire.
        """
        log.info("Begin Sending Transactions")
        submitters: list[tuple[set[str], asyncio.Event]] = []
        async with asyncio.TaskGroup() as tg:
            for o in self._active():
                senders = {i.address for i in o.test.identities} if o.test.mode == TestMode.SEND else set()
                earlier = [ev for used, ev in submitters if used & senders]
                done = asyncio.Event()
                submitters.append((senders, done))
                if earlier:
                    log.info("%s: waiting for %s earlier test(s) sharing its senders", o.test.name, len(earlier))
                tg.create_task(self._dispatch_after(o, earlier, done), name=f"dispatch:{o.test.name}")
        log.info("Finish Sending Transactions")

    async def _report_progress(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            log.info("Collected transactions: %s", self.progress)
            with contextlib.suppress(TimeoutError):
                async with asyncio.timeout(self.progress_interval):
                    await stop.wait()

    async def collect_data(self) -> None:
        """Poll receipts for every send-mode test, one test after the other."""
        collecting = [o for o in self._active() if o.test.mode == TestMode.SEND]
        if not collecting:
            return

        await self._sleep(self.collect_delay)
        log.info("Begin Collect Data")
        stop = asyncio.Event()
        reporter = asyncio.create_task(self._report_progress(stop), name="collect_progress")
        try:
            for o in collecting:
                try:
                    await o.collect()
                except TestCaseError as e:
                    self._fail(o.test, e)
        finally:
            stop.set()
            await reporter
        log.info("End Collect Data (%s)", self.progress)

    def collect_metrics(self) -> None:
        for o in self._active():
            o.aggregate()
