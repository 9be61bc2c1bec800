import asyncio
import logging
import time
from collections.abc import Callable

from blockrush.constants import TestMode
from blockrush.errors import DispatchError
from blockrush.identity import Identity
from blockrush.metrics import CallMetrics
from blockrush.models import TestCase
from blockrush.network import Network
from blockrush.pacing import Clock, Sleep, Ticker, now_ms
from blockrush.txn_factory.builder import prepare_call

log = logging.getLogger("blockrush.dispatch")


class Dispatcher:
    """Fires a test's prepared work from every identity at the test's combined rate."""

    def __init__(
        self,
        network: Network,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        wall_ms: Callable[[], int] = now_ms,
    ):
        self.network = network
        self._clock = clock
        self._sleep = sleep
        self._wall_ms = wall_ms

    async def _height(self, fallback: int) -> int:
        try:
            return await self.network.block_number()
        except Exception as e:
            log.warning("failed to read block number, keeping %s: %s", fallback, e)
            return fallback

    async def run(self, test: TestCase) -> None:
        log.info("Run Test: %s (%s, %s tps x %ss, %s senders)", test.name, test.mode, test.tps, test.duration,
                 len(test.identities))
        ticker = Ticker(test.tps, clock=self._clock, sleep=self._sleep)

        if test.mode == TestMode.CALL:
            if test.call_request is None:
                test.call_request = prepare_call(test)
            test.call_metrics = CallMetrics(config_tps=test.tps)

        try:
            test.start_block = await self.network.block_number()
        except Exception as e:
            raise DispatchError(f"test '{test.name}': cannot read start block: {e}") from e

        async with asyncio.TaskGroup() as tg:
            for identity in test.identities:
                if test.mode == TestMode.SEND:
                    tg.create_task(self._run_send(test, identity, ticker), name=f"send:{test.name}:{identity.address}")
                else:
                    tg.create_task(self._run_call(test, ticker), name=f"call:{test.name}:{identity.address}")

        test.end_block = await self._height(test.start_block)
        log.info("Finished Test: %s, blocks %s..%s", test.name, test.start_block, test.end_block)

    async def _run_send(self, test: TestCase, identity: Identity, ticker: Ticker) -> None:
        height = test.start_block or 0
        for art in test.artifacts.get(identity.address, []):
            # block before sending the tx
            height = await self._height(height)
            art.sent_block = height
            art.sent_at_ms = self._wall_ms()

            try:
                await self.network.submit(art)
            except Exception as e:
                art.submit_error = str(e)
                log.warning("failed to send transaction %s: %s", art, e)

            await ticker.wait()

    async def _run_call(self, test: TestCase, ticker: Ticker) -> None:
        cm = test.call_metrics
        # unlike sends, calls are not split: every identity issues the full request count
        for _ in range(test.request_count):
            try:
                await self.network.call(test.call_request)
            except Exception as e:
                log.warning("contract call failed: %s", e)
                cm.record_error(str(e))
            else:
                cm.record_ok()

            await ticker.wait()
