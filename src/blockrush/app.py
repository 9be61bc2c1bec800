import asyncio
import contextlib
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel

from blockrush.config import Config, default_config_file, load_config
from blockrush.constants import SuitePhase
from blockrush.errors import BlockrushError
from blockrush.logging_config import setup_logging
from blockrush.network import Network, Web3Network, probe_node
from blockrush.runner import Runner, SuiteResult

setup_logging()
log = logging.getLogger("blockrush.app")


class SuiteService:
    """Owns the config, the node connection and the last suite run."""

    def __init__(self, config: Config, network: Network, *, runner_factory: Callable[..., Runner] = Runner):
        self.config = config
        self.network = network
        self.runner_factory = runner_factory
        self.runner: Runner | None = None
        self.result: SuiteResult | None = None
        self.last_error: str | None = None
        self.task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> bool:
        if self.running:
            return False
        self.runner = self.runner_factory(self.config, self.network)
        self.last_error = None
        self.task = asyncio.create_task(self._run(self.runner), name="suite")
        return True

    async def _run(self, runner: Runner) -> None:
        try:
            self.result = await runner.start()
        except BlockrushError as e:
            self.last_error = str(e)
            log.error("Suite run failed: %s", e)
        except Exception as e:
            self.last_error = f"{e.__class__.__name__}: {e}"
            log.exception("Suite run crashed")

    async def wait(self) -> None:
        if self.task is not None:
            await self.task

    async def stop(self) -> None:
        if self.running:
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task

    def status(self) -> dict[str, Any]:
        r = self.runner
        return {
            "running": self.running,
            "phase": str(r.phase if r else SuitePhase.IDLE),
            "collected": r.progress.collected if r else 0,
            "total": r.progress.total if r else 0,
            "last_error": self.last_error,
        }


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "service", None) is None:
        cfg = load_config(default_config_file)
        log.info("Probing RPC endpoint %s...", cfg.node.rpc_url)
        await probe_node(cfg.node.rpc_url)
        app.state.service = SuiteService(cfg, Web3Network(cfg.node.rpc_url, cfg.node.chain_id))
        log.info("Node is ready. %s tests configured.", len(cfg.tests))

    try:
        yield
    finally:
        log.info("Shutting down...")
        await app.state.service.stop()
        log.info("Shutdown complete")


app = FastAPI(
    title="Blockrush",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Suite", "description": "Start a suite run and read its results"},
    ],
)

r_suite = APIRouter(prefix="/suite", tags=["Suite"])


class StatusResp(BaseModel):
    running: bool
    phase: str
    collected: int
    total: int
    last_error: str | None = None


class StartResp(BaseModel):
    started: bool
    tests: list[str]


@app.get("/health")
def health():
    return {"status": "ok"}


@r_suite.post("/run", response_model=StartResp)
async def suite_run():
    svc: SuiteService = app.state.service
    if not svc.start():
        raise HTTPException(status_code=409, detail="A suite run is already in progress")
    return StartResp(started=True, tests=list(svc.config.tests))


@r_suite.get("/status", response_model=StatusResp)
async def suite_status():
    return app.state.service.status()


@r_suite.get("/result")
async def suite_result():
    svc: SuiteService = app.state.service
    if svc.result is None:
        raise HTTPException(status_code=404, detail="No completed suite run yet")
    return svc.result.as_dict()


@r_suite.get("/errors")
async def suite_errors() -> list[str]:
    svc: SuiteService = app.state.service
    return list(svc.result.errors) if svc.result else []


app.include_router(r_suite)
