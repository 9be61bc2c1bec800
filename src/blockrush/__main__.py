import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

import blockrush.constants as C
from blockrush.config import default_config_file, load_config
from blockrush.errors import BlockrushError
from blockrush.logging_config import setup_logging
from blockrush.network import Web3Network
from blockrush.report import output
from blockrush.runner import Runner

log = logging.getLogger("blockrush.cli")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="blockrush", description="Blockchain throughput testing")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (DEBUG, INFO, ...).")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run every test in the config file and print the report.")
    run.add_argument("-c", "--config",
                     type=Path,
                     default=default_config_file,
                     help="Path to config file.",
                     )
    run.add_argument("--rpc-url",
                     help="Override app.node.rpc_url.",
                     )
    run.add_argument("--logs-dir",
                     type=Path,
                     default=Path(C.LOGS_PATH),
                     help="Output dir for per-test reports.",
                     )

    serve = sub.add_parser("serve", help="Run the HTTP control API.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


async def run_suite(config_path: Path, rpc_url: str | None, logs_dir: Path) -> int:
    cfg = load_config(config_path)
    network = Web3Network(rpc_url or cfg.node.rpc_url, cfg.node.chain_id)
    result = await Runner(cfg, network).start()
    output(result, logs_dir=logs_dir)
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "serve":
        uvicorn.run("blockrush.app:app", host=args.host, port=args.port, lifespan="on")
        return 0

    try:
        return asyncio.run(run_suite(args.config, args.rpc_url, args.logs_dir))
    except BlockrushError as e:
        log.error("Runner encountered an error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
