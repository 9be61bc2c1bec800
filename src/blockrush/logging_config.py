import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("BLOCKRUSH_LOG_FILE", "/tmp/blockrush.log")

HANDLERS = ["console", "file"]

# client libraries chatter on every request at INFO/DEBUG
QUIET_LOGGERS = ("uvicorn.access", "web3", "httpx", "httpcore", "urllib3", "asyncio")


def _logger(level: str) -> dict:
    return {"level": level, "handlers": HANDLERS, "propagate": False}


def build_logging_config(level: str = LOG_LEVEL, log_file: str = LOG_FILE) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-6s %(name)8s:%(lineno)d %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stdout,
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "default",
                "filename": log_file,
                "mode": "a",
                "delay": True,  # no file until the first record
            },
        },
        "loggers": {
            "blockrush": _logger(level),
            **{name: _logger("WARNING") for name in QUIET_LOGGERS},
        },
        "root": {
            "level": "WARNING",
            "handlers": HANDLERS,
        },
    }


def setup_logging(level: str | None = None):
    """Apply the logging configuration. `level` overrides LOG_LEVEL for the blockrush loggers."""
    logging.config.dictConfig(build_logging_config((level or LOG_LEVEL).upper()))
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
