from typing import Final
from enum import StrEnum


class TestMode(StrEnum):
    SEND = "send"
    CALL = "call"

    __test__ = False  # not a pytest class


class CollectState(StrEnum):
    PENDING   = "PENDING"
    RESOLVED  = "RESOLVED"
    ABANDONED = "ABANDONED"


class SuitePhase(StrEnum):
    IDLE       = "IDLE"
    PREPARING  = "PREPARING"
    DISPATCH   = "DISPATCH"
    COLLECT    = "COLLECT"
    METRICS    = "METRICS"
    DONE       = "DONE"
    FAILED     = "FAILED"


# Collector polling budget
RPC_CALLS_PER_SECOND: Final = 600
ATTEMPTS_TO_COLLECT: Final = 10
COLLECT_INTERVAL_SEC: Final = 5

# Filler byte for synthesized payloads ('A')
FILLER_BYTE: Final = 0x41

LOGS_PATH: Final = "logs"
LOG_SUFFIX: Final = "_output.log"
RESULT_FILE: Final = "suite_result.json"

RPC_TIMEOUT = 10.0
PROBE_RETRIES = 30
PROBE_DELAY = 2.0

__all__ = [
    "ATTEMPTS_TO_COLLECT",
    "COLLECT_INTERVAL_SEC",
    "FILLER_BYTE",
    "LOGS_PATH",
    "LOG_SUFFIX",
    "PROBE_DELAY",
    "PROBE_RETRIES",
    "RESULT_FILE",
    "RPC_CALLS_PER_SECOND",
    "RPC_TIMEOUT",

    ######
    "CollectState",
    "SuitePhase",
    "TestMode",
]
