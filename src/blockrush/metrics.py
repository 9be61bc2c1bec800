"""Reduce collected outcomes and blocks into per-test statistics."""
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from blockrush.constants import TestMode
from blockrush.models import TestCase

log = logging.getLogger("blockrush.metrics")

Row = tuple[str, str]


@dataclass(slots=True)
class Metrics:
    config_tps: int
    avg_txs_per_block: int = 0
    # (block the tx was mined in) - (block height when it was sent) -> tx count
    inclusion_distance: dict[int, int] = field(default_factory=dict)
    avg_time_to_include_ms: int = 0
    avg_gas_price_per_tx: int = 0  # wei
    avg_gas_used_per_block: int = 0
    succeed_txs: int = 0
    failed_txs: int = 0
    # not part of the success/failure counts
    unresolved_txs: int = 0
    submit_failed_txs: int = 0
    blocks: int = 0

    @property
    def resolved_txs(self) -> int:
        return self.succeed_txs + self.failed_txs

    def distance_rows(self) -> list[Row]:
        """Dense +0..+max table, zero rows where no tx landed at that distance."""
        if not self.inclusion_distance:
            return []
        top = max(self.inclusion_distance)
        return [(f"+ {d}", str(self.inclusion_distance.get(d, 0))) for d in range(top + 1)]

    def summary(self) -> list[Row]:
        return [
            ("TPS (in config)", str(self.config_tps)),
            ("TXs In Block (avg)", str(self.avg_txs_per_block)),
            ("TXs Mine Time (avg, s)", f"{self.avg_time_to_include_ms / 1000.0:.3f}"),
            ("Gas Price per Tx (avg)", str(self.avg_gas_price_per_tx)),
            ("Gas Usage per Block (avg)", str(self.avg_gas_used_per_block)),
            ("Success Txs", str(self.succeed_txs)),
            ("Failed Txs", str(self.failed_txs)),
            ("Unresolved Txs", str(self.unresolved_txs)),
            ("Submit Errors", str(self.submit_failed_txs)),
        ]

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["inclusion_distance"] = {str(k): v for k, v in sorted(self.inclusion_distance.items())}
        d["resolved_txs"] = self.resolved_txs
        return d


@dataclass(slots=True)
class CallMetrics:
    """Running counters of a call-mode test; the dispatcher updates them in place."""

    config_tps: int
    call_sent_count: int = 0
    call_receive_count: int = 0
    call_errors_count: int = 0
    error_messages: list[str] = field(default_factory=list)

    def record_ok(self) -> None:
        self.call_sent_count += 1
        self.call_receive_count += 1

    def record_error(self, message: str) -> None:
        self.call_sent_count += 1
        self.call_errors_count += 1
        self.error_messages.append(message)

    def summary(self) -> list[Row]:
        return [
            ("TPS", str(self.config_tps)),
            ("Total Sent Calls", str(self.call_sent_count)),
            ("Total Received Results", str(self.call_receive_count)),
            ("Total Error Calls", str(self.call_errors_count)),
        ]

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _avg(total: int, count: int) -> int:
    return total // count if count else 0


def aggregate_send(test: TestCase) -> Metrics:
    m = Metrics(config_tps=test.tps, blocks=len(test.blocks))

    txs_in_blocks = sum(b.tx_count for b in test.blocks)
    gas_used = sum(b.gas_used for b in test.blocks)
    m.avg_txs_per_block = _avg(txs_in_blocks, len(test.blocks))
    m.avg_gas_used_per_block = _avg(gas_used, len(test.blocks))

    blocks_by_number = {b.number: b for b in test.blocks}
    total_gas_price = 0
    total_time_to_include = 0
    resolved = 0

    for art in test.all_artifacts():
        if art.submit_error is not None:
            m.submit_failed_txs += 1
            continue
        outcome = art.outcome
        if outcome is None:
            # abandoned by the collector: unknown, neither success nor failure
            m.unresolved_txs += 1
            continue

        sent_block = art.sent_block if art.sent_block is not None else outcome.block_number
        distance = outcome.block_number - sent_block
        if distance < 0:
            log.debug("tx %s mined at %s before recorded send height %s", art.tx_hash, outcome.block_number, sent_block)
            distance = 0
        m.inclusion_distance[distance] = m.inclusion_distance.get(distance, 0) + 1

        total_gas_price += outcome.effective_gas_price

        block = blocks_by_number.get(outcome.block_number)
        if block is not None and art.sent_at_ms is not None:
            # block timestamps have second resolution, never count a negative lag
            total_time_to_include += max(0, block.timestamp * 1000 - art.sent_at_ms)

        if outcome.success:
            m.succeed_txs += 1
        else:
            m.failed_txs += 1
        resolved += 1

    m.avg_time_to_include_ms = _avg(total_time_to_include, resolved)
    m.avg_gas_price_per_tx = _avg(total_gas_price, resolved)
    return m


def aggregate_call(test: TestCase) -> CallMetrics:
    if test.call_metrics is None:
        return CallMetrics(config_tps=test.tps)
    return test.call_metrics


def aggregate(test: TestCase) -> None:
    if test.mode == TestMode.SEND:
        test.metrics = aggregate_send(test)
    else:
        test.call_metrics = aggregate_call(test)
