import io
import json

from rich.console import Console

from blockrush.constants import TestMode
from blockrush.metrics import CallMetrics, Metrics
from blockrush.models import TestCase
from blockrush.report import output, summary_rows
from blockrush.runner import SuiteResult


def finished_send():
    t = TestCase(name="transfers", mode=TestMode.SEND, tps=10, duration=1, senders=2, start_block=5, end_block=9)
    t.metrics = Metrics(config_tps=10, avg_txs_per_block=5, inclusion_distance={0: 3, 2: 7}, succeed_txs=10,
                        avg_time_to_include_ms=1500)
    return t


def finished_call():
    t = TestCase(name="balances", mode=TestMode.CALL, tps=4, duration=1, senders=1, start_block=9, end_block=9)
    t.call_metrics = CallMetrics(config_tps=4, call_sent_count=4, call_receive_count=3, call_errors_count=1,
                                 error_messages=["execution reverted"])
    return t


def test_summary_rows():
    rows = dict(summary_rows(finished_send()))
    assert rows["Start Block"] == "5"
    assert rows["End Block"] == "9"
    assert rows["TXs Mine Time (avg, s)"] == "1.500"
    assert rows["Success Txs"] == "10"

    rows = dict(summary_rows(finished_call()))
    assert rows["Total Received Results"] == "3"


def test_output_writes_logs_and_json(tmp_path):
    aborted = TestCase(name="broken", mode=TestMode.SEND, tps=1, duration=1, senders=9,
                       error="test 'broken' needs 9 senders but only 2 are configured")
    result = SuiteResult(tests=[finished_send(), finished_call(), aborted],
                         errors=[f"broken: {aborted.error}"])
    buf = io.StringIO()

    written = output(result, logs_dir=tmp_path, console=Console(file=buf, width=120))

    send_log = tmp_path / "transfers" / "send_output.log"
    call_log = tmp_path / "balances" / "call_output.log"
    assert send_log in written and call_log in written

    text = send_log.read_text()
    assert "Test (send): transfers" in text
    assert "+ 1" in text
    assert "Txs Count" in text
    assert "Total Error Calls" in call_log.read_text()
    assert "aborted" in (tmp_path / "broken" / "send_output.log").read_text()

    dump = json.loads((tmp_path / "suite_result.json").read_text())
    assert [t["name"] for t in dump["tests"]] == ["transfers", "balances", "broken"]
    assert dump["tests"][0]["metrics"]["inclusion_distance"] == {"0": 3, "2": 7}
    assert dump["tests"][1]["call_metrics"]["error_messages"] == ["execution reverted"]
    assert dump["errors"] == result.errors

    assert "Errors occurred" in buf.getvalue()
