"""Render suite results to the console and to per-test log files."""
import json
import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

import blockrush.constants as C
from blockrush.constants import TestMode
from blockrush.models import TestCase
from blockrush.runner import SuiteResult

log = logging.getLogger("blockrush.report")

RULE = "=" * 44


def summary_rows(test: TestCase) -> list[tuple[str, str]]:
    rows = [
        ("Senders", str(len(test.identities))),
        ("Start Block", str(test.start_block if test.start_block is not None else "-")),
        ("End Block", str(test.end_block if test.end_block is not None else "-")),
    ]
    if test.mode == TestMode.SEND and test.metrics is not None:
        rows.extend(test.metrics.summary())
    elif test.mode == TestMode.CALL and test.call_metrics is not None:
        rows.extend(test.call_metrics.summary())
    return rows


def render_test(console: Console, test: TestCase) -> None:
    console.print(f"\n\n{RULE}")
    console.print(f"Test ({test.mode}): {test.name}", markup=False)
    console.print(f"{RULE}\n")

    if test.error is not None:
        console.print(f"aborted: {test.error}", markup=False)
        return

    summary = Table("Metric", "Result")
    for label, value in summary_rows(test):
        summary.add_row(label, value)
    console.print(summary)

    if test.mode == TestMode.SEND and test.metrics is not None:
        console.print("Block distance (distance between block when tx was sent and block when tx was mined):")
        blocks = Table("", "Txs Count")
        for label, value in test.metrics.distance_rows():
            blocks.add_row(label, value)
        console.print(blocks)


def write_test_log(test: TestCase, logs_dir: Path) -> Path | None:
    folder = logs_dir / test.name
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log.error("Could not create folder for logs, error: %s, folderpath: %s", e, folder)
        return None

    path = folder / f"{test.mode}{C.LOG_SUFFIX}"
    with path.open("w") as fh:
        render_test(Console(file=fh, width=120, no_color=True, force_terminal=False), test)
    return path


def output(result: SuiteResult, *, logs_dir: str | Path = C.LOGS_PATH, console: Console | None = None) -> list[Path]:
    """Print every test to the console and write the per-test logs plus a JSON dump."""
    console = console or Console()
    logs_dir = Path(logs_dir)
    written = []
    for test in result.tests:
        render_test(console, test)
        path = write_test_log(test, logs_dir)
        if path is not None:
            written.append(path)

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        result_file = logs_dir / C.RESULT_FILE
        result_file.write_text(json.dumps(result.as_dict(), indent=2))
        written.append(result_file)
    except OSError as e:
        log.error("Could not write %s: %s", C.RESULT_FILE, e)

    if result.errors:
        console.print("Errors occurred:")
        for err in result.errors:
            console.print(f"  {err}", markup=False)
    return written
