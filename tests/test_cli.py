from pathlib import Path

from blockrush.__main__ import main, parse_args


def test_parse_run_defaults():
    args = parse_args(["run"])
    assert args.command == "run"
    assert args.rpc_url is None
    assert args.logs_dir == Path("logs")


def test_parse_serve():
    args = parse_args(["serve", "--port", "9000"])
    assert (args.host, args.port) == ("0.0.0.0", 9000)


def test_run_with_missing_config_fails(tmp_path):
    assert main(["run", "-c", str(tmp_path / "missing.yaml")]) == 1


def test_run_with_empty_suite_fails(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text('app:\n  node:\n    rpc_url: "http://127.0.0.1:1"\n    chain_id: 1\n')
    assert main(["run", "-c", str(cfg), "--logs-dir", str(tmp_path / "logs")]) == 1
