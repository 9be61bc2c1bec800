import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from blockrush.constants import TestMode
from blockrush.errors import ConfigError

default_config_file = Path(os.getenv("BLOCKRUSH_CONFIG", "config.yaml"))


@dataclass(frozen=True, slots=True)
class NodeConfig:
    rpc_url: str
    chain_id: int


@dataclass(frozen=True, slots=True)
class FunctionConfig:
    name: str = ""
    abi: str = ""
    params: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class ContractConfig:
    address: str = ""
    function: FunctionConfig = field(default_factory=FunctionConfig)

    @property
    def is_set(self) -> bool:
        return bool(self.address and self.function.name and self.function.abi)


@dataclass(frozen=True, slots=True)
class TestConfig:
    senders: int
    duration: int
    tps: int
    data_size: int = 0
    value: str = ""
    contract: ContractConfig = field(default_factory=ContractConfig)

    __test__ = False


@dataclass(frozen=True, slots=True)
class TestEntity:
    type: TestMode
    config: TestConfig

    __test__ = False


@dataclass(frozen=True, slots=True)
class Config:
    node: NodeConfig
    tests: dict[str, TestEntity]
    private_keys: tuple[str, ...]


def _section(data: Any, name: str, where: str) -> dict:
    value = data.get(name) if isinstance(data, dict) else None
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: '{name}' must be a mapping")
    return value


def _positive_int(raw: Any, name: str, where: str, *, minimum: int = 1) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < minimum:
        raise ConfigError(f"{where}: '{name}' must be an integer >= {minimum}, got {raw!r}")
    return raw


def _parse_test(name: str, raw: Any) -> TestEntity:
    where = f"tests.{name}"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: test entry must be a mapping")
    try:
        mode = TestMode(raw.get("type"))
    except ValueError:
        raise ConfigError(f"{where}: unknown test type {raw.get('type')!r} (expected 'send' or 'call')") from None

    c = _section(raw, "config", where)
    contract = _section(c, "contract", where)
    function = _section(contract, "function", where)
    params = function.get("params") or []
    if not isinstance(params, list):
        raise ConfigError(f"{where}: 'contract.function.params' must be a list")

    value = c.get("value")
    test_config = TestConfig(
        senders=_positive_int(c.get("senders"), "senders", where),
        duration=_positive_int(c.get("duration"), "duration", where),
        tps=_positive_int(c.get("tps"), "tps", where),
        data_size=_positive_int(c.get("data_size", 0), "data_size", where, minimum=0),
        value="" if value is None else str(value),
        contract=ContractConfig(
            address=str(contract.get("address") or ""),
            function=FunctionConfig(
                name=str(function.get("name") or ""),
                abi=str(function.get("abi") or ""),
                params=tuple(params),
            ),
        ),
    )
    return TestEntity(type=mode, config=test_config)


def parse_config(data: Any, *, source: str = "<config>") -> Config:
    """Validate a decoded YAML document and turn it into a Config."""
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be a mapping")

    node = _section(_section(data, "app", source), "node", source)
    rpc_url = os.getenv("RPC_URL") or node.get("rpc_url")
    if not rpc_url:
        raise ConfigError(f"{source}: 'app.node.rpc_url' is required")
    chain_id = node.get("chain_id")
    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        raise ConfigError(f"{source}: 'app.node.chain_id' must be an integer")

    tests = {name: _parse_test(name, raw) for name, raw in _section(data, "tests", source).items()}

    keys = _section(data, "senders", source).get("private_keys") or []
    if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
        raise ConfigError(f"{source}: 'senders.private_keys' must be a list of hex strings")

    return Config(
        node=NodeConfig(rpc_url=str(rpc_url), chain_id=chain_id),
        tests=tests,
        private_keys=tuple(keys),
    )


def _plain(node: Any) -> Any:
    # ruamel returns CommentedMap/CommentedSeq even with typ="safe" on some versions
    if isinstance(node, dict):
        return {str(k): _plain(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_plain(v) for v in node]
    return node


def load_config(path: str | Path = default_config_file) -> Config:
    config_file = Path(path)
    try:
        text = config_file.read_text()
    except OSError as e:
        raise ConfigError(f"failed to read configuration file '{config_file}': {e}") from e

    yaml = YAML(typ="safe")
    try:
        data = yaml.load(text)
    except YAMLError as e:
        raise ConfigError(f"failed to parse configuration file '{config_file}': {e}") from e

    return parse_config(_plain(data), source=str(config_file))
