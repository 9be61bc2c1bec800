"""Contract function lookup, argument coercion and call-data encoding."""
import json
import re
from collections.abc import Sequence
from typing import Any

from eth_abi import encode
from eth_utils import function_abi_to_4byte_selector, is_hex_address, to_checksum_address

from blockrush.errors import (
    ContractError,
    ParameterConversionError,
    ParameterCountMismatch,
    UnknownFunction,
)

_DECIMAL = re.compile(r"[+-]?[0-9]+")


def parse_abi(abi_json: str) -> list[dict[str, Any]]:
    try:
        abi = json.loads(abi_json)
    except json.JSONDecodeError as e:
        raise ContractError(f"failed to parse contract ABI: {e}") from e
    if isinstance(abi, dict):
        abi = [abi]
    if not isinstance(abi, list):
        raise ContractError("failed to parse contract ABI: expected a list of entries")
    return abi


def find_function(abi: list[dict[str, Any]], name: str) -> dict[str, Any]:
    for entry in abi:
        if isinstance(entry, dict) and entry.get("type", "function") == "function" and entry.get("name") == name:
            return entry
    raise UnknownFunction(name)


def _as_address(i: int, param: Any) -> str:
    if isinstance(param, str) and is_hex_address(param):
        return to_checksum_address(param)
    raise ParameterConversionError(i, "a valid Ethereum address (hex string)")


def _as_integer(i: int, param: Any, abi_type: str) -> int:
    if not isinstance(param, str):
        raise ParameterConversionError(i, f"a base-10 string for {abi_type}", f"got {type(param).__name__}")
    if not _DECIMAL.fullmatch(param):
        raise ParameterConversionError(i, f"a base-10 string for {abi_type}", f"invalid value {param!r}")
    return int(param, 10)


def _as_bool(i: int, param: Any) -> bool:
    if isinstance(param, bool):
        return param
    if isinstance(param, str) and param.lower() in ("true", "false"):
        return param.lower() == "true"
    raise ParameterConversionError(i, "a boolean (true/false or 'true'/'false')")


def _as_string(i: int, param: Any) -> str:
    if isinstance(param, str):
        return param
    raise ParameterConversionError(i, "a string")


def convert_params(fn_abi: dict[str, Any], params: Sequence[Any]) -> list[Any]:
    """Coerce loosely-typed config values into the function's declared input types.

    No implicit coercion beyond the per-type rules: addresses must be hex
    strings, (u)intN must be base-10 strings, bool accepts a bool or the
    strings "true"/"false", string must already be a string.
    """
    inputs = fn_abi.get("inputs", [])
    if len(inputs) != len(params):
        raise ParameterCountMismatch(len(inputs), len(params))

    converted: list[Any] = []
    for i, (inp, param) in enumerate(zip(inputs, params)):
        t = inp.get("type", "")
        if t == "address":
            converted.append(_as_address(i, param))
        elif t.startswith("uint") or t.startswith("int"):
            converted.append(_as_integer(i, param, t))
        elif t == "bool":
            converted.append(_as_bool(i, param))
        elif t == "string":
            converted.append(_as_string(i, param))
        else:
            raise ParameterConversionError(i, "a supported type", f"unsupported parameter type: {t}")
    return converted


def encode_call(fn_abi: dict[str, Any], args: Sequence[Any]) -> bytes:
    types = [inp["type"] for inp in fn_abi.get("inputs", [])]
    try:
        return function_abi_to_4byte_selector(fn_abi) + encode(types, list(args))
    except Exception as e:
        # e.g. a negative number for a uint, or a value out of range for its width
        raise ContractError(f"failed to pack ABI data for {fn_abi.get('name')}: {e}") from e


def build_call_data(abi_json: str, name: str, params: Sequence[Any]) -> bytes:
    fn_abi = find_function(parse_abi(abi_json), name)
    return encode_call(fn_abi, convert_params(fn_abi, params))
