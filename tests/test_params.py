import pytest

from blockrush.errors import ContractError, ParameterConversionError, ParameterCountMismatch, UnknownFunction
from blockrush.txn_factory.params import build_call_data, convert_params, find_function, parse_abi
from fakes import ERC20_ABI, RECIPIENT

MIXED_ABI = {
    "type": "function",
    "name": "configure",
    "inputs": [
        {"name": "flag", "type": "bool"},
        {"name": "label", "type": "string"},
        {"name": "delta", "type": "int64"},
    ],
}


def transfer_abi():
    return find_function(parse_abi(ERC20_ABI), "transfer")


def test_convert_address_and_uint():
    args = convert_params(transfer_abi(), [RECIPIENT.lower(), "100"])
    assert args == [RECIPIENT, 100]


def test_convert_rejects_non_numeric_string():
    with pytest.raises(ParameterConversionError) as exc:
        convert_params(transfer_abi(), [RECIPIENT, "notanumber"])
    assert exc.value.position == 1


@pytest.mark.parametrize("value", [100, "1e3", "0x10", " 5"])
def test_convert_integer_needs_plain_base10_string(value):
    with pytest.raises(ParameterConversionError):
        convert_params(transfer_abi(), [RECIPIENT, value])


def test_convert_rejects_bad_address():
    with pytest.raises(ParameterConversionError) as exc:
        convert_params(transfer_abi(), ["0x1234", "1"])
    assert exc.value.position == 0


def test_arity_mismatch():
    with pytest.raises(ParameterCountMismatch) as exc:
        convert_params(transfer_abi(), [RECIPIENT])
    assert (exc.value.expected, exc.value.got) == (2, 1)
    assert str(exc.value) == "parameter count mismatch: expected 2, got 1"


def test_bool_string_and_signed():
    assert convert_params(MIXED_ABI, [True, "x", "-3"]) == [True, "x", -3]
    assert convert_params(MIXED_ABI, ["FALSE", "", "0"]) == [False, "", 0]
    with pytest.raises(ParameterConversionError):
        convert_params(MIXED_ABI, ["yes", "x", "1"])
    with pytest.raises(ParameterConversionError):
        convert_params(MIXED_ABI, [True, 5, "1"])


def test_unsupported_type():
    fn = {"type": "function", "name": "f", "inputs": [{"name": "b", "type": "bytes32"}]}
    with pytest.raises(ParameterConversionError):
        convert_params(fn, ["0x00"])


def test_unknown_function_skips_events():
    abi = parse_abi(ERC20_ABI)
    with pytest.raises(UnknownFunction):
        find_function(abi, "Paused")
    with pytest.raises(UnknownFunction):
        find_function(abi, "mint")


def test_bad_abi():
    with pytest.raises(ContractError):
        parse_abi("{not json")


def test_build_call_data():
    data = build_call_data(ERC20_ABI, "transfer", [RECIPIENT, "100"])
    assert data[:4].hex() == "a9059cbb"
    assert len(data) == 4 + 32 * 2
    assert data[4:36][-20:].hex() == RECIPIENT[2:].lower()
    assert int.from_bytes(data[36:], "big") == 100


def test_negative_uint_fails_to_pack():
    with pytest.raises(ContractError):
        build_call_data(ERC20_ABI, "transfer", [RECIPIENT, "-1"])


def test_integer_accepts_explicit_sign():
    assert convert_params(transfer_abi(), [RECIPIENT, "+100"]) == [RECIPIENT, 100]
    assert convert_params(MIXED_ABI, [False, "", "-0"]) == [False, "", 0]
    with pytest.raises(ParameterConversionError):
        convert_params(transfer_abi(), [RECIPIENT, "+-1"])
