"""Error taxonomy.

FatalError subclasses abort the whole run. TestCaseError subclasses abort a
single test case and end up in the suite's error list. Item-level problems
(one failed submission, one failed call, a receipt that is not there yet)
are never raised; they are logged and counted where they happen.
"""


class BlockrushError(Exception):
    pass


class ConfigError(BlockrushError):
    pass


class EmptySuite(BlockrushError):
    def __init__(self) -> None:
        super().__init__("no tests configured, please define at least one test")


# ---- fatal ----

class FatalError(BlockrushError):
    pass


class IdentityError(FatalError):
    pass


class NonceSourceUnavailable(FatalError):
    def __init__(self, address: str, cause: Exception | None = None) -> None:
        self.address = address
        super().__init__(f"failed to retrieve nonce for address {address}: {cause}")


class FeeEstimationError(FatalError):
    pass


class SigningError(FatalError):
    pass


# ---- per test case ----

class TestCaseError(BlockrushError):
    __test__ = False  # not a pytest class


class UnknownFunction(TestCaseError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"invalid method name: {name} (ensure the method exists in the contract ABI)")


class ContractError(TestCaseError):
    pass


class ParameterCountMismatch(TestCaseError):
    def __init__(self, expected: int, got: int) -> None:
        self.expected = expected
        self.got = got
        super().__init__(f"parameter count mismatch: expected {expected}, got {got}")


class ParameterConversionError(TestCaseError):
    def __init__(self, position: int, expected: str, detail: str | None = None) -> None:
        self.position = position
        self.expected = expected
        msg = f"parameter {position} must be {expected}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class InsufficientIdentities(TestCaseError):
    def __init__(self, test_name: str, wanted: int, available: int) -> None:
        self.wanted = wanted
        self.available = available
        super().__init__(
            f"test '{test_name}' needs {wanted} senders but only {available} are configured"
        )


class CollectionError(TestCaseError):
    pass


class DispatchError(TestCaseError):
    pass
