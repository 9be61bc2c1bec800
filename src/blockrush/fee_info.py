"""EIP-1559 fee suggestion as read from the node."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FeeInfo:
    """Suggested EIP-1559 fee parameters from the node.

    All values are in wei. `max_priority_fee_per_gas` comes from
    eth_maxPriorityFeePerGas, `max_fee_per_gas` from eth_gasPrice.
    """

    max_priority_fee_per_gas: int  # wei
    max_fee_per_gas: int  # wei

    @classmethod
    def from_rpc(cls, tip_cap: int | str, fee_cap: int | str) -> "FeeInfo":
        """Build FeeInfo from raw RPC answers (ints or 0x-prefixed hex strings)."""
        def _wei(v: int | str) -> int:
            return int(v, 16) if isinstance(v, str) else int(v)

        return cls(max_priority_fee_per_gas=_wei(tip_cap), max_fee_per_gas=_wei(fee_cap))

    def as_tx_fields(self) -> dict[str, int]:
        return {
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "maxFeePerGas": self.max_fee_per_gas,
        }
