from dataclasses import dataclass, replace
from typing import Any, Mapping


@dataclass(frozen=True)
class GasOverheads:
    """
    Cost model the entrypoint charges for including a user operation in a
    bundle.

    fixed: base transaction cost, shared by the whole bundle
    per_user_operation: fixed overhead of one user operation
    per_user_operation_word: overhead per 32 byte word of the packed
        user operation
    zero_byte / non_zero_byte: calldata cost of one byte
    bundle_size: number of user operations sharing the fixed cost
    signature_size: byte length of the dummy signature used when the
        user operation has no signature yet
    multiplier: applied to the word term
    """
    fixed: int = 21000
    per_user_operation: int = 22874
    per_user_operation_word: int = 4
    zero_byte: int = 4
    non_zero_byte: int = 16
    bundle_size: int = 1
    signature_size: int = 65
    multiplier: int = 25

    def with_overrides(
        self, overrides: "GasOverheads | Mapping[str, Any] | None"
    ) -> "GasOverheads":
        if overrides is None:
            return self
        if isinstance(overrides, GasOverheads):
            return overrides
        return replace(self, **overrides)


@dataclass(frozen=True)
class GasLimits:
    validate_user_operation_gas: int = 100000
    validate_paymaster_user_operation_gas: int = 100000
    post_operation_gas: int = 10877


DEFAULT_GAS_OVERHEADS = GasOverheads()
DEFAULT_GAS_LIMITS = GasLimits()

# only used to size the packed user operation when the real value is unknown
DUMMY_PRE_VERIFICATION_GAS = 21000
DUMMY_SIGNATURE_BYTE = b"\x01"
