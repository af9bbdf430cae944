from dataclasses import dataclass


@dataclass(frozen=True)
class Overrides:
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    paymaster_and_data: bytes | None = None
    signature: bytes | None = None

    def get_changes(self) -> dict[str, int | bytes]:
        return {
            name: value
            for name, value in self.__dict__.items()
            if value is not None
        }


@dataclass
class UserOperationGasEstimate:
    pre_verification_gas: int
    verification_gas_limit: int
    call_gas_limit: int
    max_fee_per_gas: int | None
    max_priority_fee_per_gas: int | None


@dataclass
class FeeData:
    gas_price: int
    max_fee_per_gas: int | None
    max_priority_fee_per_gas: int | None
