import logging
import math
from fractions import Fraction
from typing import Any, Mapping

from aa_account_utils.exceptions import \
    GasEstimationException, GasEstimationExceptionCode
from aa_account_utils.gas.gas_overheads import (
    DEFAULT_GAS_LIMITS,
    DEFAULT_GAS_OVERHEADS,
    DUMMY_PRE_VERIFICATION_GAS,
    DUMMY_SIGNATURE_BYTE,
    GasLimits,
    GasOverheads,
)
from aa_account_utils.typing import Address
from aa_account_utils.user_operation.user_operation import \
    UserOperation, pack_user_operation
from aa_account_utils.utils.eth_client_utils import EthClient


def calc_pre_verification_gas(
    user_operation: UserOperation,
    overheads: GasOverheads | Mapping[str, Any] | None = None,
) -> int:
    ov = DEFAULT_GAS_OVERHEADS.with_overrides(overheads)
    if ov.bundle_size <= 0:
        raise GasEstimationException(
            GasEstimationExceptionCode.GasCalculationError,
            f"can't calculate preVerificationGas, invalid bundle size "
            f"{ov.bundle_size}",
        )

    # dummy values, in case the user operation is incomplete
    dummy_values: dict[str, Any] = {
        "paymaster_and_data": b"",
        "pre_verification_gas": DUMMY_PRE_VERIFICATION_GAS,
        "signature": DUMMY_SIGNATURE_BYTE * ov.signature_size,
        "nonce": 0,
        "call_gas_limit": 0,
        "verification_gas_limit": 0,
        "max_fee_per_gas": 0,
        "max_priority_fee_per_gas": 0,
    }
    user_operation = user_operation.with_updates(**{
        name: value
        for name, value in dummy_values.items()
        if getattr(user_operation, name) is None
    })

    packed = pack_user_operation(user_operation, False)
    packed_length = len(packed)
    zero_byte_count = packed.count(b"\x00")
    non_zero_byte_count = packed_length - zero_byte_count
    call_data_cost = (
        zero_byte_count * ov.zero_byte + non_zero_byte_count * ov.non_zero_byte
    )
    length_in_words = math.ceil(packed_length / 32)

    # fixed: base transaction gas shared by the bundle
    # per_user_operation: entrypoint bookkeeping around validation and
    # postOp that can't be measured on-chain
    pre_verification_gas = (
        call_data_cost
        + Fraction(ov.fixed) / Fraction(ov.bundle_size)
        + ov.per_user_operation
        + ov.per_user_operation_word * length_in_words
        * Fraction(ov.multiplier)
    )
    # round half up
    result = math.floor(pre_verification_gas + Fraction(1, 2))
    logging.debug(
        f"Call data cost: {call_data_cost}, "
        f"words: {length_in_words}, preVerificationGas: {result}"
    )

    if result <= 0:
        raise GasEstimationException(
            GasEstimationExceptionCode.GasCalculationError,
            "can't calculate preVerificationGas",
        )
    return result


class GasManager:
    eth_client: EthClient
    entrypoint: Address
    gas_overheads: GasOverheads
    gas_limits: GasLimits

    def __init__(
        self,
        eth_client: EthClient,
        entrypoint: Address,
        gas_overheads: GasOverheads = DEFAULT_GAS_OVERHEADS,
        gas_limits: GasLimits = DEFAULT_GAS_LIMITS,
    ):
        self.eth_client = eth_client
        self.entrypoint = entrypoint
        self.gas_overheads = gas_overheads
        self.gas_limits = gas_limits

    async def estimate_creation_gas(self, init_code: bytes | None) -> int:
        if init_code is None or len(init_code) == 0:
            return 0
        deployer_address = "0x" + init_code[:20].hex()
        deployer_call_data = "0x" + init_code[20:].hex()
        return await self.eth_client.estimate_gas(
            {"to": deployer_address, "data": deployer_call_data}
        )

    async def get_verification_gas_limit(self, init_code: bytes | None) -> int:
        # max(initGas + validateUserOp + validatePaymasterUserOp, postOp)
        init_gas = await self.estimate_creation_gas(init_code)
        validate_user_operation_gas = (
            self.gas_limits.validate_user_operation_gas +
            self.gas_limits.validate_paymaster_user_operation_gas
        )
        return max(
            validate_user_operation_gas + init_gas,
            self.gas_limits.post_operation_gas,
        )

    async def estimate_call_gas_limit(
        self, user_operation: UserOperation
    ) -> int:
        call_data = user_operation.call_data or b""
        return await self.eth_client.estimate_gas(
            {
                "from": self.entrypoint,
                "to": user_operation.sender,
                "data": "0x" + call_data.hex(),
            }
        )

    async def get_fee_values(self) -> tuple[int, int]:
        fee_data = await self.eth_client.get_fee_data()
        if fee_data.max_fee_per_gas is not None:
            max_fee_per_gas = fee_data.max_fee_per_gas
        else:
            max_fee_per_gas = fee_data.gas_price
        if fee_data.max_priority_fee_per_gas is not None:
            max_priority_fee_per_gas = fee_data.max_priority_fee_per_gas
        else:
            max_priority_fee_per_gas = fee_data.gas_price
        return max_fee_per_gas, max_priority_fee_per_gas

    def calc_base_preverification_gas(
        self, user_operation: UserOperation
    ) -> int:
        return calc_pre_verification_gas(user_operation, self.gas_overheads)

    async def calculate_user_operation_gas_values(
        self, user_operation: UserOperation
    ) -> UserOperation:
        """
        Fill the gas and fee fields the caller left unset using the node
        only. Fields already set are kept.
        """
        if (
            user_operation.max_fee_per_gas is None or
            user_operation.max_priority_fee_per_gas is None
        ):
            max_fee_per_gas, max_priority_fee_per_gas = \
                await self.get_fee_values()
            if user_operation.max_fee_per_gas is None:
                user_operation.max_fee_per_gas = max_fee_per_gas
            if user_operation.max_priority_fee_per_gas is None:
                user_operation.max_priority_fee_per_gas = \
                    max_priority_fee_per_gas

        if (
            user_operation.init_code is not None and
            user_operation.verification_gas_limit is None
        ):
            user_operation.verification_gas_limit = \
                await self.get_verification_gas_limit(user_operation.init_code)

        if user_operation.call_gas_limit is None:
            user_operation.call_gas_limit = \
                await self.estimate_call_gas_limit(user_operation)

        if user_operation.pre_verification_gas is None:
            user_operation.pre_verification_gas = \
                self.calc_base_preverification_gas(user_operation)

        return user_operation
