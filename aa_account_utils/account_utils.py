import logging
from dataclasses import dataclass

from aa_account_utils.account.simple_account import \
    get_nonce, get_sender_address
from aa_account_utils.bundler.bundler_client import BundlerClient
from aa_account_utils.exceptions import (
    ConfigurationException,
    ConfigurationExceptionCode,
    GasEstimationException,
    GasEstimationExceptionCode,
    ValidationException,
    ValidationExceptionCode,
)
from aa_account_utils.gas.gas_manager import GasManager
from aa_account_utils.gas.gas_overheads import \
    DEFAULT_GAS_LIMITS, DEFAULT_GAS_OVERHEADS, GasLimits, GasOverheads
from aa_account_utils.signer.signer import Signer, normalize_signature
from aa_account_utils.typing import Address
from aa_account_utils.user_operation.models import Overrides
from aa_account_utils.user_operation.user_operation import (
    UserOperation,
    get_user_operation_hash,
    hexlify_user_operation,
    is_user_operation_hash,
)
from aa_account_utils.utils.eth_client_utils import EthClient
from aa_account_utils.validation.validation_manager import \
    validate_user_operation

ESTIMATE_REQUIRED_FIELDS = ["sender", "nonce", "initCode", "callData"]


@dataclass(frozen=True)
class AccountUtilsConfig:
    entrypoint: Address
    chain_id: int
    signer: Signer | None = None
    eth_client: EthClient | None = None
    bundler_client: BundlerClient | None = None
    gas_overheads: GasOverheads = DEFAULT_GAS_OVERHEADS
    gas_limits: GasLimits = DEFAULT_GAS_LIMITS


class AccountUtils:
    """
    Builds, estimates, hashes and signs user operations for one
    entrypoint on one chain.

    Every method works on a copy of the user operation it receives.
    """
    config: AccountUtilsConfig

    def __init__(self, config: AccountUtilsConfig):
        self.config = config

    def _get_eth_client(self) -> EthClient:
        if self.config.eth_client is None:
            raise GasEstimationException(
                GasEstimationExceptionCode.ProviderUnavailable,
                "Provider is not present for making rpc calls",
            )
        return self.config.eth_client

    def _get_gas_manager(self) -> GasManager:
        return GasManager(
            self._get_eth_client(),
            self.config.entrypoint,
            self.config.gas_overheads,
            self.config.gas_limits,
        )

    async def get_nonce(self, address: Address, nonce_key: int = 0) -> int:
        return await get_nonce(self._get_eth_client(), address, nonce_key)

    async def get_sender_address(self, init_code: bytes) -> Address:
        return await get_sender_address(
            self._get_eth_client(), self.config.entrypoint, init_code)

    async def calculate_user_operation_gas_values(
        self, user_operation: UserOperation
    ) -> UserOperation:
        return await self._get_gas_manager(
        ).calculate_user_operation_gas_values(user_operation.with_updates())

    async def estimate_user_operation_gas(
        self,
        user_operation: UserOperation,
        overrides: Overrides | None = None,
        skip_bundler_gas_estimation: bool = False,
    ) -> UserOperation:
        validate_user_operation(user_operation, ESTIMATE_REQUIRED_FIELDS)

        if overrides is not None:
            user_operation = user_operation.with_updates(
                **overrides.get_changes())
        else:
            user_operation = user_operation.with_updates()

        if self.config.bundler_client is None or skip_bundler_gas_estimation:
            # no bundler: fill fees, verificationGasLimit, callGasLimit and
            # preVerificationGas from the node
            logging.debug("Estimating UserOperation gas with the node")
            return await self._get_gas_manager(
            ).calculate_user_operation_gas_values(user_operation)

        return await self._estimate_user_operation_gas_with_bundler(
            user_operation)

    async def _estimate_user_operation_gas_with_bundler(
        self, user_operation: UserOperation
    ) -> UserOperation:
        assert self.config.bundler_client is not None
        final_user_operation = user_operation.with_updates()

        # TODO: caller supplied fees are dropped even when the bundler
        # doesn't return any, keep them as a fallback instead
        user_operation = user_operation.with_updates(
            max_fee_per_gas=None, max_priority_fee_per_gas=None)

        # the dummy signature and paymasterAndData are expected from the
        # caller, the bundler doesn't know the account or paymaster
        logging.debug("Estimating UserOperation gas with the bundler")
        gas_estimate = \
            await self.config.bundler_client.estimate_user_operation_gas(
                hexlify_user_operation(user_operation),
                self.config.entrypoint,
            )

        if (
            user_operation.max_fee_per_gas is None and
            user_operation.max_priority_fee_per_gas is None and
            (
                gas_estimate.max_fee_per_gas is None or
                gas_estimate.max_priority_fee_per_gas is None
            )
        ):
            # neither the caller nor the bundler sent fees
            (
                final_user_operation.max_fee_per_gas,
                final_user_operation.max_priority_fee_per_gas,
            ) = await self._get_gas_manager().get_fee_values()
        else:
            final_user_operation.max_fee_per_gas = _first_set(
                gas_estimate.max_fee_per_gas,
                user_operation.max_fee_per_gas,
            )
            final_user_operation.max_priority_fee_per_gas = _first_set(
                gas_estimate.max_priority_fee_per_gas,
                user_operation.max_priority_fee_per_gas,
            )

        final_user_operation.verification_gas_limit = _first_set(
            gas_estimate.verification_gas_limit,
            user_operation.verification_gas_limit,
        )
        final_user_operation.call_gas_limit = _first_set(
            gas_estimate.call_gas_limit, user_operation.call_gas_limit)
        final_user_operation.pre_verification_gas = _first_set(
            gas_estimate.pre_verification_gas,
            user_operation.pre_verification_gas,
        )
        return final_user_operation

    def get_user_operation_hash(self, user_operation: UserOperation) -> str:
        return get_user_operation_hash(
            user_operation, self.config.entrypoint, self.config.chain_id)

    async def sign_user_operation_hash(self, user_operation_hash: str) -> str:
        if self.config.signer is None:
            raise ConfigurationException(
                ConfigurationExceptionCode.SignerUnavailable,
                "Signer is not present for signing",
            )
        if not is_user_operation_hash(user_operation_hash):
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid userOpHash {user_operation_hash}",
            )
        signature = await self.config.signer.sign_message(
            bytes.fromhex(user_operation_hash[2:])
        )
        return normalize_signature(signature)

    async def sign_user_operation(
        self, user_operation: UserOperation
    ) -> UserOperation:
        user_operation_hash = self.get_user_operation_hash(user_operation)
        logging.debug(f"userOpHash: {user_operation_hash}")
        signature = await self.sign_user_operation_hash(user_operation_hash)
        return user_operation.with_updates(
            signature=bytes.fromhex(signature[2:]))

    async def send_user_operation(self, user_operation: UserOperation) -> str:
        if self.config.bundler_client is None:
            raise ConfigurationException(
                ConfigurationExceptionCode.BundlerUnavailable,
                "Bundler is not present for sending",
            )
        user_operation_hash = \
            await self.config.bundler_client.send_user_operation(
                hexlify_user_operation(user_operation),
                self.config.entrypoint,
            )
        logging.info(f"UserOperation sent: {user_operation_hash}")
        return user_operation_hash


def _first_set(*values: int | None) -> int | None:
    for value in values:
        if value is not None:
            return value
    return None
