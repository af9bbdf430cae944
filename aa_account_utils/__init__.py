from aa_account_utils.account_utils import AccountUtils, AccountUtilsConfig
from aa_account_utils.gas.gas_manager import calc_pre_verification_gas
from aa_account_utils.gas.gas_overheads import GasOverheads
from aa_account_utils.signer.signer import normalize_signature
from aa_account_utils.user_operation.models import Overrides
from aa_account_utils.user_operation.user_operation import (
    UserOperation,
    get_user_operation_hash,
    pack_user_operation,
)
from aa_account_utils.validation.validation_manager import \
    validate_user_operation

__all__ = [
    "AccountUtils",
    "AccountUtilsConfig",
    "GasOverheads",
    "Overrides",
    "UserOperation",
    "calc_pre_verification_gas",
    "get_user_operation_hash",
    "normalize_signature",
    "pack_user_operation",
    "validate_user_operation",
]
