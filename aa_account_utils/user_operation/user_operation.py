import re
from dataclasses import dataclass, fields, replace
from typing import Any

from eth_abi import encode
from eth_utils import keccak

from aa_account_utils.exceptions import \
    ValidationException, ValidationExceptionCode
from aa_account_utils.typing import Address

ADDRESS_PATTERN = "^0x[0-9,a-f,A-F]{40}$"

# json field name -> attribute name, in entrypoint struct order
FIELD_NAMES: dict[str, str] = {
    "sender": "sender",
    "nonce": "nonce",
    "initCode": "init_code",
    "callData": "call_data",
    "callGasLimit": "call_gas_limit",
    "verificationGasLimit": "verification_gas_limit",
    "preVerificationGas": "pre_verification_gas",
    "maxFeePerGas": "max_fee_per_gas",
    "maxPriorityFeePerGas": "max_priority_fee_per_gas",
    "paymasterAndData": "paymaster_and_data",
    "signature": "signature",
}

UINT_FIELDS = [
    "nonce",
    "callGasLimit",
    "verificationGasLimit",
    "preVerificationGas",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
]

BYTES_FIELDS = [
    "initCode",
    "callData",
    "paymasterAndData",
    "signature",
]


@dataclass()
class UserOperation:
    """
    A possibly incomplete entrypoint v0.6 user operation.

    None marks a field that was never set, b"" a field that was explicitly
    set to empty bytes. The encoder relies on the difference.
    """
    sender: Address | None = None
    nonce: int | None = None
    init_code: bytes | None = None
    call_data: bytes | None = None
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    paymaster_and_data: bytes | None = None
    signature: bytes | None = None

    @classmethod
    def from_json(
        cls, json_request_dict: dict[str, Any]
    ) -> "UserOperation":
        unknown_fields = set(json_request_dict) - set(FIELD_NAMES)
        if len(unknown_fields) > 0:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid UserOperation fields : {sorted(unknown_fields)}",
            )

        values: dict[str, Any] = {}
        for json_name, attribute_name in FIELD_NAMES.items():
            value = json_request_dict.get(json_name)
            if value is None:
                continue
            if json_name == "sender":
                values[attribute_name] = verify_and_get_address(
                    json_name, value)
            elif json_name in UINT_FIELDS:
                values[attribute_name] = verify_and_get_uint(
                    json_name, value)
            else:
                values[attribute_name] = verify_and_get_bytes(
                    json_name, value)
        return cls(**values)

    def get(self, json_name: str) -> Any:
        return getattr(self, FIELD_NAMES[json_name])

    def is_set(self, json_name: str) -> bool:
        return self.get(json_name) is not None

    def with_updates(self, **changes: Any) -> "UserOperation":
        return replace(self, **changes)

    def get_user_operation_json(self) -> dict[str, str]:
        """Wire form: minimal 0x hex for numbers, 0x hex for bytes,
        unset fields left out."""
        user_operation_json: dict[str, str] = {}
        for json_name, attribute_name in FIELD_NAMES.items():
            value = getattr(self, attribute_name)
            if value is None:
                continue
            if json_name == "sender":
                user_operation_json[json_name] = value
            elif json_name in UINT_FIELDS:
                user_operation_json[json_name] = hex(value)
            else:
                user_operation_json[json_name] = "0x" + value.hex()
        return user_operation_json

    def to_list(self) -> list[Address | int | bytes | None]:
        return [getattr(self, field.name) for field in fields(self)]


def hexlify_user_operation(user_operation: UserOperation) -> dict[str, str]:
    return user_operation.get_user_operation_json()


def transform_user_operation_json(
    user_operation_json: dict[str, Any]
) -> dict[str, Any]:
    """
    Coerce the numeric fields of a raw json user operation to minimal 0x
    hex. The literal "0" is already canonical and stays as it is.
    """
    transformed = dict(user_operation_json)
    for key in UINT_FIELDS:
        value = transformed.get(key)
        if value is None or value == "0":
            continue
        transformed[key] = hex(verify_and_get_uint(key, value))
    return transformed


def verify_and_get_address(field_name: str, value: Address | None) -> Address:
    if isinstance(value, str) and re.match(ADDRESS_PATTERN, value) is not None:
        return value
    else:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid address value : {value} in field {field_name}",
            field_name,
        )


def verify_and_get_uint(field_name: str, value: str | int | None) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid uint value in field {field_name}",
            field_name,
        )

    if isinstance(value, int):
        result = value
    elif value == "0x":
        return 0
    elif isinstance(value, str):
        try:
            if value[:2] == "0x":
                result = int(value, 16)
            else:
                result = int(value, 10)
        except ValueError:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid uint value : {value} in field {field_name}",
                field_name,
            )
    else:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid uint value : {value} in field {field_name}",
            field_name,
        )

    if result < 0:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Negative uint value : {value} in field {field_name}",
            field_name,
        )
    return result


def verify_and_get_bytes(field_name: str, value: str | bytes | None) -> bytes:
    if value is None:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid bytes hex value in field {field_name}",
            field_name,
        )

    if isinstance(value, bytes):
        return value
    if isinstance(value, str) and value[:2] == "0x":
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid bytes hex value : {value} in field {field_name}",
                field_name,
            )
    else:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid bytes hex value : {value} in field {field_name}",
            field_name,
        )


def _require_fields(
    user_operation: UserOperation, field_list: list[str]
) -> None:
    for field in field_list:
        if not user_operation.is_set(field):
            raise ValidationException(
                ValidationExceptionCode.IncompleteOperation,
                f"UserOperation missing {field} field",
                field,
            )


def get_user_operation_hash(
    user_operation: UserOperation, entrypoint_addr: str, chain_id: int
) -> str:
    packed_user_operation = keccak(
        pack_user_operation(user_operation)
    )

    encoded_user_operation_hash = encode(
        ["(bytes32,address,uint256)"],
        [[packed_user_operation, entrypoint_addr, chain_id]],
    )
    user_operation_hash = "0x" + keccak(encoded_user_operation_hash).hex()
    return user_operation_hash


def pack_user_operation(
    user_operation: UserOperation, for_signature: bool = True
) -> bytes:
    # byte fields must be set explicitly, an empty value is b""
    _require_fields(
        user_operation, ["initCode", "callData", "paymasterAndData"])
    _require_fields(user_operation, ["sender"] + UINT_FIELDS)

    if for_signature:
        packed_user_operation = encode(
            [
                "address",
                "uint256",
                "bytes32",
                "bytes32",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bytes32",
            ],
            [
                user_operation.sender,
                user_operation.nonce,
                keccak(user_operation.init_code),
                keccak(user_operation.call_data),
                user_operation.call_gas_limit,
                user_operation.verification_gas_limit,
                user_operation.pre_verification_gas,
                user_operation.max_fee_per_gas,
                user_operation.max_priority_fee_per_gas,
                keccak(user_operation.paymaster_and_data),
            ],
        )
    else:
        # for the purpose of calculating gas cost, also encode the signature
        # and keep the raw bytes
        _require_fields(user_operation, ["signature"])
        packed_user_operation = encode(
            [
                "address",
                "uint256",
                "bytes",
                "bytes",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bytes",
                "bytes",
            ],
            user_operation.to_list(),
        )
    return packed_user_operation


def is_user_operation_hash(user_operation_hash: str) -> bool:
    hash_pattern = "^0x[0-9,a-f,A-F]{64}$"
    return (
        isinstance(user_operation_hash, str)
        and re.match(hash_pattern, user_operation_hash) is not None
    )
