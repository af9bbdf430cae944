import re
from abc import ABC, abstractmethod

from eth_account import Account, messages

from aa_account_utils.exceptions import \
    ValidationException, ValidationExceptionCode
from aa_account_utils.typing import Address

# r, s and the recovery byte
SIGNATURE_HEX_PATTERN = "^[0-9a-fA-F]{130}$"
# recovery ids accepted by ecrecover
CANONICAL_V_VALUES = (27, 28)
V_OFFSET = 27


class Signer(ABC):
    @abstractmethod
    async def get_address(self) -> Address:
        pass

    @abstractmethod
    async def sign_message(self, message: bytes) -> bytes | str:
        """Sign message as an EIP-191 personal message and return the
        raw 65 byte signature."""


class LocalAccountSigner(Signer):
    def __init__(self, private_key: str | bytes):
        self.account = Account.from_key(private_key)

    async def get_address(self) -> Address:
        return Address(self.account.address)

    async def sign_message(self, message: bytes) -> bytes:
        signable_message = messages.encode_defunct(primitive=message)
        signed_message = self.account.sign_message(signable_message)
        return bytes(signed_message.signature)


def normalize_signature(signature: bytes | str) -> str:
    """
    Move the recovery byte to the 27/28 convention and return the
    signature as 0x prefixed hex. Some signers emit 0/1 instead.
    """
    if isinstance(signature, bytes):
        signature_hex = signature.hex()
    else:
        signature_hex = signature[2:] if signature[:2] == "0x" else signature

    if re.match(SIGNATURE_HEX_PATTERN, signature_hex) is None:
        raise ValidationException(
            ValidationExceptionCode.InvalidFields,
            f"Invalid signature length or format: 0x{signature_hex}",
            "signature",
        )

    potentially_incorrect_v = int(signature_hex[-2:], 16)
    if potentially_incorrect_v not in CANONICAL_V_VALUES:
        correct_v = potentially_incorrect_v + V_OFFSET
        if correct_v > 0xff:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Invalid signature recovery byte {potentially_incorrect_v}",
                "signature",
            )
        signature_hex = signature_hex[:-2] + format(correct_v, "02x")

    return "0x" + signature_hex.lower()
