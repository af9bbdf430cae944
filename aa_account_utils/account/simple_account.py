import logging
from functools import cache

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address

from aa_account_utils.exceptions import \
    ExecutionException, ExecutionExceptionCode
from aa_account_utils.typing import Address
from aa_account_utils.utils.eth_client_utils import EthClient

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@cache
def function_selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def encode_nonce_call_data(nonce_key: int = 0) -> str:
    return "0x" + (
        function_selector("nonce(uint192)") +
        encode(["uint192"], [nonce_key])
    ).hex()


def encode_create_account_call_data(owner: Address, salt: int) -> bytes:
    return function_selector("createAccount(address,uint256)") + encode(
        ["address", "uint256"], [owner, salt]
    )


def encode_get_address_call_data(owner: Address, salt: int) -> bytes:
    return function_selector("getAddress(address,uint256)") + encode(
        ["address", "uint256"], [owner, salt]
    )


def build_init_code(factory: Address, owner: Address, salt: int) -> bytes:
    # factory address followed by the createAccount call
    return (
        bytes.fromhex(factory[2:]) +
        encode_create_account_call_data(owner, salt)
    )


def encode_execute_call_data(target: Address, value: int, data: bytes) -> bytes:
    return function_selector("execute(address,uint256,bytes)") + encode(
        ["address", "uint256", "bytes"], [target, value, data]
    )


def encode_add_deposit_call_data() -> bytes:
    return function_selector("addDeposit()")


async def get_nonce(
    eth_client: EthClient, address: Address, nonce_key: int = 0
) -> int:
    # an account that isn't deployed yet has no nonce, 0 is the default
    try:
        result = await eth_client.call(
            {"to": address, "data": encode_nonce_call_data(nonce_key)}
        )
        if "error" in result or result.get("result") in (None, "0x"):
            logging.debug(f"No nonce for {address}: {result}")
            return 0
        return decode(["uint256"], bytes.fromhex(result["result"][2:]))[0]
    except Exception as excp:
        logging.debug(f"Nonce lookup for {address} failed: {str(excp)}")
        return 0


async def get_counterfactual_address(
    eth_client: EthClient, factory: Address, owner: Address, salt: int
) -> Address:
    raw_address = await eth_client.get_result(
        "eth_call",
        [
            {
                "to": factory,
                "data": "0x" + encode_get_address_call_data(owner, salt).hex(),
            },
            "latest",
        ],
    )
    address = decode(["address"], bytes.fromhex(raw_address[2:]))[0]
    return Address(to_checksum_address(address))


async def get_sender_address(
    eth_client: EthClient, entrypoint: Address, init_code: bytes
) -> Address:
    """
    getSenderAddress always reverts, the account address is carried by the
    SenderAddressResult(address) custom error.
    """
    call_data = function_selector("getSenderAddress(bytes)") + encode(
        ["bytes"], [init_code]
    )
    result = await eth_client.call(
        {
            "from": ZERO_ADDRESS,
            "to": entrypoint,
            "data": "0x" + call_data.hex(),
        }
    )

    if "error" not in result:
        logging.error("getSenderAddress didn't revert!")
        raise ExecutionException(
            ExecutionExceptionCode.UnexpectedSenderAddressResult,
            "getSenderAddress didn't revert",
        )

    error_data = result["error"].get("data")
    sender_address_result_selector = \
        "0x" + function_selector("SenderAddressResult(address)").hex()
    if (
        not isinstance(error_data, str) or
        error_data[:10] != sender_address_result_selector
    ):
        raise ExecutionException(
            ExecutionExceptionCode.UnexpectedSenderAddressResult,
            result["error"].get("message", "getSenderAddress failed"),
            error_data,
        )

    sender = decode(["address"], bytes.fromhex(error_data[10:]))[0]
    return Address(to_checksum_address(sender))
