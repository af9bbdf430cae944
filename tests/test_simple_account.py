import pytest
from eth_abi import encode
from eth_utils import to_checksum_address

from aa_account_utils.account.simple_account import (
    build_init_code,
    encode_add_deposit_call_data,
    encode_execute_call_data,
    function_selector,
    get_counterfactual_address,
    get_nonce,
    get_sender_address,
)
from aa_account_utils.exceptions import \
    ExecutionException, ExecutionExceptionCode

from fakes import ENTRYPOINT, FACTORY, OWNER, SENDER, FakeEthClient

COUNTERFACTUAL_ADDRESS = to_checksum_address(
    "0x8f4f2a3c1b0e9d7c6b5a493827161504f3e2d1c0")


def eth_call_result(result: str) -> dict:
    return {"jsonrpc": "2.0", "id": 1, "result": result}


def eth_call_revert(data: str) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "error": {"code": 3, "message": "execution reverted", "data": data},
    }


def test_build_init_code():
    init_code = build_init_code(FACTORY, OWNER, 3)
    assert len(init_code) == 20 + 4 + 2 * 32
    assert init_code[:20] == bytes.fromhex(FACTORY[2:])
    assert init_code[20:24] == \
        function_selector("createAccount(address,uint256)")
    assert init_code[24:] == encode(["address", "uint256"], [OWNER, 3])


def test_encode_execute_call_data():
    call_data = encode_execute_call_data(OWNER, 10, b"")
    assert call_data[:4] == bytes.fromhex("b61d27f6")


def test_encode_add_deposit_call_data():
    assert encode_add_deposit_call_data() == bytes.fromhex("4a58db19")


@pytest.mark.asyncio
async def test_get_nonce():
    eth_client = FakeEthClient(
        {"eth_call": eth_call_result("0x" + encode(["uint256"], [7]).hex())})
    assert await get_nonce(eth_client, SENDER) == 7

    method, params = eth_client.requests[0]
    assert method == "eth_call"
    assert params[0]["to"] == SENDER
    assert params[0]["data"][:10] == \
        "0x" + function_selector("nonce(uint192)").hex()


@pytest.mark.asyncio
async def test_get_nonce_of_undeployed_account():
    eth_client = FakeEthClient({"eth_call": eth_call_result("0x")})
    assert await get_nonce(eth_client, SENDER) == 0


@pytest.mark.asyncio
async def test_get_nonce_on_error():
    eth_client = FakeEthClient({"eth_call": eth_call_revert("0x")})
    assert await get_nonce(eth_client, SENDER) == 0


@pytest.mark.asyncio
async def test_get_nonce_on_exception():
    def raise_connection_error(params):
        raise ConnectionError("node is down")

    eth_client = FakeEthClient({"eth_call": raise_connection_error})
    assert await get_nonce(eth_client, SENDER) == 0


@pytest.mark.asyncio
async def test_get_sender_address():
    revert_data = "0x" + (
        function_selector("SenderAddressResult(address)") +
        encode(["address"], [COUNTERFACTUAL_ADDRESS])
    ).hex()
    eth_client = FakeEthClient({"eth_call": eth_call_revert(revert_data)})
    init_code = build_init_code(FACTORY, OWNER, 0)

    assert await get_sender_address(eth_client, ENTRYPOINT, init_code) == \
        COUNTERFACTUAL_ADDRESS

    _, params = eth_client.requests[0]
    assert params[0]["to"] == ENTRYPOINT
    assert params[0]["data"][:10] == \
        "0x" + function_selector("getSenderAddress(bytes)").hex()


@pytest.mark.asyncio
async def test_get_sender_address_without_revert():
    eth_client = FakeEthClient({"eth_call": eth_call_result("0x")})
    with pytest.raises(ExecutionException) as excinfo:
        await get_sender_address(
            eth_client, ENTRYPOINT, build_init_code(FACTORY, OWNER, 0))
    assert excinfo.value.exception_code == \
        ExecutionExceptionCode.UnexpectedSenderAddressResult


@pytest.mark.asyncio
async def test_get_sender_address_with_unexpected_revert():
    # Error(string)
    eth_client = FakeEthClient({"eth_call": eth_call_revert(
        "0x08c379a0" + encode(["string"], ["AA13 initCode failed"]).hex())})
    with pytest.raises(ExecutionException) as excinfo:
        await get_sender_address(
            eth_client, ENTRYPOINT, build_init_code(FACTORY, OWNER, 0))
    assert excinfo.value.exception_code == \
        ExecutionExceptionCode.UnexpectedSenderAddressResult


@pytest.mark.asyncio
async def test_get_counterfactual_address():
    eth_client = FakeEthClient({"eth_call": eth_call_result(
        "0x" + encode(["address"], [COUNTERFACTUAL_ADDRESS]).hex())})
    assert await get_counterfactual_address(
        eth_client, FACTORY, OWNER, 0) == COUNTERFACTUAL_ADDRESS
