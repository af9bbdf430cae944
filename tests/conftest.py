from typing import Any

import pytest

from aa_account_utils.user_operation.user_operation import UserOperation

from fakes import FACTORY, SENDER, FakeEthClient


@pytest.fixture
def user_operation() -> UserOperation:
    return UserOperation(
        sender=SENDER,
        nonce=0,
        init_code=b"",
        call_data=bytes.fromhex("1234"),
        paymaster_and_data=b"",
        signature=b"\x01" * 65,
    )


@pytest.fixture
def full_user_operation(user_operation) -> UserOperation:
    return user_operation.with_updates(
        call_gas_limit=100_000,
        verification_gas_limit=200_000,
        pre_verification_gas=50_000,
        max_fee_per_gas=2_000_000_000,
        max_priority_fee_per_gas=1_000_000_000,
    )


@pytest.fixture
def node_responses() -> dict[str, Any]:
    def estimate_gas(params):
        if params[0]["to"].lower() == FACTORY.lower():
            return {"jsonrpc": "2.0", "id": 1, "result": "0x186a0"}
        return {"jsonrpc": "2.0", "id": 1, "result": "0x5208"}

    return {
        "eth_gasPrice": {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"},
        "eth_getBlockByNumber": {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {"number": "0x10", "baseFeePerGas": "0x64"},
        },
        "eth_maxPriorityFeePerGas": {
            "jsonrpc": "2.0", "id": 1, "result": "0xa"},
        "eth_estimateGas": estimate_gas,
    }


@pytest.fixture
def eth_client(node_responses) -> FakeEthClient:
    return FakeEthClient(node_responses)
