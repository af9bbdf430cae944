import math

import pytest

from aa_account_utils.account.simple_account import build_init_code
from aa_account_utils.exceptions import (
    GasEstimationException,
    GasEstimationExceptionCode,
    ValidationException,
)
from aa_account_utils.gas.gas_manager import GasManager, \
    calc_pre_verification_gas
from aa_account_utils.gas.gas_overheads import GasLimits, GasOverheads
from aa_account_utils.user_operation.user_operation import \
    UserOperation, pack_user_operation

from fakes import ENTRYPOINT, FACTORY, OWNER, SENDER, FakeEthClient


def test_pre_verification_gas_golden_value(user_operation):
    """
    608 packed bytes, 98 of them non zero, 19 words:
    98 * 16 + 510 * 4 + 21000 + 22874 + 4 * 19 * 25
    """
    assert calc_pre_verification_gas(user_operation) == 49382


def test_pre_verification_gas_uses_dummy_signature_size(user_operation):
    unsigned_user_operation = user_operation.with_updates(signature=None)
    assert calc_pre_verification_gas(unsigned_user_operation) == 49382

    # 97 bytes: one more signature word and 32 more non zero bytes
    overheads = GasOverheads(signature_size=97)
    packed = pack_user_operation(
        unsigned_user_operation.with_updates(
            signature=b"\x01" * 97,
            pre_verification_gas=21000,
            call_gas_limit=0,
            verification_gas_limit=0,
            max_fee_per_gas=0,
            max_priority_fee_per_gas=0,
        ),
        False,
    )
    assert math.ceil(len(packed) / 32) == 20
    assert calc_pre_verification_gas(unsigned_user_operation, overheads) == \
        49382 + 32 * 16 + 4 * 25


def test_pre_verification_gas_keeps_existing_signature(user_operation):
    assert calc_pre_verification_gas(
        user_operation, {"signature_size": 200}) == 49382


def test_pre_verification_gas_is_positive_for_empty_fields():
    user_operation = UserOperation(
        sender=SENDER,
        nonce=0,
        init_code=b"",
        call_data=b"",
        paymaster_and_data=b"",
    )
    assert calc_pre_verification_gas(user_operation) > 0
    assert calc_pre_verification_gas(
        user_operation.with_updates(paymaster_and_data=None)) > 0


def test_pre_verification_gas_rounds_half_up(user_operation):
    # 3608 + 21001 / 2 + 22874 + 1900 = 38882.5
    assert calc_pre_verification_gas(
        user_operation, {"fixed": 21001, "bundle_size": 2}) == 38883


def test_pre_verification_gas_non_positive_is_an_error(user_operation):
    with pytest.raises(GasEstimationException) as excinfo:
        calc_pre_verification_gas(
            user_operation, {"per_user_operation": -100_000})
    assert excinfo.value.exception_code == \
        GasEstimationExceptionCode.GasCalculationError


def test_pre_verification_gas_requires_call_data(user_operation):
    with pytest.raises(ValidationException):
        calc_pre_verification_gas(user_operation.with_updates(call_data=None))


@pytest.mark.asyncio
async def test_verification_gas_limit_without_init_code(eth_client):
    gas_manager = GasManager(eth_client, ENTRYPOINT)
    assert await gas_manager.get_verification_gas_limit(b"") == 200_000
    assert eth_client.requests == []


@pytest.mark.asyncio
async def test_verification_gas_limit_with_init_code(eth_client):
    gas_manager = GasManager(eth_client, ENTRYPOINT)
    init_code = build_init_code(FACTORY, OWNER, 0)
    assert await gas_manager.get_verification_gas_limit(init_code) == \
        300_000
    method, params = eth_client.requests[0]
    assert method == "eth_estimateGas"
    assert params[0]["to"] == FACTORY.lower()
    assert params[0]["data"] == "0x" + init_code[20:].hex()


@pytest.mark.asyncio
async def test_verification_gas_limit_is_at_least_post_op_gas(eth_client):
    gas_manager = GasManager(eth_client, ENTRYPOINT)
    gas_manager.gas_limits = GasLimits(
        validate_user_operation_gas=1000,
        validate_paymaster_user_operation_gas=1000,
    )
    assert await gas_manager.get_verification_gas_limit(b"") == 10877


@pytest.mark.asyncio
async def test_calculate_user_operation_gas_values(eth_client, user_operation):
    gas_manager = GasManager(eth_client, ENTRYPOINT)
    result = await gas_manager.calculate_user_operation_gas_values(
        user_operation.with_updates())

    # 2 * baseFee + maxPriorityFeePerGas
    assert result.max_fee_per_gas == 210
    assert result.max_priority_fee_per_gas == 10
    assert result.verification_gas_limit == 200_000
    assert result.call_gas_limit == 21000
    assert result.pre_verification_gas == calc_pre_verification_gas(
        result.with_updates(pre_verification_gas=None))

    _, params = eth_client.requests[-1]
    assert params[0] == {
        "from": ENTRYPOINT,
        "to": SENDER,
        "data": "0x1234",
    }


@pytest.mark.asyncio
async def test_calculate_user_operation_gas_values_keeps_set_fields(
    eth_client, full_user_operation
):
    gas_manager = GasManager(eth_client, ENTRYPOINT)
    result = await gas_manager.calculate_user_operation_gas_values(
        full_user_operation.with_updates())
    assert result == full_user_operation
    assert eth_client.requests == []


@pytest.mark.asyncio
async def test_legacy_fee_data_uses_gas_price(node_responses, user_operation):
    eth_client = FakeEthClient(node_responses, is_legacy_mode=True)
    gas_manager = GasManager(eth_client, ENTRYPOINT)
    result = await gas_manager.calculate_user_operation_gas_values(
        user_operation.with_updates())
    assert result.max_fee_per_gas == 1_000_000_000
    assert result.max_priority_fee_per_gas == 1_000_000_000
    assert "eth_getBlockByNumber" not in eth_client.methods()


@pytest.mark.asyncio
async def test_fee_data_without_base_fee_uses_gas_price(
    node_responses, user_operation
):
    node_responses["eth_getBlockByNumber"] = {
        "jsonrpc": "2.0", "id": 1, "result": {"number": "0x10"}}
    gas_manager = GasManager(FakeEthClient(node_responses), ENTRYPOINT)
    assert await gas_manager.get_fee_values() == \
        (1_000_000_000, 1_000_000_000)


@pytest.mark.asyncio
async def test_fee_data_without_priority_fee_rpc(node_responses):
    node_responses["eth_maxPriorityFeePerGas"] = {
        "jsonrpc": "2.0",
        "id": 1,
        "error": {"code": -32601, "message": "method not found"},
    }
    gas_manager = GasManager(FakeEthClient(node_responses), ENTRYPOINT)
    assert await gas_manager.get_fee_values() == \
        (200 + 1_500_000_000, 1_500_000_000)


@pytest.mark.parametrize("bundle_size", [0, -1])
def test_pre_verification_gas_invalid_bundle_size(user_operation, bundle_size):
    with pytest.raises(GasEstimationException) as excinfo:
        calc_pre_verification_gas(
            user_operation, {"bundle_size": bundle_size})
    assert excinfo.value.exception_code == \
        GasEstimationExceptionCode.GasCalculationError
