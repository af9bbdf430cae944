import asyncio
import json
import logging
from typing import Any

from aiohttp import ClientSession

from aa_account_utils.exceptions import \
    ExecutionException, ExecutionExceptionCode
from aa_account_utils.user_operation.models import FeeData

# used when the node doesn't support eth_maxPriorityFeePerGas
DEFAULT_MAX_PRIORITY_FEE_PER_GAS = 1_500_000_000


async def send_rpc_request_to_eth_client(
    ethereum_node_url: str,
    method: str,
    params=None,
    request_id: int = 1,
) -> Any:
    json_request = {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": method,
        "params": params,
    }
    headers = {
        "content-type": "application/json",
        "connection": "keep-alive"
    }
    async with ClientSession() as session:
        async with session.post(
            ethereum_node_url,
            json=json_request,
            headers=headers
        ) as response:
            resp = await response.read()
    try:
        return json.loads(resp)
    except json.decoder.JSONDecodeError:
        logging.error(f"Invalid json response from {ethereum_node_url}")
        raise ExecutionException(
            ExecutionExceptionCode.RpcError,
            f"Invalid json response for {method}",
        )


class EthClient:
    """JSON-RPC state provider backed by an ethereum node."""
    ethereum_node_url: str
    is_legacy_mode: bool

    def __init__(self, ethereum_node_url: str, is_legacy_mode: bool = False):
        self.ethereum_node_url = ethereum_node_url
        self.is_legacy_mode = is_legacy_mode

    async def send_request(self, method: str, params=None) -> Any:
        return await send_rpc_request_to_eth_client(
            self.ethereum_node_url, method, params
        )

    async def get_result(self, method: str, params=None) -> Any:
        result = await self.send_request(method, params)
        if "error" in result:
            error = result["error"]
            raise ExecutionException(
                ExecutionExceptionCode.RpcError,
                error.get("message", f"{method} failed"),
                error.get("data"),
            )
        return result["result"]

    async def get_chain_id(self) -> int:
        return int(await self.get_result("eth_chainId", []), 16)

    async def get_gas_price(self) -> int:
        return int(await self.get_result("eth_gasPrice", []), 16)

    async def get_max_priority_fee_per_gas(self) -> int:
        return int(await self.get_result("eth_maxPriorityFeePerGas", []), 16)

    async def get_block(self, block_number_hex: str = "latest") -> dict:
        return await self.get_result(
            "eth_getBlockByNumber", [block_number_hex, False])

    async def get_fee_data(self) -> FeeData:
        if self.is_legacy_mode:
            return FeeData(await self.get_gas_price(), None, None)

        gas_price, latest_block = await asyncio.gather(
            self.get_gas_price(), self.get_block()
        )
        # block mined before the EIP-1559 upgrade
        if latest_block is None or "baseFeePerGas" not in latest_block:
            return FeeData(gas_price, None, None)

        base_fee = int(latest_block["baseFeePerGas"], 16)
        try:
            max_priority_fee_per_gas = \
                await self.get_max_priority_fee_per_gas()
        except ExecutionException as excp:
            logging.debug(
                f"eth_maxPriorityFeePerGas failed: {excp.message}. "
                f"using default {DEFAULT_MAX_PRIORITY_FEE_PER_GAS}"
            )
            max_priority_fee_per_gas = DEFAULT_MAX_PRIORITY_FEE_PER_GAS

        max_fee_per_gas = base_fee * 2 + max_priority_fee_per_gas
        return FeeData(gas_price, max_fee_per_gas, max_priority_fee_per_gas)

    async def estimate_gas(self, transaction: dict[str, str]) -> int:
        return int(await self.get_result("eth_estimateGas", [transaction]), 16)

    async def call(
        self, transaction: dict[str, str], block_number_hex: str = "latest"
    ) -> Any:
        """Returns the raw json rpc response so callers can read revert
        data."""
        return await self.send_request(
            "eth_call", [transaction, block_number_hex])
