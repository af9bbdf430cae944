import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from aiohttp import ClientSession

from aa_account_utils.exceptions import \
    BundlerException, BundlerExceptionCode
from aa_account_utils.user_operation.models import UserOperationGasEstimate
from aa_account_utils.user_operation.user_operation import \
    verify_and_get_uint

REQUIRED_GAS_ESTIMATE_FIELDS = [
    "preVerificationGas",
    "verificationGasLimit",
    "callGasLimit",
]


class BundlerClient(ABC):
    """Json-rpc transport to an ERC-4337 bundler."""

    @abstractmethod
    async def send_request(self, method: str, params: list[Any]) -> dict:
        pass

    async def get_result(self, method: str, params: list[Any]) -> Any:
        response = await self.send_request(method, params)
        if response.get("error") is not None:
            error = response["error"]
            logging.error(f"Bundler error for {method}: {error}")
            raise BundlerException(
                BundlerExceptionCode.RelayError,
                str(error.get("message", "Unknown bundler error")),
                error,
            )
        return response.get("result")

    async def estimate_user_operation_gas(
        self, user_operation_json: dict[str, Any], entrypoint: str
    ) -> UserOperationGasEstimate:
        result = await self.get_result(
            "eth_estimateUserOperationGas", [user_operation_json, entrypoint]
        )
        if result is None:
            result = {}

        # fee fields are optional
        for field in REQUIRED_GAS_ESTIMATE_FIELDS:
            if not result.get(field):
                raise BundlerException(
                    BundlerExceptionCode.BundlerFieldMissing,
                    f"Got undefined {field} from bundler",
                    field,
                )

        return UserOperationGasEstimate(
            pre_verification_gas=verify_and_get_uint(
                "preVerificationGas", result["preVerificationGas"]),
            verification_gas_limit=verify_and_get_uint(
                "verificationGasLimit", result["verificationGasLimit"]),
            call_gas_limit=verify_and_get_uint(
                "callGasLimit", result["callGasLimit"]),
            max_fee_per_gas=_get_optional_uint(result, "maxFeePerGas"),
            max_priority_fee_per_gas=_get_optional_uint(
                result, "maxPriorityFeePerGas"),
        )

    async def send_user_operation(
        self, user_operation_json: dict[str, Any], entrypoint: str
    ) -> str:
        logging.info("Sending UserOperation to bundler")
        return await self.get_result(
            "eth_sendUserOperation", [user_operation_json, entrypoint]
        )


class HttpBundlerClient(BundlerClient):
    bundler_url: str

    def __init__(self, bundler_url: str):
        self.bundler_url = bundler_url

    async def send_request(self, method: str, params: list[Any]) -> dict:
        json_request = {
            "jsonrpc": "2.0",
            "id": int(time.time()),
            "method": method,
            "params": params,
        }
        headers = {"content-type": "application/json"}
        async with ClientSession() as session:
            async with session.post(
                self.bundler_url,
                json=json_request,
                headers=headers
            ) as response:
                resp = await response.read()
        try:
            return json.loads(resp)
        except json.decoder.JSONDecodeError:
            raise BundlerException(
                BundlerExceptionCode.RelayError,
                f"Invalid json response from bundler for {method}",
                resp,
            )


def _get_optional_uint(result: dict[str, Any], field: str) -> int | None:
    value = result.get(field)
    if not value:
        return None
    return verify_and_get_uint(field, value)
