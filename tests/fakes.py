from typing import Any

from aa_account_utils.bundler.bundler_client import BundlerClient
from aa_account_utils.utils.eth_client_utils import EthClient

ENTRYPOINT = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
SENDER = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa0001"
FACTORY = "0x9406Cc6185a346906296840746125a0E44976454"
OWNER = "0x084178a5fd956e624fcb61c3c2209e3dcf42c8e8"
SIGNER_PRIVATE_KEY = \
    "0x897368deaa9f3797c02570ef7d3fa4df179b0fc7ad8d8fc2547d04701604eb72"


class FakeEthClient(EthClient):
    """Answers json rpc requests from a method -> response mapping.
    A response can be a callable taking the request params."""

    def __init__(self, responses: dict[str, Any], is_legacy_mode=False):
        super().__init__("http://eth-node.invalid", is_legacy_mode)
        self.responses = responses
        self.requests: list[tuple[str, Any]] = []

    async def send_request(self, method: str, params=None) -> Any:
        self.requests.append((method, params))
        response = self.responses[method]
        if callable(response):
            return response(params)
        return response

    def methods(self) -> list[str]:
        return [method for method, _ in self.requests]


class FakeBundlerClient(BundlerClient):
    def __init__(self, response: dict[str, Any]):
        self.response = response
        self.requests: list[tuple[str, list[Any]]] = []

    async def send_request(self, method: str, params: list[Any]) -> dict:
        self.requests.append((method, params))
        return self.response
