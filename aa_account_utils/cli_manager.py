import logging
import os
import re
import sys
from argparse import ArgumentParser, ArgumentTypeError, Namespace
from dataclasses import dataclass

import aiohttp

from aa_account_utils.account_utils import AccountUtilsConfig
from aa_account_utils.bundler.bundler_client import HttpBundlerClient
from aa_account_utils.signer.signer import LocalAccountSigner
from aa_account_utils.utils.eth_client_utils import EthClient

from .typing import Address
from .utils.import_key import (import_signer_account,
                               public_address_from_private_key)

ENTRYPOINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"


@dataclass()
class InitData:
    command: str
    ethereum_node_url: str | None
    bundler_url: str | None
    entrypoint: Address
    chain_id: int
    signer_pk: str | None
    signer_address: Address | None
    is_legacy_mode: bool
    args: Namespace


def address(ep: str):
    address_pattern = "^0x[0-9,a-f,A-F]{40}$"
    if not isinstance(ep, str) or re.match(address_pattern, ep) is None:
        raise ArgumentTypeError(f"Wrong address format : {ep}")
    return ep


def unsigned_int(value):
    ivalue = int(value, 0) if isinstance(value, str) else int(value)
    if ivalue < 0:
        raise ArgumentTypeError(
                "%s is an invalid unsigned int value" % value)
    return ivalue


def hex_bytes(value: str) -> bytes:
    if not isinstance(value, str) or value[:2] != "0x":
        raise ArgumentTypeError(f"Wrong hex format : {value}")
    try:
        return bytes.fromhex(value[2:])
    except ValueError:
        raise ArgumentTypeError(f"Wrong hex format : {value}")


def _get_env_or_default(env_var, default, value_type):
    """
    Helper function to get the value from an environment variable or return
    the default value.
    """
    value = os.getenv(env_var, None)
    if value is not None:
        return value_type(value)
    return default


def initialize_argument_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="aa-account-utils",
        description="ERC-4337 UserOperation gas estimation and signing",
    )

    group = parser.add_mutually_exclusive_group(required=False)

    group.add_argument(
        "--signer_secret",
        type=str,
        help="Signer private key",
        nargs="?",
        default=_get_env_or_default("AA_ACCOUNT_UTILS_SIGNER_SECRET", None, str),
    )

    group.add_argument(
        "--keystore_file_path",
        type=str,
        help="Signer Keystore file path",
        nargs="?",
        default=_get_env_or_default(
            "AA_ACCOUNT_UTILS_KEYSTORE_FILE_PATH", None, str),
    )

    parser.add_argument(
        "--keystore_file_password",
        type=str,
        help="Signer Keystore file password - defaults to no password",
        nargs="?",
        const="",
        default=_get_env_or_default(
            "AA_ACCOUNT_UTILS_KEYSTORE_FILE_PASSWORD", "", str),
    )

    parser.add_argument(
        "--ethereum_node_url",
        type=str,
        help="Eth Client JSON-RPC Url",
        nargs="?",
        default=_get_env_or_default(
            "AA_ACCOUNT_UTILS_ETHEREUM_NODE_URL", None, str),
    )

    parser.add_argument(
        "--bundler_url",
        type=str,
        help="Bundler JSON-RPC Url - without it gas is estimated locally",
        nargs="?",
        default=_get_env_or_default("AA_ACCOUNT_UTILS_BUNDLER_URL", None, str),
    )

    parser.add_argument(
        "--entrypoint",
        type=address,
        help="Entrypoint address - defaults to the v0.6 entrypoint",
        nargs="?",
        const=ENTRYPOINT_V06,
        default=_get_env_or_default(
            "AA_ACCOUNT_UTILS_ENTRYPOINT", ENTRYPOINT_V06, address),
    )

    parser.add_argument(
        "--chain_id",
        type=unsigned_int,
        help="Chain id - defaults to the chain id of the Eth node",
        nargs="?",
        default=_get_env_or_default(
            "AA_ACCOUNT_UTILS_CHAIN_ID", None, unsigned_int),
    )

    parser.add_argument(
        "--legacy_mode",
        help="Use eth_gasPrice only, for chains without EIP-1559",
        action="store_true",
    )

    parser.add_argument(
        "--verbose",
        help="show debug log",
        action="store_true",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    nonce_parser = subparsers.add_parser(
        "nonce", help="Get the nonce of an account")
    nonce_parser.add_argument("address", type=address)
    nonce_parser.add_argument(
        "--nonce_key", type=unsigned_int, default=0)

    sender_address_parser = subparsers.add_parser(
        "sender-address",
        help="Derive an account address from its initCode",
    )
    sender_address_parser.add_argument(
        "--init_code", type=hex_bytes, default=None)
    sender_address_parser.add_argument(
        "--factory", type=address, default=None)
    sender_address_parser.add_argument(
        "--owner", type=address, default=None)
    sender_address_parser.add_argument(
        "--salt", type=unsigned_int, default=0)

    estimate_parser = subparsers.add_parser(
        "estimate", help="Fill the gas fields of a UserOperation json file")
    estimate_parser.add_argument("user_operation_file", type=str)
    estimate_parser.add_argument(
        "--skip_bundler_gas_estimation",
        help="Estimate gas with the Eth node even if a bundler is set",
        action="store_true",
    )

    hash_parser = subparsers.add_parser(
        "hash", help="Compute the userOpHash of a UserOperation json file")
    hash_parser.add_argument("user_operation_file", type=str)

    send_parser = subparsers.add_parser(
        "send", help="Sign and send a UserOperation json file")
    send_parser.add_argument("user_operation_file", type=str)
    send_parser.add_argument(
        "--no_sign",
        help="Send the UserOperation signature as is",
        action="store_true",
    )

    return parser


async def parse_args(cmd_args: list[str]) -> InitData:
    argument_parser: ArgumentParser = initialize_argument_parser()
    args = argument_parser.parse_args(cmd_args)
    if args.command == "sender-address":
        if args.init_code is None and (
            args.factory is None or args.owner is None
        ):
            argument_parser.error(
                "You must specify either --init_code or both "
                "--factory and --owner")
    if args.command == "send" and args.bundler_url is None:
        argument_parser.error("You must specify --bundler_url to send")
    if (
        args.command == "send" and
        not args.no_sign and
        args.signer_secret is None and
        args.keystore_file_path is None
    ):
        argument_parser.error(
            "You must specify --signer_secret or --keystore_file_path "
            "to sign, or --no_sign to send the UserOperation as is")
    if args.ethereum_node_url is None and args.chain_id is None:
        argument_parser.error(
            "You must specify --chain_id when no --ethereum_node_url is set")
    init_data = await get_init_data(args)
    return init_data


def init_logging(args: Namespace):
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s.%(msecs)03d %(levelname)s %(message)s",
        datefmt="%b %d %H:%M:%S",
    )


def init_signer_address_and_secret(
    args: Namespace
) -> tuple[Address | None, str | None]:
    if args.keystore_file_path is not None:
        signer_address, signer_pk = import_signer_account(
            args.keystore_file_password, args.keystore_file_path
        )
    elif args.signer_secret is not None:
        signer_pk = args.signer_secret
        signer_address = public_address_from_private_key(signer_pk)
    else:
        return None, None
    return Address(signer_address), signer_pk


async def check_valid_ethereum_rpc_and_get_chain_id(
    eth_client: EthClient
) -> int:
    try:
        return await eth_client.get_chain_id()
    except aiohttp.client_exceptions.ClientConnectorError:
        logging.critical(
            f"Connection refused for Eth node {eth_client.ethereum_node_url}")
        sys.exit(1)
    except Exception:
        logging.critical(
            f"Error when connecting to Eth node {eth_client.ethereum_node_url}")
        sys.exit(1)


async def get_init_data(args: Namespace) -> InitData:
    init_logging(args)

    chain_id = args.chain_id
    if args.ethereum_node_url is not None:
        node_chain_id = await check_valid_ethereum_rpc_and_get_chain_id(
            EthClient(args.ethereum_node_url, args.legacy_mode)
        )
        if chain_id is None:
            chain_id = node_chain_id
        elif chain_id != node_chain_id:
            logging.critical(
                f"Invalid chain id {chain_id} with Eth node "
                f"{args.ethereum_node_url}"
            )
            sys.exit(1)

    signer_address, signer_pk = init_signer_address_and_secret(args)

    return InitData(
        args.command,
        args.ethereum_node_url,
        args.bundler_url,
        args.entrypoint,
        chain_id,
        signer_pk,
        signer_address,
        args.legacy_mode,
        args,
    )


def get_account_utils_config(init_data: InitData) -> AccountUtilsConfig:
    eth_client = None
    if init_data.ethereum_node_url is not None:
        eth_client = EthClient(
            init_data.ethereum_node_url, init_data.is_legacy_mode)
    bundler_client = None
    if init_data.bundler_url is not None:
        bundler_client = HttpBundlerClient(init_data.bundler_url)
    signer = None
    if init_data.signer_pk is not None:
        signer = LocalAccountSigner(init_data.signer_pk)

    return AccountUtilsConfig(
        entrypoint=init_data.entrypoint,
        chain_id=init_data.chain_id,
        signer=signer,
        eth_client=eth_client,
        bundler_client=bundler_client,
    )
