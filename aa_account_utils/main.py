import asyncio
import json
import logging
import sys

import uvloop

from aa_account_utils.account.simple_account import build_init_code
from aa_account_utils.account_utils import AccountUtils
from aa_account_utils.exceptions import (
    BundlerException,
    ConfigurationException,
    ExecutionException,
    GasEstimationException,
    ValidationException,
)
from aa_account_utils.user_operation.user_operation import UserOperation

from .cli_manager import InitData, get_account_utils_config, parse_args


def load_user_operation(user_operation_file: str) -> UserOperation:
    with open(user_operation_file) as user_operation_json_file:
        return UserOperation.from_json(json.load(user_operation_json_file))


async def execute_command(
    init_data: InitData, account_utils: AccountUtils
) -> dict | str | int:
    args = init_data.args
    if init_data.command == "nonce":
        return await account_utils.get_nonce(args.address, args.nonce_key)

    if init_data.command == "sender-address":
        init_code = args.init_code
        if init_code is None:
            init_code = build_init_code(args.factory, args.owner, args.salt)
        return await account_utils.get_sender_address(init_code)

    user_operation = load_user_operation(args.user_operation_file)
    if init_data.command == "estimate":
        user_operation = await account_utils.estimate_user_operation_gas(
            user_operation,
            skip_bundler_gas_estimation=args.skip_bundler_gas_estimation,
        )
        return user_operation.get_user_operation_json()

    if init_data.command == "hash":
        return account_utils.get_user_operation_hash(user_operation)

    # send
    if not args.no_sign:
        user_operation = await account_utils.sign_user_operation(
            user_operation)
    return await account_utils.send_user_operation(user_operation)


async def main(cmd_args=sys.argv[1:]) -> None:
    init_data = await parse_args(cmd_args)
    account_utils = AccountUtils(get_account_utils_config(init_data))
    try:
        result = await execute_command(init_data, account_utils)
    except (
        ValidationException,
        GasEstimationException,
        BundlerException,
        ConfigurationException,
        ExecutionException,
    ) as excp:
        logging.error(
            f"{init_data.command} failed with {excp.exception_code.name}: "
            f"{excp.message}"
        )
        sys.exit(1)
    print(json.dumps(result, indent=2))


def run() -> None:
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    asyncio.run(main())
