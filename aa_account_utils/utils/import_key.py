import glob
import json

from eth_account import Account

from aa_account_utils.typing import Address

DEFAULT_KEYSTORE_GLOB = "keystore/*"


def import_signer_account(
    keystore_file_password: str,
    keystore_file_path: str = DEFAULT_KEYSTORE_GLOB,
) -> tuple[Address, str]:
    """Decrypt a V3 keystore file and return the signer address and its
    0x prefixed private key. The default path picks the first file in
    ./keystore."""
    if keystore_file_path == DEFAULT_KEYSTORE_GLOB:
        keystore_files = sorted(glob.glob(keystore_file_path))
        if len(keystore_files) == 0:
            raise FileNotFoundError("No keystore file in ./keystore")
        keystore_file_path = keystore_files[0]

    with open(keystore_file_path) as keystore_file:
        keystore = json.load(keystore_file)
    private_key = bytes(Account.decrypt(keystore, keystore_file_password))
    return (
        Address(Account.from_key(private_key).address),
        "0x" + private_key.hex(),
    )


def public_address_from_private_key(private_key: str) -> Address:
    return Address(Account.from_key(private_key).address)
