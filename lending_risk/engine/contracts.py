"""
Contract instance creation utilities.
"""

import json

from web3 import Web3
from web3.contract import Contract


def create_contract_instance(address: str, abi_path: str, w3: Web3) -> Contract:
    """
    Create and return a Web3 contract instance.

    Args:
        address: The address of the contract.
        abi_path: Path to the ABI JSON file.
        w3: Web3 instance connected to the market's RPC.

    Returns:
        Web3 contract instance.
    """
    with open(abi_path, "r", encoding="utf-8") as file:
        interface = json.load(file)
    abi = interface["abi"]

    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
