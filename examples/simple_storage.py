# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Simple Storage Example - contract upload, calls, state and search on STRATO.

Workflow:
    1. Get a user with a funded key
    2. Upload ``SimpleStorage`` with history enabled
    3. Call ``set`` and read the state back
    4. Wait for the index to pick up the contract and search its history

Examples:
    Run the example::

        python -m examples.simple_storage
"""

import asyncio

from strato_sdk.async_client import RestClient
from strato_sdk.cli import get_user
from strato_sdk.types import CallArgs, Contract, ContractDefinition
from strato_sdk.util import uid

from .common import TOKEN, get_config

SOURCE = """
contract SimpleStorage {
    uint public storedData;

    constructor(uint _storedData) {
        storedData = _storedData;
    }

    function set(uint x) returns (uint) {
        storedData = x;
        return storedData;
    }
}
"""


async def main():
    config = get_config()
    oauth_user = await get_user(config, 0, TOKEN)

    async with RestClient(config) as client:
        options = client.options(enable_history=True)
        user = await client.create_user(oauth_user, options)
        print(f"User address: {user.address}")

        name = f"SimpleStorage_{uid()}"
        contract = await client.create_contract(
            user,
            ContractDefinition(
                name, SOURCE.replace("SimpleStorage", name), {"_storedData": 10}
            ),
            options,
        )
        print(f"Contract: {contract.name} at {contract.address}")

        result = await client.call(user, CallArgs(contract, "set", {"x": 42}), options)
        print(f"set returned {result}")

        state = await client.get_state(user, contract, options)
        print(f"storedData: {state['storedData']}")

        row = await client.wait_for_address(user, contract, options)
        print(f"Indexed: {row}")

        history = await client.search(
            user,
            Contract(f"history@{contract.name}"),
            options.merge(query={"address": f"eq.{contract.address}"}),
        )
        print(f"History entries: {len(history)}")


if __name__ == "__main__":
    asyncio.run(main())
