# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Transfer Example - moving value between STRATO accounts.

The user running the example sends value to a freshly created key, first as a
single resolved transfer and then as an asynchronous batch whose hashes are
resolved afterwards.

Examples:
    Run the example::

        python -m examples.transfer
"""

import asyncio

from strato_sdk.async_client import RestClient
from strato_sdk.cli import get_user
from strato_sdk.constants import FINNEY, format_wei
from strato_sdk.transactions import TransactionResult, TxResultStatus
from strato_sdk.types import SendTx

from .common import TOKEN, get_config


async def main():
    config = get_config()
    oauth_user = await get_user(config, 0, TOKEN)

    async with RestClient(config) as client:
        alice = await client.create_user(oauth_user)
        bob_address = await client.create_key(oauth_user)
        print(f"Alice: {alice.address}")
        print(f"Bob: {bob_address}")

        print(f"Alice balance: {format_wei(await client.get_balance(oauth_user, alice))}")

        await client.send(alice, SendTx(bob_address, 5 * FINNEY))

        hashes = await client.send_many(
            alice,
            [SendTx(bob_address, FINNEY) for _ in range(3)],
            client.options(is_async=True),
        )
        pending = [TransactionResult(h, TxResultStatus.PENDING) for h in hashes]
        resolved = await client.resolve_results(alice, pending)
        print(f"Batch: {[result.status.value for result in resolved]}")

        accounts = await client.get_accounts(
            oauth_user, client.options(query={"address": bob_address})
        )
        print(f"Bob balance: {format_wei(int(accounts[0]['balance']))}")


if __name__ == "__main__":
    asyncio.run(main())
