# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
STRATO Python SDK - An async client library for the STRATO blockchain API.

The SDK wraps the HTTP API of STRATO nodes: key management, contract upload
and method calls, value transfers, state reads, indexed search, private chains
and the VM debugger. Transactions are submitted in batches and, unless the
call is asynchronous, resolved by polling until none of them is pending.

Quick Start:
    Upload a contract and call a method::

        import asyncio
        from strato_sdk.async_client import RestClient
        from strato_sdk.config import load_config
        from strato_sdk.types import CallArgs, ContractDefinition, OAuthUser

        async def main():
            config = load_config("config.yaml")
            async with RestClient(config) as client:
                user = await client.create_user(OAuthUser(token))
                contract = await client.create_contract(
                    user, ContractDefinition("SimpleStorage", source)
                )
                await client.call(user, CallArgs(contract, "set", {"x": 7}))
                state = await client.get_state(user, contract)
                print(state["x"])

        asyncio.run(main())

Module Organization:
    - **async_client**: ``RestClient``, the high level operations
    - **api_util**: endpoint templates, query strings and request bodies
    - **transactions**: transaction envelopes, batches and results
    - **metadata**: per-transaction contract metadata (history, index, VM)
    - **options**: per-call options
    - **config**: node configuration loaded from YAML, TOML or JSON
    - **http_client**: HTTP transport and ``RestError``
    - **util**: polling (``until``) and small helpers
    - **oauth**: OpenID Connect token acquisition
    - **importer**: local resolution of source imports
    - **constants**: currency units
    - **cli**: command-line inspection tool
"""
