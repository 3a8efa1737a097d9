# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line interface for quick inspection of a STRATO node.

Supported Commands:
- state: print the state of a contract, or of one of its variables
- search: query the search index for instances of a contract
- compile: compile a source file, resolving its imports locally
- balance: print the balance of an account

All commands read the node list from a config file (YAML, TOML or JSON). The
bearer token is taken from ``--token``, then from the ``STRATO_TOKEN``
environment variable; otherwise a client-credentials token is requested from
the OpenID provider configured for the node.

Examples:
    Read a contract's state::

        python -m strato_sdk.cli state --config config.yaml \\
            --contract SimpleStorage --address 60fb...

    Search with filters::

        python -m strato_sdk.cli search --config config.yaml \\
            --contract Asset --query owner=eq.60fb... --query limit=10

    Compile a file and its imports::

        python -m strato_sdk.cli compile --config config.yaml \\
            --contract Main --source contracts/Main.sol
"""

import argparse
import asyncio
import contextlib
import io
import json
import os
import sys
import tempfile
import unittest
from typing import Any, List, Optional, Tuple

import httpx

from .async_client import RestClient
from .config import Config, load_config
from .constants import format_wei
from .importer import combine
from .oauth import OAuthClient
from .options import Options
from .types import BlockchainUser, Contract, ContractDefinition, OAuthUser

TOKEN_ENV = "STRATO_TOKEN"


def key_value(indata: str) -> Tuple[str, str]:
    """Parse a ``name=value`` query argument."""
    name, sep, value = indata.partition("=")
    if not sep or not name:
        raise ValueError("Invalid query, expected name=value")
    return (name, value)


async def get_user(
    config: Config, node: int, token: Optional[str] = None
) -> OAuthUser:
    if token:
        return OAuthUser(token)
    oauth_config = config.nodes[node].oauth
    if oauth_config is None:
        raise ValueError(f"No token given and node {node} has no oauth settings")
    oauth = await OAuthClient.init(oauth_config)
    try:
        access_token = await oauth.get_access_token_by_client_secret()
    finally:
        await oauth.close()
    return OAuthUser(access_token.token(oauth.token_field))


async def run(
    client: RestClient, user: OAuthUser, args: argparse.Namespace
) -> Any:
    options = Options(
        config=client.config,
        node=args.node,
        chain_ids=[args.chain_id] if args.chain_id else None,
        query=dict(args.query) or None,
    )
    if args.command == "state":
        contract = Contract(args.contract, args.address)
        if args.name:
            options = options.merge(state_query={"name": args.name})
        return await client.get_state(user, contract, options)
    if args.command == "search":
        return await client.search(user, Contract(args.contract), options)
    if args.command == "compile":
        path = args.source
        if client.config.contracts_path and not os.path.isabs(path):
            path = os.path.join(client.config.contracts_path, path)
        source = "".join(combine(path).values())
        definition = ContractDefinition(args.contract, source)
        return await client.compile_contracts(user, [definition], options)
    bc_user = BlockchainUser(user.token, args.address) if args.address else None
    return format_wei(await client.get_balance(user, bc_user, options))


async def main(
    args: List[str], transport: Optional[httpx.AsyncBaseTransport] = None
):
    parser = argparse.ArgumentParser(description="STRATO Python CLI")
    parser.add_argument(
        "command",
        type=str,
        help="The command to execute",
        choices=["state", "search", "compile", "balance"],
    )
    parser.add_argument("--config", help="Path to the config file", type=str)
    parser.add_argument(
        "--node", help="Index of the node in the config", type=int, default=0
    )
    parser.add_argument("--token", help="OAuth bearer token", type=str)
    parser.add_argument("--contract", help="Contract name", type=str)
    parser.add_argument("--address", help="Contract or account address", type=str)
    parser.add_argument("--name", help="State variable to read", type=str)
    parser.add_argument("--chain-id", help="Private chain id", type=str)
    parser.add_argument(
        "--query",
        help="Query parameter in format 'name=value' (can be specified multiple times)",
        action="append",
        type=key_value,
        default=[],
    )
    parser.add_argument("--source", help="Path to the contract source", type=str)
    parsed_args = parser.parse_args(args)

    if parsed_args.config is None:
        parser.error("Missing required argument '--config'")
    if parsed_args.command in ["state", "search", "compile"]:
        if parsed_args.contract is None:
            parser.error("Missing required argument '--contract'")
    if parsed_args.command == "state" and parsed_args.address is None:
        parser.error("Missing required argument '--address'")
    if parsed_args.command == "compile" and parsed_args.source is None:
        parser.error("Missing required argument '--source'")

    try:
        config = load_config(parsed_args.config)
    except FileNotFoundError:
        parser.error(f"Config file not found: {parsed_args.config}")

    token = parsed_args.token or os.environ.get(TOKEN_ENV)
    user = await get_user(config, parsed_args.node, token)
    async with RestClient(config, transport) as client:
        result = await run(client, user, parsed_args)
    if isinstance(result, str):
        print(result)
    else:
        print(json.dumps(result, indent=2))


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.dir.cleanup)
        self.config_path = os.path.join(self.dir.name, "config.yaml")
        with open(self.config_path, "w") as f:
            f.write("VM: SolidVM\nnodes:\n  - url: http://node\n")
        self.requests: List[httpx.Request] = []

    def transport(self, body: Any) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(200, json=body)

        return httpx.MockTransport(handler)

    async def invoke(self, args: List[str], body: Any) -> str:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            await main(
                args + ["--config", self.config_path, "--token", "t"],
                self.transport(body),
            )
        return out.getvalue()

    def test_key_value(self):
        self.assertEqual(key_value("owner=eq.abc"), ("owner", "eq.abc"))
        self.assertEqual(key_value("x=a=b"), ("x", "a=b"))
        with self.assertRaises(ValueError):
            key_value("novalue")

    async def test_state(self):
        output = await self.invoke(
            ["state", "--contract", "Foo", "--address", "abcd", "--name", "x"],
            {"x": 5},
        )

        self.assertEqual(json.loads(output), {"x": 5})
        request = self.requests[0]
        self.assertEqual(request.url.path, "/bloc/v2.2/contracts/Foo/abcd/state")
        self.assertEqual(request.url.params["name"], "x")
        self.assertEqual(request.headers["Authorization"], "Bearer t")

    async def test_search(self):
        output = await self.invoke(
            ["search", "--contract", "Foo", "--query", "x=eq.1", "--query", "limit=2"],
            [{"x": 1}],
        )

        self.assertEqual(json.loads(output), [{"x": 1}])
        params = self.requests[0].url.params
        self.assertEqual(params["x"], "eq.1")
        self.assertEqual(params["limit"], "2")

    async def test_compile(self):
        source = os.path.join(self.dir.name, "Main.sol")
        with open(source, "w") as f:
            f.write("contract Main {}")

        await self.invoke(["compile", "--contract", "Main", "--source", source], [])

        self.assertEqual(
            json.loads(self.requests[0].content),
            [{"contractName": "Main", "source": "contract Main {}\n"}],
        )

    async def test_compile_contracts_path(self):
        with open(self.config_path, "a") as f:
            f.write(f"contractsPath: {self.dir.name}\n")
        with open(os.path.join(self.dir.name, "Lib.sol"), "w") as f:
            f.write("contract Lib {}")

        await self.invoke(["compile", "--contract", "Lib", "--source", "Lib.sol"], [])

        self.assertEqual(
            json.loads(self.requests[0].content)[0]["source"], "contract Lib {}\n"
        )

    async def test_balance(self):
        output = await self.invoke(
            ["balance", "--address", "abcd"], [{"balance": str(2 * 10**18)}]
        )
        self.assertEqual(output.strip(), "2 Ether")

    async def test_missing_contract(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                await main(["state", "--config", self.config_path])


def run_main():
    asyncio.run(main(sys.argv[1:]))


if __name__ == "__main__":
    run_main()
