# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous client library for interacting with a STRATO blockchain node.

This module provides :class:`RestClient`, an async client covering the STRATO
REST surface: key management, contract upload and method calls, value
transfers, contract state reads, indexed search, private chains and the VM
debugger.

Mutating calls are submitted as transaction envelopes. Unless the call is
asynchronous (``Options.is_async``) the client resolves the pending results by
polling the transaction results endpoint until none of them is ``Pending``,
then returns the contents of the resolved transactions.

Examples:
    Create a contract and call a method::

        from strato_sdk.async_client import RestClient
        from strato_sdk.config import load_config
        from strato_sdk.types import CallArgs, ContractDefinition, OAuthUser

        config = load_config("config.yaml")
        async with RestClient(config) as client:
            user = await client.create_user(OAuthUser(token))
            contract = await client.create_contract(
                user,
                ContractDefinition("SimpleStorage", source, {"x": 10}),
            )
            result = await client.call(
                user, CallArgs(contract, "set", {"x": 20})
            )

    Wait for the index to pick up a contract::

        rows = await client.search_until(
            user, contract, lambda rows: len(rows) > 0,
            client.options(query={"address": f"eq.{contract.address}"}),
        )

    Submit without waiting and resolve later::

        options = client.options(is_async=True)
        pending = await client.call(user, call_args, options)
        resolved = await client.resolve_result(user, pending)

Error Handling:
    - RestError: non-2xx responses and failed transactions (status 400)
    - UntilTimeoutError: a poll did not complete within its budget

Note:
    All client operations are async and must be awaited. Call ``close()`` (or
    use the client as an async context manager) to release the connection pool.
"""

import json
import logging
import math
import unittest
import unittest.mock
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from .api_util import (
    Endpoint,
    construct_endpoint,
    create_body,
    get_node_url,
    set_auth_headers,
)
from .config import Config, Node
from .http_client import LOGGER_NAME, HttpClient, RestError
from .metadata import construct_metadata
from .options import Options
from .transactions import (
    TransactionResult,
    TxResultStatus,
    assert_tx_result,
    assert_tx_result_list,
    batch,
    get_call_args,
    get_create_args,
    get_send_args,
)
from .types import (
    BlockchainUser,
    CallArgs,
    Chain,
    Contract,
    ContractDefinition,
    OAuthUser,
    SendTx,
    StratoUser,
)
from .util import DEFAULT_TIMEOUT, UntilTimeoutError, until

NOT_FOUND = 404
BAD_REQUEST = 400
MAX_SEGMENT_SIZE = 100


@dataclass
class ContentRange:
    count: Optional[int]
    start: Optional[int] = None
    end: Optional[int] = None

    @staticmethod
    def from_header(value: str) -> "ContentRange":
        """Parse a ``content-range`` header such as ``0-9/42`` or ``*/0``."""
        span, count_str = value.split("/")
        count = None if count_str == "*" else int(count_str)
        if span == "*":
            return ContentRange(count)
        start, end = (int(part) for part in span.split("-"))
        return ContentRange(count, start, end)


@dataclass
class SearchResult:
    data: List[Dict[str, Any]]
    content_range: Optional[ContentRange] = None


class RestClient:
    """Async client for the STRATO REST API.

    Every operation accepts an optional :class:`~strato_sdk.options.Options`;
    when omitted, ``Options(config=client.config)`` is used. Operations that
    act on behalf of a user send its token as a bearer ``Authorization`` header.

    Attributes:
        config: Node list and client-wide defaults.
        http: Transport issuing the HTTP requests.
    """

    config: Config
    http: HttpClient

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        :param config: Node list and defaults shared by all calls.
        :param transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
        """
        self.config = config
        self.http = HttpClient(config, transport)

    async def close(self):
        await self.http.close()

    async def __aenter__(self) -> "RestClient":
        return self

    async def __aexit__(self, *args):
        await self.close()

    def options(self, **kwargs: Any) -> Options:
        """Build options for this client's config."""
        return Options(config=self.config, **kwargs)

    def _options(self, options: Optional[Options]) -> Options:
        return options if options is not None else self.options()

    def _timeout(self, options: Options) -> int:
        return options.config.timeout or DEFAULT_TIMEOUT

    #
    # Node information
    #

    async def get_accounts(
        self, user: OAuthUser, options: Optional[Options] = None
    ) -> List[Dict[str, Any]]:
        """
        Query accounts, filtered by ``options.query`` (e.g. ``{"address": ...}``).

        The accounts endpoint does not accept the resolve flag, so the call is
        always made asynchronously.
        """
        options = self._options(options).merge(is_async=True)
        return await self._get(Endpoint.ACCOUNT, options, user=user)

    async def get_health(self, user: OAuthUser, options: Optional[Options] = None):
        options = self._options(options).merge(is_async=True)
        return await self._get(Endpoint.HEALTH, options, user=user)

    async def get_status(self, user: OAuthUser, options: Optional[Options] = None):
        options = self._options(options).merge(is_async=True)
        return await self._get(Endpoint.STATUS, options, user=user)

    async def get_version(self, user: OAuthUser, options: Optional[Options] = None):
        options = self._options(options).merge(is_async=True)
        return await self._get(Endpoint.VERSION, options, user=user)

    async def get_balance(
        self,
        user: OAuthUser,
        bc_user: Optional[BlockchainUser] = None,
        options: Optional[Options] = None,
    ) -> int:
        """
        Fetch the balance in wei of ``bc_user``, or of the key of ``user`` when
        no blockchain user is given. Unknown accounts have a balance of 0.
        """
        options = self._options(options)
        if bc_user is None:
            address = await self.get_key(user, options)
        else:
            address = bc_user.address
        accounts = await self.get_accounts(user, options.merge(query={"address": address}))
        if len(accounts) == 0:
            return 0
        return int(accounts[0]["balance"])

    async def ping_oauth(
        self, user: OAuthUser, options: Optional[Options] = None
    ) -> int:
        """Check that the node accepts the user's token; returns the HTTP status."""
        options = self._options(options).merge(get_full_response=True)
        response = await self._get(Endpoint.KEY, options, user=user)
        return response.status_code

    #
    # Users and keys
    #

    async def create_strato_user(
        self, user: StratoUser, options: Optional[Options] = None
    ):
        """Create a username/password user on nodes without OAuth."""
        options = self._options(options)
        url = get_node_url(options)
        endpoint = construct_endpoint(
            Endpoint.USER, options, {"username": user.username}
        )
        return await self.http.postue(
            url, endpoint, {"password": user.password}, options
        )

    async def get_key(self, user: OAuthUser, options: Optional[Options] = None) -> str:
        response = await self._get(Endpoint.KEY, self._options(options), user=user)
        return response["address"]

    async def create_key(
        self, user: OAuthUser, options: Optional[Options] = None
    ) -> str:
        response = await self._post(Endpoint.KEY, {}, self._options(options), user=user)
        return response["address"]

    async def create_or_get_key(
        self, user: OAuthUser, options: Optional[Options] = None
    ) -> str:
        """
        Return the address of the user's key, creating the key if the node does
        not know it yet. New and empty accounts are filled from the faucet.
        """
        options = self._options(options)
        try:
            address = await self.get_key(user, options)
        except RestError as e:
            # the user doesn't have a key yet
            if e.status_code != BAD_REQUEST:
                raise
            address = await self.create_key(user, options)
            await self.fill(BlockchainUser(user.token, address), options)
            return address

        bc_user = BlockchainUser(user.token, address)
        balance = await self.get_balance(user, bc_user, options)
        if balance == 0:
            await self.fill(bc_user, options)
        return address

    async def create_user(
        self, user: OAuthUser, options: Optional[Options] = None
    ) -> BlockchainUser:
        address = await self.create_or_get_key(user, options)
        return BlockchainUser(user.token, address)

    async def fill(
        self, user: BlockchainUser, options: Optional[Options] = None
    ) -> TransactionResult:
        """Fund the user's account from the node faucet."""
        options = set_auth_headers(user, self._options(options))
        url = get_node_url(options)
        endpoint = construct_endpoint(Endpoint.FILL, options, {"address": user.address})
        response = await self.http.postue(url, endpoint, {}, options)
        return assert_tx_result(TransactionResult.from_dict(response))

    #
    # Contracts
    #

    async def compile_contracts(
        self,
        user: OAuthUser,
        contracts: List[ContractDefinition],
        options: Optional[Options] = None,
    ) -> List[Dict[str, Any]]:
        body = [
            {"contractName": contract.name, "source": contract.source}
            for contract in contracts
        ]
        return await self._post(Endpoint.COMPILE, body, self._options(options), user=user)

    async def create_contract(
        self,
        user: BlockchainUser,
        contract: ContractDefinition,
        options: Optional[Options] = None,
    ) -> Union[Contract, TransactionResult, Dict[str, Any]]:
        """
        Upload a contract.

        :return: The pending result when ``is_async``, the full contract contents
            when ``is_detailed``, otherwise the new contract's name and address.
        :raises RestError: If the transaction failed.
        """
        options = self._options(options)
        body = batch([get_create_args(contract, options)])
        [pending] = await self.send_transactions(user, body, options)
        assert_tx_result(pending)
        if options.is_async:
            return pending
        resolved = assert_tx_result(await self.resolve_result(user, pending, options))
        contents = resolved.contents
        if options.is_detailed:
            return contents
        return Contract(contents["name"], contents["address"])

    async def create_contract_list(
        self,
        user: BlockchainUser,
        contracts: List[ContractDefinition],
        options: Optional[Options] = None,
    ) -> List[Any]:
        options = self._options(options)
        body = batch([get_create_args(contract, options) for contract in contracts])
        pending = assert_tx_result_list(
            await self.send_transactions(user, body, options)
        )
        if options.is_async:
            return pending
        resolved = assert_tx_result_list(
            await self.resolve_results(user, pending, options)
        )
        if options.is_detailed:
            return resolved
        return [result.contents for result in resolved]

    async def get_contracts(
        self,
        user: OAuthUser,
        chain_id: Optional[str] = None,
        options: Optional[Options] = None,
    ) -> Dict[str, Any]:
        options = self._options(options).merge(is_async=True)
        if chain_id is not None:
            options = options.merge(chain_ids=[chain_id])
        return await self._get(Endpoint.CONTRACTS, options, user=user)

    async def get_state(
        self, user: OAuthUser, contract: Contract, options: Optional[Options] = None
    ) -> Dict[str, Any]:
        """
        Read the state of a contract. ``options.state_query`` narrows the read
        to one variable and, for arrays, a slice of it.
        """
        params = {"name": contract.name, "address": contract.address}
        return await self._get(Endpoint.STATE, self._options(options), params, user)

    async def get_array(
        self,
        user: OAuthUser,
        contract: Contract,
        name: str,
        options: Optional[Options] = None,
    ) -> List[Any]:
        """Read a whole array state variable, in segments of 100 entries."""
        options = self._options(options)
        state = await self.get_state(
            user, contract, options.merge(state_query={"name": name, "length": True})
        )
        length = int(state[name])
        result = []
        for segment in range(math.ceil(length / MAX_SEGMENT_SIZE)):
            state_query = {
                "name": name,
                "offset": segment * MAX_SEGMENT_SIZE,
                "count": MAX_SEGMENT_SIZE,
            }
            state = await self.get_state(
                user, contract, options.merge(state_query=state_query)
            )
            result.extend(state[name])
        return result

    async def call(
        self,
        user: BlockchainUser,
        call_args: CallArgs,
        options: Optional[Options] = None,
    ) -> Any:
        """
        Call a contract method.

        :return: The pending result when ``is_async``, the resolved result when
            ``is_detailed``, otherwise the method's return values.
        :raises RestError: If the transaction failed.
        """
        options = self._options(options)
        body = batch([get_call_args(call_args, options)])
        [pending] = await self.send_transactions(user, body, options)
        assert_tx_result(pending)
        if options.is_async:
            return pending
        resolved = assert_tx_result(await self.resolve_result(user, pending, options))
        if options.is_detailed:
            return resolved
        return resolved.contents

    async def call_list(
        self,
        user: BlockchainUser,
        call_list_args: List[CallArgs],
        options: Optional[Options] = None,
    ) -> List[Any]:
        options = self._options(options)
        body = batch([get_call_args(call_args, options) for call_args in call_list_args])
        pending = assert_tx_result_list(
            await self.send_transactions(user, body, options)
        )
        if options.is_async:
            return pending
        resolved = assert_tx_result_list(
            await self.resolve_results(user, pending, options)
        )
        if options.is_detailed:
            return resolved
        return [result.contents for result in resolved]

    #
    # Transactions
    #

    async def send(
        self, user: BlockchainUser, send_tx: SendTx, options: Optional[Options] = None
    ) -> Any:
        """Transfer value; returns the pending result when ``is_async``."""
        options = self._options(options)
        [pending] = await self.send_transactions(
            user, batch([get_send_args(send_tx)]), options
        )
        if options.is_async:
            return pending
        resolved = await self.resolve_result(user, pending, options)
        return resolved.contents

    async def send_many(
        self,
        user: BlockchainUser,
        send_txs: List[SendTx],
        options: Optional[Options] = None,
    ) -> List[Any]:
        """Transfer value in one batch; returns the hashes when ``is_async``."""
        options = self._options(options)
        body = batch([get_send_args(send_tx) for send_tx in send_txs])
        pending = await self.send_transactions(user, body, options)
        if options.is_async:
            return [result.hash for result in pending]
        resolved = await self.resolve_results(user, pending, options)
        return [result.contents for result in resolved]

    async def send_transactions(
        self, user: OAuthUser, body: Dict[str, Any], options: Optional[Options] = None
    ) -> List[TransactionResult]:
        """
        Submit a batch of transaction envelopes.

        The parallel endpoint is used when ``options.cache_nonce`` is set. The
        node returns one result per envelope, in submission order.
        """
        options = self._options(options)
        if options.cache_nonce:
            template = Endpoint.SEND_PARALLEL
        else:
            template = Endpoint.SEND
        send_options = options.merge(cache_nonce=False)
        response = await self._post(template, body, send_options, user=user)
        return [TransactionResult.from_dict(result) for result in response]

    async def get_bloc_results(
        self, user: OAuthUser, hashes: List[str], options: Optional[Options] = None
    ) -> List[TransactionResult]:
        response = await self._post(
            Endpoint.TXRESULTS, hashes, self._options(options), user=user
        )
        return [TransactionResult.from_dict(result) for result in response]

    async def resolve_result(
        self,
        user: OAuthUser,
        pending_result: TransactionResult,
        options: Optional[Options] = None,
    ) -> TransactionResult:
        return (await self.resolve_results(user, [pending_result], options))[0]

    async def resolve_results(
        self,
        user: OAuthUser,
        pending_results: List[TransactionResult],
        options: Optional[Options] = None,
    ) -> List[TransactionResult]:
        """
        Poll the transaction results endpoint until none of the given results
        is pending.

        :return: The resolved results, in the order of ``pending_results``.
        :raises UntilTimeoutError: If some transaction is still pending when the
            polling budget (``config.timeout``, default 60000 ms) is spent.
        """
        options = self._options(options).merge(is_async=True)
        hashes = [result.hash for result in pending_results]

        def predicate(results: List[TransactionResult]) -> bool:
            return all(not result.is_pending() for result in results)

        async def action(o: Options) -> List[TransactionResult]:
            return await self.get_bloc_results(user, hashes, o)

        logging.getLogger(LOGGER_NAME).debug(f"resolving {len(hashes)} transactions")
        resolved = await until(predicate, action, options, self._timeout(options))
        by_hash = {result.hash: result for result in resolved}
        return [by_hash.get(h, result) for h, result in zip(hashes, resolved)]

    #
    # Search
    #

    async def search(
        self, user: OAuthUser, contract: Contract, options: Optional[Options] = None
    ) -> List[Dict[str, Any]]:
        """
        Search the index for instances of ``contract.name``, filtered by
        ``options.query`` and ``options.chain_ids``. A contract that was never
        indexed yields an empty list.
        """
        try:
            return await self._get(
                Endpoint.SEARCH, self._options(options), {"name": contract.name}, user
            )
        except RestError as e:
            if e.status_code == NOT_FOUND:
                return []
            raise

    async def search_until(
        self,
        user: OAuthUser,
        contract: Contract,
        predicate: Callable[[List[Dict[str, Any]]], Any],
        options: Optional[Options] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> List[Dict[str, Any]]:
        """Repeat :meth:`search` until ``predicate`` accepts the rows."""

        async def action(o: Options) -> List[Dict[str, Any]]:
            return await self.search(user, contract, o)

        return await until(predicate, action, self._options(options), timeout)

    async def search_with_content_range(
        self, user: OAuthUser, contract: Contract, options: Optional[Options] = None
    ) -> SearchResult:
        """Search and report the position of the page in the full result set."""
        options = self._options(options)
        options = options.merge(
            headers={**options.headers, "Prefer": "count=exact"},
            get_full_response=True,
        )
        try:
            response = await self._get(
                Endpoint.SEARCH, options, {"name": contract.name}, user
            )
        except RestError as e:
            if e.status_code == NOT_FOUND:
                return SearchResult([])
            raise
        content_range = ContentRange.from_header(response.headers["content-range"])
        return SearchResult(response.json(), content_range)

    async def search_with_content_range_until(
        self,
        user: OAuthUser,
        contract: Contract,
        predicate: Callable[[SearchResult], Any],
        options: Optional[Options] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> SearchResult:
        async def action(o: Options) -> SearchResult:
            return await self.search_with_content_range(user, contract, o)

        return await until(predicate, action, self._options(options), timeout)

    async def wait_for_address(
        self, user: OAuthUser, contract: Contract, options: Optional[Options] = None
    ) -> Dict[str, Any]:
        """Wait until the contract at ``contract.address`` shows up in the index."""
        options = self._options(options)
        if options.query is None:
            options = options.merge(query={"address": f"eq.{contract.address}"})
        results = await self.search_until(
            user, contract, lambda rows: len(rows) > 0, options
        )
        return results[0]

    #
    # Chains
    #

    async def get_chain(
        self, user: OAuthUser, chain_id: str, options: Optional[Options] = None
    ) -> Dict[str, Any]:
        results = await self.get_chains(user, [chain_id], options)
        return results[0] if results else {}

    async def get_chains(
        self,
        user: OAuthUser,
        chain_ids: Optional[List[str]] = None,
        options: Optional[Options] = None,
    ) -> List[Dict[str, Any]]:
        options = set_auth_headers(user, self._options(options))
        url = get_node_url(options)
        endpoint = construct_endpoint(
            Endpoint.CHAIN, Options(config=options.config, chain_ids=chain_ids)
        )
        return await self.http.get(url, endpoint, options)

    async def create_chain(
        self,
        user: OAuthUser,
        chain: Chain,
        contract: Contract,
        options: Optional[Options] = None,
    ) -> str:
        """Create a private chain governed by ``contract``; returns the chain id."""
        options = self._options(options)
        body = {
            **chain.to_dict(),
            "contract": contract.name,
            "metadata": construct_metadata(options, contract.name).to_dict(),
        }
        return await self._post(Endpoint.CHAIN, body, options, user=user)

    async def create_chains(
        self, user: OAuthUser, chains: List[Chain], options: Optional[Options] = None
    ) -> List[str]:
        body = [chain.to_dict() for chain in chains]
        return await self._post(Endpoint.CHAINS, body, self._options(options), user=user)

    #
    # VM debugger
    #

    async def debug_status(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("GET", Endpoint.DEBUG_STATUS, user, None, options)

    async def debug_pause(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("PUT", Endpoint.DEBUG_PAUSE, user, {}, options)

    async def debug_resume(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("PUT", Endpoint.DEBUG_RESUME, user, {}, options)

    async def debug_get_breakpoints(
        self, user: OAuthUser, options: Optional[Options] = None
    ):
        return await self._debug("GET", Endpoint.DEBUG_BREAKPOINTS, user, None, options)

    async def debug_put_breakpoints(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("PUT", Endpoint.DEBUG_BREAKPOINTS, user, args, options)

    async def debug_delete_breakpoints(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug(
            "DELETE", Endpoint.DEBUG_BREAKPOINTS, user, args, options
        )

    async def debug_clear_breakpoints(
        self, user: OAuthUser, options: Optional[Options] = None
    ):
        return await self._debug("DELETE", Endpoint.DEBUG_BREAKPOINTS, user, [], options)

    async def debug_clear_breakpoints_path(
        self, user: OAuthUser, path: str, options: Optional[Options] = None
    ):
        return await self._debug(
            "DELETE", Endpoint.DEBUG_BREAKPOINTS_PATH, user, {}, options, {"path": path}
        )

    async def debug_step_in(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("POSTUE", Endpoint.DEBUG_STEP_IN, user, {}, options)

    async def debug_step_over(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("POSTUE", Endpoint.DEBUG_STEP_OVER, user, {}, options)

    async def debug_step_out(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("POSTUE", Endpoint.DEBUG_STEP_OUT, user, {}, options)

    async def debug_get_stack_trace(
        self, user: OAuthUser, options: Optional[Options] = None
    ):
        return await self._debug("GET", Endpoint.DEBUG_STACK_TRACE, user, None, options)

    async def debug_get_variables(
        self, user: OAuthUser, options: Optional[Options] = None
    ):
        return await self._debug("GET", Endpoint.DEBUG_VARIABLES, user, None, options)

    async def debug_get_watches(self, user: OAuthUser, options: Optional[Options] = None):
        return await self._debug("GET", Endpoint.DEBUG_WATCHES, user, None, options)

    async def debug_put_watches(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("PUT", Endpoint.DEBUG_WATCHES, user, args, options)

    async def debug_delete_watches(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("DELETE", Endpoint.DEBUG_WATCHES, user, args, options)

    async def debug_clear_watches(
        self, user: OAuthUser, options: Optional[Options] = None
    ):
        return await self._debug("DELETE", Endpoint.DEBUG_WATCHES, user, [], options)

    async def debug_post_eval(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("POST", Endpoint.DEBUG_EVAL, user, args, options)

    async def debug_post_parse(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("POST", Endpoint.DEBUG_PARSE, user, args, options)

    async def debug_post_analyze(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("POST", Endpoint.DEBUG_ANALYZE, user, args, options)

    async def debug_post_fuzz(
        self, user: OAuthUser, args: Any, options: Optional[Options] = None
    ):
        return await self._debug("POST", Endpoint.DEBUG_FUZZ, user, args, options)

    async def _debug(
        self,
        method: str,
        endpoint_template: str,
        user: OAuthUser,
        body: Any,
        options: Optional[Options],
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        # debugger requests are passed through without transaction parameters
        options = set_auth_headers(user, self._options(options))
        url = get_node_url(options)
        endpoint = construct_endpoint(endpoint_template, options, params)
        if method == "GET":
            return await self.http.get(url, endpoint, options)
        if method == "PUT":
            return await self.http.put(url, endpoint, body, options)
        if method == "DELETE":
            return await self.http.http_delete(url, endpoint, body, options)
        if method == "POSTUE":
            return await self.http.postue(url, endpoint, body, options)
        return await self.http.post(url, endpoint, body, options)

    async def _get(
        self,
        endpoint_template: str,
        options: Options,
        params: Optional[Dict[str, Any]] = None,
        user: Optional[OAuthUser] = None,
    ) -> Any:
        url = get_node_url(options)
        endpoint = construct_endpoint(endpoint_template, options, params)
        if user is not None:
            options = set_auth_headers(user, options)
        return await self.http.get(url, endpoint, options)

    async def _post(
        self,
        endpoint_template: str,
        body: Any,
        options: Options,
        params: Optional[Dict[str, Any]] = None,
        user: Optional[OAuthUser] = None,
    ) -> Any:
        url = get_node_url(options)
        endpoint = construct_endpoint(endpoint_template, options, params)
        if user is not None:
            options = set_auth_headers(user, options)
        return await self.http.post(url, endpoint, create_body(body, options), options)


class FakeNode:
    """Routes requests of a test client to canned responses."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, List[Callable[[httpx.Request], httpx.Response]]] = {}

    def route(self, method: str, path: str, *responses: Any):
        handlers = self.routes.setdefault(f"{method} {path}", [])
        for response in responses:
            if isinstance(response, httpx.Response):
                handlers.append(lambda request, r=response: r)
            elif callable(response):
                handlers.append(response)
            else:
                handlers.append(lambda request, r=response: httpx.Response(200, json=r))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handlers = self.routes[f"{request.method} {request.url.path}"]
        # the last handler keeps answering once the others are used up
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        return handler(request)

    def bodies(self, method: str, path: str) -> List[Any]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path == path
        ]


class Test(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        patcher = unittest.mock.patch(
            "strato_sdk.util.sleep", new_callable=unittest.mock.AsyncMock
        )
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

        self.node = FakeNode()
        self.config = Config(nodes=[Node("http://node")], vm="SolidVM", timeout=5000)
        self.client = RestClient(self.config, transport=httpx.MockTransport(self.node))
        self.user = BlockchainUser("token", "f00d")

    async def asyncTearDown(self):
        await self.client.close()

    async def test_create_contract(self):
        self.node.route("POST", Endpoint.SEND, [{"hash": "h1", "status": "Pending"}])
        self.node.route(
            "POST",
            Endpoint.TXRESULTS,
            [{"hash": "h1", "status": "Pending"}],
            [
                {
                    "hash": "h1",
                    "status": "Success",
                    "data": {"contents": {"name": "Foo", "address": "abcd"}},
                }
            ],
        )
        contract = ContractDefinition("Foo", "contract Foo {}", {"x": 1})

        result = await self.client.create_contract(self.user, contract)

        self.assertEqual(result, Contract("Foo", "abcd"))
        [body] = self.node.bodies("POST", Endpoint.SEND)
        self.assertEqual(body["txParams"], {"gasLimit": 32100000000, "gasPrice": 1})
        self.assertEqual(body["txs"][0]["type"], "CONTRACT")
        self.assertEqual(body["txs"][0]["payload"]["metadata"], {"VM": "SolidVM"})
        send_request = self.node.requests[0]
        self.assertEqual(send_request.url.params["resolve"], "true")
        self.assertEqual(send_request.headers["Authorization"], "Bearer token")
        results_requests = [
            r for r in self.node.requests if r.url.path == Endpoint.TXRESULTS
        ]
        self.assertEqual(len(results_requests), 2)
        self.assertNotIn("resolve", results_requests[0].url.params)
        self.assertEqual(json.loads(results_requests[0].content), ["h1"])
        self.sleep.assert_awaited_once_with(500)

    async def test_create_contract_async(self):
        self.node.route("POST", Endpoint.SEND, [{"hash": "h1", "status": "Pending"}])

        result = await self.client.create_contract(
            self.user,
            ContractDefinition("Foo", "contract Foo {}"),
            self.client.options(is_async=True),
        )

        self.assertEqual(result, TransactionResult("h1", TxResultStatus.PENDING))
        self.assertNotIn("resolve", self.node.requests[0].url.params)
        self.assertEqual(len(self.node.requests), 1)

    async def test_call_failure(self):
        self.node.route(
            "POST",
            Endpoint.SEND,
            [{"hash": "h1", "status": "Failure", "txResult": {"message": "revert"}}],
        )
        call_args = CallArgs(Contract("Foo", "abcd"), "set", {"x": 2})

        with self.assertRaises(RestError) as cm:
            await self.client.call(self.user, call_args)

        self.assertEqual(cm.exception.status_code, 400)
        self.assertIn("revert", str(cm.exception))

    async def test_call_list_preserves_order(self):
        hashes = [f"h{i}" for i in range(4)]
        self.node.route(
            "POST", Endpoint.SEND, [{"hash": h, "status": "Pending"} for h in hashes]
        )
        self.node.route(
            "POST",
            Endpoint.TXRESULTS,
            [
                {"hash": h, "status": "Success", "data": {"contents": [h]}}
                for h in reversed(hashes)
            ],
        )
        calls = [CallArgs(Contract("Foo", "abcd"), f"m{i}") for i in range(4)]

        result = await self.client.call_list(self.user, calls)

        self.assertEqual(result, [[h] for h in hashes])
        [body] = self.node.bodies("POST", Endpoint.SEND)
        self.assertEqual([tx["payload"]["method"] for tx in body["txs"]], ["m0", "m1", "m2", "m3"])
        self.assertEqual(self.node.bodies("POST", Endpoint.TXRESULTS), [hashes])

    async def test_send_parallel(self):
        self.node.route(
            "POST", Endpoint.SEND_PARALLEL, [{"hash": "h1", "status": "Pending"}]
        )

        result = await self.client.send(
            self.user,
            SendTx("beef", 10**20),
            self.client.options(is_async=True, cache_nonce=True),
        )

        self.assertEqual(result.hash, "h1")
        [body] = self.node.bodies("POST", Endpoint.SEND_PARALLEL)
        self.assertEqual(
            body["txs"],
            [{"payload": {"toAddress": "beef", "value": str(10**20)}, "type": "TRANSFER"}],
        )

    async def test_send_many_async(self):
        self.node.route(
            "POST",
            Endpoint.SEND,
            [{"hash": "h1", "status": "Pending"}, {"hash": "h2", "status": "Pending"}],
        )
        result = await self.client.send_many(
            self.user,
            [SendTx("beef", 1), SendTx("cafe", 2)],
            self.client.options(is_async=True),
        )
        self.assertEqual(result, ["h1", "h2"])

    async def test_resolve_timeout(self):
        self.node.route("POST", Endpoint.TXRESULTS, [{"hash": "h1", "status": "Pending"}])
        pending = TransactionResult("h1", TxResultStatus.PENDING)

        with self.assertRaisesRegex(UntilTimeoutError, "timeout 5000 ms exceeded"):
            await self.client.resolve_result(self.user, pending)

    async def test_search(self):
        self.node.route(
            "GET", "/cirrus/search/Foo", httpx.Response(404, json={}), [{"x": 1}]
        )
        contract = Contract("Foo", "abcd")
        options = self.client.options(query={"x": "eq.1"}, chain_ids=["c1"])

        self.assertEqual(await self.client.search(self.user, contract, options), [])
        self.assertEqual(
            await self.client.search(self.user, contract, options), [{"x": 1}]
        )
        params = self.node.requests[0].url.params
        self.assertEqual(params["chainId"], "eq.c1")
        self.assertEqual(params["x"], "eq.1")
        self.assertNotIn("resolve", params)

    async def test_search_error(self):
        self.node.route("GET", "/cirrus/search/Foo", httpx.Response(500, json={}))
        with self.assertRaises(RestError):
            await self.client.search(self.user, Contract("Foo"))

    async def test_wait_for_address(self):
        self.node.route("GET", "/cirrus/search/Foo", [], [], [{"address": "abcd"}])

        row = await self.client.wait_for_address(self.user, Contract("Foo", "abcd"))

        self.assertEqual(row, {"address": "abcd"})
        self.assertEqual(len(self.node.requests), 3)
        self.assertEqual(self.node.requests[0].url.params["address"], "eq.abcd")
        self.assertEqual(self.sleep.await_count, 2)

    async def test_search_with_content_range(self):
        self.node.route(
            "GET",
            "/cirrus/search/Foo",
            lambda r: httpx.Response(
                200, json=[{"x": 1}], headers={"content-range": "0-0/42"}
            ),
        )

        result = await self.client.search_with_content_range(self.user, Contract("Foo"))

        self.assertEqual(result.data, [{"x": 1}])
        self.assertEqual(result.content_range, ContentRange(42, 0, 0))
        self.assertEqual(self.node.requests[0].headers["Prefer"], "count=exact")
        self.assertEqual(ContentRange.from_header("*/0"), ContentRange(0))

    async def test_get_array(self):
        path = "/bloc/v2.2/contracts/Foo/abcd/state"
        self.node.route(
            "GET",
            path,
            {"items": 150},
            {"items": list(range(100))},
            {"items": list(range(100, 150))},
        )

        result = await self.client.get_array(self.user, Contract("Foo", "abcd"), "items")

        self.assertEqual(result, list(range(150)))
        params = [dict(r.url.params) for r in self.node.requests]
        self.assertEqual(params[0], {"name": "items", "length": "true", "resolve": "true"})
        self.assertEqual(params[1]["offset"], "0")
        self.assertEqual(params[2]["offset"], "100")
        self.assertEqual(params[2]["count"], "100")

    async def test_create_user_creates_key(self):
        self.node.route("GET", Endpoint.KEY, httpx.Response(400, json={}))
        self.node.route("POST", Endpoint.KEY, {"address": "f00d"})
        self.node.route(
            "POST", "/bloc/v2.2/users/user/f00d/fill", {"hash": "h", "status": "Success"}
        )

        user = await self.client.create_user(OAuthUser("token"))

        self.assertEqual(user, BlockchainUser("token", "f00d"))
        fill_request = self.node.requests[-1]
        self.assertEqual(
            fill_request.headers["Content-Type"], "application/x-www-form-urlencoded"
        )

    async def test_create_user_existing_key(self):
        self.node.route("GET", Endpoint.KEY, {"address": "f00d"})
        self.node.route("GET", Endpoint.ACCOUNT, [{"address": "f00d", "balance": "7"}])

        user = await self.client.create_user(OAuthUser("token"))

        self.assertEqual(user.address, "f00d")
        self.assertEqual(self.node.requests[-1].url.params["address"], "f00d")
        self.assertNotIn("resolve", self.node.requests[-1].url.params)

    async def test_get_chains(self):
        self.node.route("GET", Endpoint.CHAIN, [{"id": "c1"}])

        chain = await self.client.get_chain(self.user, "c1")

        self.assertEqual(chain, {"id": "c1"})
        self.assertEqual(self.node.requests[0].url.params["chainid"], "c1")

    async def test_create_chain(self):
        self.node.route("POST", Endpoint.CHAIN, "c1")
        chain = Chain("test", src="contract Gov {}", contract_name="Gov")

        chain_id = await self.client.create_chain(
            self.user, chain, Contract("Gov"), self.client.options(enable_history=True)
        )

        self.assertEqual(chain_id, "c1")
        [body] = self.node.bodies("POST", Endpoint.CHAIN)
        self.assertEqual(body["contract"], "Gov")
        self.assertEqual(body["metadata"], {"history": "Gov", "VM": "SolidVM"})

    async def test_debug_passthrough(self):
        self.node.route("DELETE", "/vm-debug/breakpoints/main.sol", {})
        self.node.route("POST", Endpoint.DEBUG_EVAL, ["5"])

        await self.client.debug_clear_breakpoints_path(self.user, "main.sol")
        result = await self.client.debug_post_eval(self.user, ["x + 1"])

        self.assertEqual(result, ["5"])
        self.assertEqual(self.node.bodies("POST", Endpoint.DEBUG_EVAL), [["x + 1"]])
