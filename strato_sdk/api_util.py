# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Request composition for the STRATO Python SDK.

STRATO endpoints are described by templates with ``:name`` placeholders, e.g.
``/bloc/v2.2/contracts/:name/:address/state``. A request path is produced by
expanding the template with percent-encoded parameters and appending a query
string built from the call options::

    endpoint = construct_endpoint(
        Endpoint.STATE, options, {"name": "SimpleStorage", "address": "60fb..."}
    )
    # /bloc/v2.2/contracts/SimpleStorage/60fb.../state?resolve=true

Query parameters are layered: the chain filter and resolve flag come first,
then ``options.state_query`` and finally ``options.query``, later layers
overriding earlier ones. Search endpoints use the ``eq.``/``in.`` filter syntax
of the indexer instead.

Transaction bodies receive their transaction parameters the same way: the
body's own ``txParams`` override the options, which override the config,
which override the built-in defaults.
"""

import unittest
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from .config import Config, Node
from .options import Options
from .types import OAuthUser

APEX_URL = "/apex-api"
BLOC_URL = "/bloc/v2.2"
STRATO12_URL = "/strato-api/eth/v1.2"
STRATO23_URL = "/strato/v2.3"
CIRRUS_URL = "/cirrus/search"
DEBUG_URL = "/vm-debug"

DEFAULT_TX_PARAMS = {"gasLimit": 32100000000, "gasPrice": 1}

# Characters encodeURIComponent leaves as they are
URI_COMPONENT_SAFE = "!'()*"


class Endpoint:
    HEALTH = "/health"
    STATUS = f"{APEX_URL}/status"
    ACCOUNT = f"{STRATO12_URL}/account"
    VERSION = f"{STRATO12_URL}/version"
    USER = f"{BLOC_URL}/users/:username"
    FILL = f"{BLOC_URL}/users/user/:address/fill"
    CONTRACTS = f"{BLOC_URL}/contracts"
    STATE = f"{BLOC_URL}/contracts/:name/:address/state"
    TXRESULTS = f"{BLOC_URL}/transactions/results"
    SEND = f"{STRATO23_URL}/transaction"
    SEND_PARALLEL = f"{STRATO23_URL}/transaction/parallel"
    KEY = f"{STRATO23_URL}/key"
    SEARCH = f"{CIRRUS_URL}/:name"
    CHAIN = f"{BLOC_URL}/chain"
    CHAINS = f"{BLOC_URL}/chains"
    COMPILE = f"{BLOC_URL}/contracts/compile"
    DEBUG_STATUS = f"{DEBUG_URL}/status"
    DEBUG_PAUSE = f"{DEBUG_URL}/pause"
    DEBUG_RESUME = f"{DEBUG_URL}/resume"
    DEBUG_BREAKPOINTS = f"{DEBUG_URL}/breakpoints"
    DEBUG_BREAKPOINTS_PATH = f"{DEBUG_URL}/breakpoints/:path"
    DEBUG_STEP_IN = f"{DEBUG_URL}/step-in"
    DEBUG_STEP_OVER = f"{DEBUG_URL}/step-over"
    DEBUG_STEP_OUT = f"{DEBUG_URL}/step-out"
    DEBUG_STACK_TRACE = f"{DEBUG_URL}/stack-trace"
    DEBUG_VARIABLES = f"{DEBUG_URL}/variables"
    DEBUG_WATCHES = f"{DEBUG_URL}/watches"
    DEBUG_EVAL = f"{DEBUG_URL}/eval"
    DEBUG_PARSE = f"{DEBUG_URL}/parse"
    DEBUG_ANALYZE = f"{DEBUG_URL}/analyze"
    DEBUG_FUZZ = f"{DEBUG_URL}/fuzz"


def construct_endpoint(
    endpoint_template: str,
    options: Optional[Options] = None,
    params: Optional[Dict[str, Any]] = None,
) -> str:
    """Expand ``endpoint_template`` with ``params`` and append the query string.

    Each ``:key`` placeholder is replaced once by the percent-encoded value of
    ``params[key]``. Keys without a placeholder are ignored and placeholders
    without a key are left as they are.
    """
    endpoint = endpoint_template
    for key, value in (params or {}).items():
        endpoint = endpoint.replace(f":{key}", _encode(value), 1)
    if endpoint_template == Endpoint.SEARCH:
        query = construct_query_search(options)
    else:
        query = construct_query(options)
    return f"{endpoint}{query}"


def construct_query(options: Optional[Options]) -> str:
    if options is None:
        return ""
    query: Dict[str, Any] = {"chainid": options.chain_ids}
    if not options.is_async:
        query["resolve"] = True
    query.update(options.state_query or {})
    query.update(options.query or {})
    return _stringify(query)


def construct_query_search(options: Optional[Options]) -> str:
    if options is None:
        return ""
    chain_ids = options.chain_ids
    if chain_ids:
        if len(chain_ids) == 1:
            query = {"chainId": f"eq.{chain_ids[0]}"}
        else:
            query = {"chainId": f"in.{','.join(chain_ids)}"}
        query.update(options.query or {})
        return _stringify(query)
    return _stringify(options.query or {})


def _stringify(query: Dict[str, Any]) -> str:
    pairs = []
    for key in sorted(query):
        value = query[key]
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            if item is None:
                continue
            pairs.append(f"{_encode(key)}={_encode(_render(item))}")
    return f"?{'&'.join(pairs)}" if pairs else ""


def _encode(value: Any) -> str:
    return quote(str(value), safe=URI_COMPONENT_SAFE)


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def create_body(
    body: Union[Dict[str, Any], List[Any]], options: Options
) -> Union[Dict[str, Any], List[Any]]:
    """Fill in the transaction parameters of a request body.

    Lists are passed through unchanged. For dicts, ``txParams`` is merged field
    by field; in order of priority: body, options, config, defaults.
    """
    if isinstance(body, list):
        return body
    config_tx_params = options.config.tx_params if options.config else None
    tx_params = {
        **DEFAULT_TX_PARAMS,
        **(config_tx_params or {}),
        **(options.tx_params or {}),
        **(body.get("txParams") or {}),
    }
    return {**body, "txParams": tx_params}


def set_auth_headers(user: OAuthUser, options: Options) -> Options:
    headers = {**options.headers, "Authorization": f"Bearer {user.token}"}
    return options.merge(headers=headers)


def get_node_url(options: Options) -> str:
    """Base url of the node selected by ``options.node``.

    :raises IndexError: If ``options.node`` is not a valid index into
        ``options.config.nodes``.
    """
    node_id = options.node or 0
    nodes = options.config.nodes
    if not 0 <= node_id < len(nodes):
        raise IndexError(f"No node at index {node_id}")
    return nodes[node_id].url


class Test(unittest.TestCase):
    def setUp(self):
        self.options = Options(
            config=Config(nodes=[Node("http://node0"), Node("http://node1")])
        )

    def test_construct_endpoint(self):
        endpoint = construct_endpoint(
            Endpoint.STATE, self.options, {"name": "Simple Storage", "address": "ab/cd"}
        )
        self.assertEqual(
            endpoint, "/bloc/v2.2/contracts/Simple%20Storage/ab%2Fcd/state?resolve=true"
        )

    def test_construct_endpoint_reserved_marks(self):
        endpoint = construct_endpoint(
            Endpoint.STATE, None, {"name": "f(x)!", "address": "a*'b"}
        )
        self.assertEqual(endpoint, "/bloc/v2.2/contracts/f(x)!/a*'b/state")
        options = self.options.merge(is_async=True, query={"q": "(a b)"})
        self.assertEqual(construct_query(options), "?q=(a%20b)")

    def test_construct_endpoint_partial_params(self):
        endpoint = construct_endpoint(Endpoint.STATE, None, {"name": "Foo", "x": "y"})
        self.assertEqual(endpoint, "/bloc/v2.2/contracts/Foo/:address/state")

    def test_construct_query(self):
        self.assertEqual(construct_query(None), "")
        self.assertEqual(construct_query(self.options), "?resolve=true")
        self.assertEqual(construct_query(self.options.merge(is_async=True)), "")

        options = self.options.merge(
            chain_ids=["c1", "c2"],
            state_query={"name": "items", "offset": 0, "count": 100},
            query={"count": 5, "address": "a b"},
        )
        self.assertEqual(
            construct_query(options),
            "?address=a%20b&chainid=c1&chainid=c2&count=5&name=items&offset=0&resolve=true",
        )

    def test_query_overrides_resolve(self):
        options = self.options.merge(query={"resolve": False})
        self.assertEqual(construct_query(options), "?resolve=false")

    def test_construct_query_search(self):
        options = self.options.merge(query={"value": "eq.5"})
        self.assertEqual(
            construct_endpoint(Endpoint.SEARCH, options, {"name": "Foo"}),
            "/cirrus/search/Foo?value=eq.5",
        )
        self.assertEqual(
            construct_query_search(options.merge(chain_ids=["c1"])),
            "?chainId=eq.c1&value=eq.5",
        )
        self.assertEqual(
            construct_query_search(options.merge(chain_ids=["c1", "c2"])),
            "?chainId=in.c1%2Cc2&value=eq.5",
        )
        self.assertEqual(construct_query_search(self.options), "")

    def test_create_body_defaults(self):
        body = create_body({}, self.options)
        self.assertEqual(body, {"txParams": {"gasLimit": 32100000000, "gasPrice": 1}})

    def test_create_body_priority(self):
        config = Config(
            nodes=[Node("http://node0")], tx_params={"gasPrice": 2, "gasLimit": 7}
        )
        options = Options(config=config, tx_params={"gasPrice": 3})
        self.assertEqual(
            create_body({}, options)["txParams"], {"gasLimit": 7, "gasPrice": 3}
        )
        original = {"txParams": {"gasPrice": 5}, "txs": []}
        body = create_body(original, options)
        self.assertEqual(body["txParams"], {"gasLimit": 7, "gasPrice": 5})
        self.assertEqual(original["txParams"], {"gasPrice": 5})

    def test_create_body_body_override_only(self):
        body = create_body({"txParams": {"gasPrice": 5}}, self.options)
        self.assertEqual(body["txParams"], {"gasLimit": 32100000000, "gasPrice": 5})

    def test_create_body_list(self):
        hashes = ["aa", "bb"]
        self.assertIs(create_body(hashes, self.options), hashes)

    def test_set_auth_headers(self):
        options = self.options.merge(headers={"X-Trace": "1"})
        authorized = set_auth_headers(OAuthUser("token"), options)
        self.assertEqual(
            authorized.headers, {"X-Trace": "1", "Authorization": "Bearer token"}
        )
        self.assertEqual(options.headers, {"X-Trace": "1"})

    def test_get_node_url(self):
        self.assertEqual(get_node_url(self.options), "http://node0")
        self.assertEqual(get_node_url(self.options.merge(node=1)), "http://node1")
        with self.assertRaises(IndexError):
            get_node_url(self.options.merge(node=2))
        with self.assertRaises(IndexError):
            get_node_url(self.options.merge(node=-1))
