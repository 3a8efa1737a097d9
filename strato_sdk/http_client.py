# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
HTTP transport for the STRATO Python SDK.

:class:`HttpClient` is a thin wrapper around :class:`httpx.AsyncClient` issuing
GET/POST/PUT/DELETE requests against a node. It applies the per-call headers
and query parameters carried by :class:`~strato_sdk.options.Options`, decodes
JSON bodies and turns every non-2xx response into a :class:`RestError` carrying
the status, the reason phrase and the decoded body.

When ``config.api_debug`` is set (or a logger is passed in the options) each
request and response is traced at debug level. Bearer tokens are truncated
and contract sources are elided from the trace.
"""

import copy
import importlib.metadata as metadata
import json
import logging
import unittest
from typing import Any, Dict, Optional

import httpx

from .config import Config, Node
from .options import Options

PACKAGE_NAME = "strato-sdk"
STRATO_HEADER = "x-strato-client"
LOGGER_NAME = "strato_sdk"

REMOVED_FIELDS = ["src", "bin", "bin-runtime", "xabi"]


def get_strato_header_val() -> str:
    try:
        version = metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        version = "0.0.0"
    return f"strato-python-sdk/{version}"


class HttpClient:
    """Issues requests to STRATO nodes and normalizes responses and errors."""

    client: httpx.AsyncClient

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        # Default timeouts but do not set a pool timeout, since the idea is that jobs will wait as
        # long as progress is being made.
        timeout = httpx.Timeout(60.0, pool=None)
        headers = {STRATO_HEADER: get_strato_header_val()}
        self.client = httpx.AsyncClient(
            http2=config.http2,
            limits=httpx.Limits(),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def get(self, host: str, endpoint: str, options: Options) -> Any:
        return await self._request("GET", host, endpoint, options)

    async def post(self, host: str, endpoint: str, body: Any, options: Options) -> Any:
        return await self._request("POST", host, endpoint, options, data=body)

    async def put(self, host: str, endpoint: str, body: Any, options: Options) -> Any:
        return await self._request("PUT", host, endpoint, options, data=body)

    async def http_delete(
        self, host: str, endpoint: str, body: Any, options: Options
    ) -> Any:
        return await self._request("DELETE", host, endpoint, options, data=body)

    async def postue(
        self, host: str, endpoint: str, body: Dict[str, Any], options: Options
    ) -> Any:
        return await self._request_ue("POST", host, endpoint, body, options)

    async def putue(
        self, host: str, endpoint: str, body: Dict[str, Any], options: Options
    ) -> Any:
        return await self._request_ue("PUT", host, endpoint, body, options)

    async def http_delete_ue(
        self, host: str, endpoint: str, body: Dict[str, Any], options: Options
    ) -> Any:
        return await self._request_ue("DELETE", host, endpoint, body, options)

    async def _request_ue(
        self,
        method: str,
        host: str,
        endpoint: str,
        body: Dict[str, Any],
        options: Options,
    ) -> Any:
        form = dict(sorted(body.items()))
        return await self._request(method, host, endpoint, options, form=form)

    async def _request(
        self,
        method: str,
        host: str,
        endpoint: str,
        options: Options,
        data: Any = None,
        form: Optional[Dict[str, Any]] = None,
    ) -> Any:
        logger = options.logger or logging.getLogger(LOGGER_NAME)
        trace = options.logger is not None or options.config.api_debug
        url = f"{host}{endpoint}"
        headers = dict(options.headers)

        if trace:
            logger.debug(f"### httpx {method}")
            logger.debug(
                format_request(method, url, headers, data if form is None else form)
            )

        try:
            response = await self.client.request(
                method,
                url,
                headers=headers,
                params=options.params,
                json=data if form is None else None,
                data=form,
            )
        except httpx.HTTPError as e:
            logger.debug(f"### httpx {method} error")
            logger.error(f"{method} {url} failed: {e}")
            raise

        if not response.is_success:
            error = RestError(
                response.status_code, response.reason_phrase, _decode(response)
            )
            logger.debug(f"### httpx {method} error")
            logger.error(str(error))
            raise error

        if trace:
            logger.debug(f"### httpx {method} response")
            logger.debug(format_response(_decode(response)))
        if options.get_full_response:
            return response
        return _decode(response)


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def format_request(method: str, url: str, headers: Dict[str, str], data: Any) -> str:
    """Render a request for the debug trace, hiding tokens and contract sources."""
    request = copy.deepcopy(
        {"method": method, "url": url, "headers": headers, "data": data}
    )
    authorization = request["headers"].get("Authorization")
    if authorization and authorization.startswith("Bearer"):
        request["headers"]["Authorization"] = (
            authorization[:15] + "...truncated..." + authorization[-10:]
        )
    body = request["data"]
    if isinstance(body, dict):
        for tx in body.get("txs", []):
            tx.get("payload", {})["src"] = "source removed."
        if "src" in body:
            body["src"] = "source removed."
    return json.dumps(request, indent=2, default=str)


def format_response(data: Any) -> str:
    """Render a response body for the debug trace without sources and binaries."""
    data = copy.deepcopy(data)
    if isinstance(data, list):
        for element in data:
            if not isinstance(element, dict) or not isinstance(
                element.get("data"), dict
            ):
                continue
            contents = element["data"].get("contents")
            if isinstance(contents, dict):
                for key in REMOVED_FIELDS:
                    if key in contents:
                        contents[key] = f"{key} removed."
            if "src" in element["data"]:
                element["data"]["src"] = "source removed."
    return json.dumps(data, indent=2, default=str)


class RestError(Exception):
    """A node answered with a non-2xx status, or a request was rejected locally"""

    status_code: int
    status_text: str
    data: Any

    def __init__(self, status_code: int, status_text: str, data: Any = None):
        super().__init__(
            f"{status_code} {status_text}: {json.dumps(data, default=str)}"
        )
        self.status_code = status_code
        self.status_text = status_text
        self.data = data


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.requests = []
        self.options = Options(config=Config(nodes=[Node("http://node")]))

    def client(self, handler) -> HttpClient:
        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        return HttpClient(self.options.config, transport=httpx.MockTransport(record))

    async def test_get_decodes_json(self):
        client = self.client(lambda r: httpx.Response(200, json={"address": "abc"}))
        options = self.options.merge(headers={"Authorization": "Bearer t"})
        result = await client.get("http://node", "/strato/v2.3/key?x=1", options)
        await client.close()

        self.assertEqual(result, {"address": "abc"})
        self.assertEqual(str(self.requests[0].url), "http://node/strato/v2.3/key?x=1")
        self.assertEqual(self.requests[0].headers["Authorization"], "Bearer t")
        self.assertIn(STRATO_HEADER, self.requests[0].headers)

    async def test_error_status(self):
        client = self.client(lambda r: httpx.Response(400, json={"error": "nope"}))
        with self.assertRaises(RestError) as cm:
            await client.post("http://node", "/bloc/v2.2/chain", {}, self.options)
        await client.close()

        self.assertEqual(cm.exception.status_code, 400)
        self.assertEqual(cm.exception.status_text, "Bad Request")
        self.assertEqual(cm.exception.data, {"error": "nope"})
        self.assertTrue(str(cm.exception).startswith("400 Bad Request: "))

    async def test_postue(self):
        client = self.client(lambda r: httpx.Response(200, text="ok"))
        result = await client.postue(
            "http://node", "/bloc/v2.2/users/alice", {"password": "p w"}, self.options
        )
        await client.close()

        request = self.requests[0]
        self.assertEqual(result, "ok")
        self.assertEqual(
            request.headers["Content-Type"], "application/x-www-form-urlencoded"
        )
        self.assertEqual(request.content, b"password=p+w")

    async def test_full_response(self):
        client = self.client(
            lambda r: httpx.Response(
                200, json=[], headers={"content-range": "0-9/42"}
            )
        )
        options = self.options.merge(get_full_response=True)
        response = await client.get("http://node", "/cirrus/search/Foo", options)
        await client.close()

        self.assertEqual(response.headers["content-range"], "0-9/42")
        self.assertEqual(response.json(), [])

    def test_format_request(self):
        body = {"txs": [{"payload": {"src": "contract A {}"}, "type": "CONTRACT"}]}
        token = "Bearer " + "x" * 40
        formatted = json.loads(
            format_request("POST", "http://node", {"Authorization": token}, body)
        )

        self.assertEqual(
            formatted["data"]["txs"][0]["payload"]["src"], "source removed."
        )
        self.assertIn("...truncated...", formatted["headers"]["Authorization"])
        self.assertEqual(body["txs"][0]["payload"]["src"], "contract A {}")

    def test_format_response(self):
        data = [{"data": {"contents": {"bin": "00", "name": "A"}, "src": "c"}}]
        formatted = json.loads(format_response(data))

        self.assertEqual(formatted[0]["data"]["contents"]["bin"], "bin removed.")
        self.assertEqual(formatted[0]["data"]["contents"]["name"], "A")
        self.assertEqual(formatted[0]["data"]["src"], "source removed.")
