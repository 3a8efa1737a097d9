# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
OAuth 2.0 / OpenID Connect helper for obtaining STRATO access tokens.

STRATO nodes authenticate requests with bearer tokens issued by an OpenID
provider. :class:`OAuthClient` reads the provider's discovery document and
implements the grants applications need:

- client credentials, for services acting on their own behalf
- resource owner password, for scripts acting on behalf of a user
- authorization code, for web applications after the sign-in redirect
- refresh token

Tokens are not verified here; the node checks signatures itself. Only the
``exp`` claim is read, to decide when a token should be renewed.

Examples:
    Get a service token for the first node of a config::

        from strato_sdk.oauth import OAuthClient

        oauth = await OAuthClient.init(config.nodes[0].oauth)
        token = await oauth.get_access_token_by_client_secret()
        user = OAuthUser(token.token(oauth.token_field))
"""

import base64
import time
import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
import jwt

from .config import OAuthConfig
from .http_client import RestError


@dataclass
class AccessToken:
    """A token response of the provider's token endpoint."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    scope: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AccessToken":
        return AccessToken(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=data.get("expires_in"),
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            scope=data.get("scope"),
            raw=data,
        )

    def token(self, token_field: str = "access_token") -> str:
        return self.raw[token_field]


def decode_jwt_claims(token: str) -> Dict[str, Any]:
    """Decode the claims of a JWT without verifying its signature.

    :raises jwt.DecodeError: If ``token`` is not a well-formed JWT.
    """
    return jwt.decode(token, options={"verify_signature": False})


class OAuthClient:
    """Client of an OpenID provider configured by an :class:`OAuthConfig`."""

    config: OAuthConfig
    client: httpx.AsyncClient
    openid_config: Dict[str, Any]

    def __init__(
        self,
        config: OAuthConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.open_id_discovery_url:
            raise ValueError("openIdDiscoveryUrl is required")
        self.config = config
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, pool=None), transport=transport
        )
        self.openid_config = {}

    @staticmethod
    async def init(
        config: OAuthConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OAuthClient":
        """Create a client and load the provider's discovery document."""
        client = OAuthClient(config, transport)
        await client.discover()
        return client

    async def close(self):
        await self.client.aclose()

    @property
    def token_field(self) -> str:
        return self.config.token_field

    @property
    def issuer(self) -> Optional[str]:
        return self.openid_config.get("issuer")

    @property
    def token_endpoint(self) -> str:
        return self.openid_config["token_endpoint"]

    async def discover(self):
        self.openid_config = await self._get(self.config.open_id_discovery_url)

    def get_sign_in_url(self, state: Optional[str] = None) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.config.client_id,
                "redirect_uri": self.config.redirect_uri,
                "scope": self.config.scope,
                "state": state or "",
            }
        )
        return f"{self.openid_config['authorization_endpoint']}?{query}"

    def get_log_out_url(self) -> str:
        query = urlencode(
            {
                "client_id": self.config.client_id,
                "post_logout_redirect_uri": self.config.logout_redirect_uri,
            }
        )
        return f"{self.openid_config['end_session_endpoint']}?{query}"

    async def get_access_token_by_auth_code(self, auth_code: str) -> AccessToken:
        return await self._token(
            {
                "grant_type": "authorization_code",
                "code": auth_code,
                "redirect_uri": self.config.redirect_uri,
                "scope": self.config.scope,
            }
        )

    async def get_access_token_by_client_secret(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> AccessToken:
        """
        Client credentials grant, with the configured client unless both
        ``client_id`` and ``client_secret`` are given.
        """
        data = {"grant_type": "client_credentials", "scope": scope or self.config.scope}
        if client_id and client_secret:
            return await self._token(data, (client_id, client_secret))
        return await self._token(data)

    async def get_access_token_by_resource_owner_credential(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> AccessToken:
        return await self._token(
            {
                "grant_type": "password",
                "username": username or self.config.service_username,
                "password": password or self.config.service_password,
                "scope": scope or self.config.scope,
            }
        )

    async def refresh_token(self, refresh_token: str) -> AccessToken:
        return await self._token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    def is_token_expired(
        self, access_token: str, expiry: Optional[int] = None
    ) -> bool:
        """
        Whether a token expires within the configured lifetime reserve.

        :param access_token: The JWT; its ``exp`` claim is used unless ``expiry``
            is given.
        :param expiry: Known expiry as seconds since the epoch.
        """
        if expiry is None:
            expiry = decode_jwt_claims(access_token)["exp"]
        return expiry <= int(time.time()) + self.config.token_lifetime_reserve_seconds

    async def _get(self, url: str) -> Dict[str, Any]:
        response = await self.client.get(url)
        if response.status_code >= 400:
            raise RestError(response.status_code, response.reason_phrase, response.text)
        return response.json()

    async def _token(
        self, data: Dict[str, Any], credentials: Optional[tuple] = None
    ) -> AccessToken:
        if credentials is None:
            credentials = (self.config.client_id, self.config.client_secret)
        data = {key: value for key, value in data.items() if value is not None}
        response = await self.client.post(
            self.token_endpoint, data=data, auth=credentials
        )
        if response.status_code >= 400:
            raise RestError(response.status_code, response.reason_phrase, response.text)
        return AccessToken.from_dict(response.json())


def _jwt(claims: Dict[str, Any]) -> str:
    return jwt.encode(claims, "unverified-test-signing-key-0123456789", algorithm="HS256")


class Test(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests: List[httpx.Request] = []
        self.config = OAuthConfig(
            client_id="dapp",
            client_secret="s3cret",
            open_id_discovery_url="http://auth/.well-known/openid-configuration",
            redirect_uri="http://app/callback",
            logout_redirect_uri="http://app",
            service_username="svc",
            service_password="pw",
        )

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if request.url.path == "/.well-known/openid-configuration":
                return httpx.Response(
                    200,
                    json={
                        "issuer": "http://auth",
                        "token_endpoint": "http://auth/token",
                        "authorization_endpoint": "http://auth/authorize",
                        "end_session_endpoint": "http://auth/logout",
                    },
                )
            if request.url.path == "/token":
                return httpx.Response(
                    200,
                    json={"access_token": "at", "refresh_token": "rt", "expires_in": 300},
                )
            return httpx.Response(404)

        self.oauth = await OAuthClient.init(self.config, httpx.MockTransport(handler))

    async def asyncTearDown(self):
        await self.oauth.close()

    async def test_discover(self):
        self.assertEqual(self.oauth.issuer, "http://auth")
        self.assertEqual(self.oauth.token_endpoint, "http://auth/token")
        self.assertEqual(len(self.requests), 1)

    async def test_client_credentials(self):
        token = await self.oauth.get_access_token_by_client_secret()

        self.assertEqual(token.access_token, "at")
        self.assertEqual(token.token(), "at")
        self.assertEqual(token.refresh_token, "rt")
        request = self.requests[-1]
        expected = "Basic " + base64.b64encode(b"dapp:s3cret").decode()
        self.assertEqual(request.headers["Authorization"], expected)
        self.assertEqual(
            request.content, b"grant_type=client_credentials&scope=email+openid"
        )

    async def test_alternative_client(self):
        await self.oauth.get_access_token_by_client_secret("other", "pw2", "openid")

        request = self.requests[-1]
        expected = "Basic " + base64.b64encode(b"other:pw2").decode()
        self.assertEqual(request.headers["Authorization"], expected)
        self.assertIn(b"scope=openid", request.content)

    async def test_password_grant_defaults(self):
        await self.oauth.get_access_token_by_resource_owner_credential()

        self.assertIn(b"grant_type=password", self.requests[-1].content)
        self.assertIn(b"username=svc", self.requests[-1].content)

    async def test_urls(self):
        self.assertEqual(
            self.oauth.get_sign_in_url("xyz"),
            "http://auth/authorize?response_type=code&client_id=dapp"
            "&redirect_uri=http%3A%2F%2Fapp%2Fcallback&scope=email+openid&state=xyz",
        )
        self.assertEqual(
            self.oauth.get_log_out_url(),
            "http://auth/logout?client_id=dapp&post_logout_redirect_uri=http%3A%2F%2Fapp",
        )

    async def test_token_expiry(self):
        now = int(time.time())
        self.assertFalse(self.oauth.is_token_expired(_jwt({"exp": now + 3600})))
        self.assertTrue(self.oauth.is_token_expired(_jwt({"exp": now + 30})))
        self.assertTrue(self.oauth.is_token_expired("ignored", expiry=now))
        self.assertTrue(self.oauth.is_token_expired(_jwt({"exp": now - 60})))

    async def test_malformed_token(self):
        self.assertEqual(decode_jwt_claims(_jwt({"sub": "alice"})), {"sub": "alice"})
        with self.assertRaises(jwt.DecodeError):
            decode_jwt_claims("not-a-jwt")
        with self.assertRaises(jwt.DecodeError):
            self.oauth.is_token_expired("a.b.c")

    async def test_discovery_error(self):
        config = OAuthConfig(open_id_discovery_url="http://auth/missing")
        with self.assertRaises(RestError):
            await OAuthClient.init(
                config, httpx.MockTransport(lambda r: httpx.Response(404))
            )
