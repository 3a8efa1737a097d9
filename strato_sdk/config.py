# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Node and client configuration for the STRATO Python SDK.

A :class:`Config` describes the STRATO nodes a client may talk to together with
the defaults applied to every request: the contract VM, the transaction
parameters merged into submission bodies, and the polling budget used while
resolving pending transactions.

Configuration is usually kept in a file next to the application. YAML is the
format used by most STRATO deployments, TOML and JSON are accepted as well::

    # config.yaml
    apiDebug: false
    timeout: 600000
    VM: SolidVM
    nodes:
      - id: 0
        url: http://localhost
        oauth:
          clientId: dev
          clientSecret: secret
          openIdDiscoveryUrl: http://localhost/auth/realms/strato/.well-known/openid-configuration

    from strato_sdk.config import load_config

    config = load_config("config.yaml")
    client = RestClient(config)
"""

import json
import os
import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import tomli
import yaml


@dataclass
class OAuthConfig:
    """OAuth settings of a single node, as found under ``nodes[].oauth``."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    open_id_discovery_url: Optional[str] = None
    redirect_uri: Optional[str] = None
    logout_redirect_uri: Optional[str] = None
    scope: str = "email openid"
    service_username: Optional[str] = None
    service_password: Optional[str] = None
    token_field: str = "access_token"
    token_lifetime_reserve_seconds: int = 60

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "OAuthConfig":
        return OAuthConfig(
            client_id=data.get("clientId"),
            client_secret=data.get("clientSecret"),
            open_id_discovery_url=data.get("openIdDiscoveryUrl"),
            redirect_uri=data.get("redirectUri"),
            logout_redirect_uri=data.get("logoutRedirectUri"),
            scope=data.get("scope") or "email openid",
            service_username=data.get("serviceUsername"),
            service_password=data.get("servicePassword"),
            token_field=data.get("tokenField") or "access_token",
            token_lifetime_reserve_seconds=data.get("tokenLifetimeReserveSeconds")
            or 60,
        )


@dataclass
class Node:
    url: str
    oauth: Optional[OAuthConfig] = None
    id: Optional[int] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Node":
        oauth = data.get("oauth")
        return Node(
            url=data["url"],
            oauth=OAuthConfig.from_dict(oauth) if oauth else None,
            id=data.get("id"),
        )


@dataclass
class Config:
    """Configuration shared by every call issued through a client.

    Attributes:
        nodes: The STRATO nodes, selected per call by ``Options.node``.
        vm: Contract VM, one of ``EVM`` or ``SolidVM``. Validated when contract
            metadata is built, so an illegal value fails the call, not the load.
        timeout: Polling budget in milliseconds used when resolving pending
            transactions. Defaults to 60000 when unset.
        tx_params: Transaction parameters (``gasLimit``, ``gasPrice``) that
            override the built-in defaults for every submission.
        api_debug: Log every request and response at debug level.
        contracts_path: Directory against which relative contract source paths
            are resolved by the command-line tool.
        http2: Enable HTTP/2 on the underlying httpx client.
    """

    nodes: List[Node] = field(default_factory=list)
    vm: Optional[str] = None
    timeout: Optional[int] = None
    tx_params: Optional[Dict[str, Any]] = None
    api_debug: bool = False
    contracts_path: Optional[str] = None
    http2: bool = True

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Config":
        return Config(
            nodes=[Node.from_dict(node) for node in data["nodes"]],
            vm=data.get("VM"),
            timeout=data.get("timeout"),
            tx_params=data.get("txParams"),
            api_debug=bool(data.get("apiDebug", False)),
            contracts_path=data.get("contractsPath"),
            http2=bool(data.get("http2", True)),
        )


def load_config(path: str) -> Config:
    """Load a :class:`Config` from a YAML, TOML or JSON file.

    The format is chosen from the file extension; anything that is not
    ``.toml`` or ``.json`` is parsed as YAML.

    :param path: Location of the configuration file.
    :return: The parsed configuration.
    :raises KeyError: If the file does not define ``nodes``.
    """
    _, extension = os.path.splitext(path)
    extension = extension.lower()
    if extension == ".toml":
        with open(path, "rb") as f:
            data = tomli.load(f)
    elif extension == ".json":
        with open(path, "r") as f:
            data = json.load(f)
    else:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    return Config.from_dict(data)


class Test(unittest.TestCase):
    def test_from_dict(self):
        config = Config.from_dict(
            {
                "apiDebug": True,
                "timeout": 1000,
                "VM": "SolidVM",
                "txParams": {"gasPrice": 2},
                "nodes": [
                    {
                        "id": 0,
                        "url": "http://localhost",
                        "oauth": {
                            "clientId": "dev",
                            "clientSecret": "secret",
                            "openIdDiscoveryUrl": "http://localhost/.well-known",
                        },
                    }
                ],
            }
        )
        self.assertTrue(config.api_debug)
        self.assertEqual(config.timeout, 1000)
        self.assertEqual(config.vm, "SolidVM")
        self.assertEqual(config.tx_params, {"gasPrice": 2})
        self.assertEqual(config.nodes[0].url, "http://localhost")
        self.assertEqual(config.nodes[0].oauth.client_id, "dev")
        self.assertEqual(config.nodes[0].oauth.scope, "email openid")

    def test_missing_nodes(self):
        with self.assertRaises(KeyError):
            Config.from_dict({"VM": "EVM"})

    def test_load_formats(self):
        import tempfile

        contents = {
            ".yaml": "VM: EVM\nnodes:\n  - url: http://node0\n",
            ".toml": 'VM = "EVM"\n[[nodes]]\nurl = "http://node0"\n',
            ".json": '{"VM": "EVM", "nodes": [{"url": "http://node0"}]}',
        }
        with tempfile.TemporaryDirectory() as tmp:
            for extension, content in contents.items():
                path = os.path.join(tmp, f"config{extension}")
                with open(path, "w") as f:
                    f.write(content)
                config = load_config(path)
                self.assertEqual(config.vm, "EVM", extension)
                self.assertEqual(config.nodes[0].url, "http://node0", extension)
