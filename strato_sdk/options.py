# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Per-call options for the STRATO Python SDK.

Every client operation takes an :class:`Options` value describing how the
request is composed: which node it goes to, extra headers and query
parameters, whether the server should resolve the transaction before replying,
and the history/index flags folded into contract metadata.

Options are immutable. Each composition step builds a new value with
:meth:`Options.merge` instead of editing the one it was given, so a base
Options shared by concurrent calls is never changed underneath them::

    options = Options(config=config)
    async_options = options.merge(is_async=True)
    assert options.is_async is False
"""

import dataclasses
import logging
import unittest
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .config import Config, Node


class VM(str, Enum):
    EVM = "EVM"
    SOLID_VM = "SolidVM"


@dataclass(frozen=True)
class Options:
    """Options controlling how a single call is composed and dispatched.

    Attributes:
        config: Node list and client-wide defaults.
        node: Index into ``config.nodes`` selecting the target node.
        headers: Extra HTTP headers.
        params: Extra query parameters handed straight to httpx.
        query: Custom query parameters; highest priority in the query string.
        state_query: Contract state sub-query (name, offset, count, length).
        chain_ids: Private chain filter.
        is_async: Skip resolution; the call returns the pending result.
        is_detailed: Return full transaction results instead of their contents.
        get_full_response: Return the ``httpx.Response`` instead of its body.
        cache_nonce: Submit through the parallel transaction endpoint.
        enable_history: Record history for the contract being created or called.
        history: Additional contract names to record history for.
        enable_index: ``False`` disables indexing of the contract; ``None`` leaves
            the server default.
        noindex: Additional contract names to exclude from indexing.
        tx_params: Transaction parameters overriding ``config.tx_params``.
        logger: Logger used for request tracing instead of the SDK logger.
    """

    config: Config
    node: int = 0
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    query: Optional[Dict[str, Any]] = None
    state_query: Optional[Dict[str, Any]] = None
    chain_ids: Optional[List[str]] = None
    is_async: bool = False
    is_detailed: bool = False
    get_full_response: bool = False
    cache_nonce: bool = False
    enable_history: bool = False
    history: Optional[Union[str, List[str]]] = None
    enable_index: Optional[bool] = None
    noindex: Optional[Union[str, List[str]]] = None
    tx_params: Optional[Dict[str, Any]] = None
    logger: Optional[logging.Logger] = None

    def merge(self, **changes: Any) -> "Options":
        """Return a copy of these options with ``changes`` applied."""
        return dataclasses.replace(self, **changes)


class Test(unittest.TestCase):
    def test_merge_returns_new_value(self):
        base = Options(config=Config(nodes=[Node("http://node0")]))
        merged = base.merge(is_async=True, headers={"X-Test": "1"})

        self.assertIsNot(base, merged)
        self.assertFalse(base.is_async)
        self.assertEqual(base.headers, {})
        self.assertTrue(merged.is_async)
        self.assertEqual(merged.headers, {"X-Test": "1"})
        self.assertIs(merged.config, base.config)

    def test_frozen(self):
        options = Options(config=Config())
        with self.assertRaises(dataclasses.FrozenInstanceError):
            options.is_async = True  # type: ignore

    def test_vm_values(self):
        self.assertEqual(VM("EVM"), VM.EVM)
        self.assertEqual(VM("SolidVM"), VM.SOLID_VM)
        with self.assertRaises(ValueError):
            VM("Bogus")
