"""
Contract metadata for the STRATO Python SDK.

Every transaction that creates or calls a contract carries a small metadata
object telling the node how to treat the contract:

- ``history``: comma separated contract names whose state history is recorded
- ``noindex``: comma separated contract names excluded from the search index
- ``VM``: the VM executing the contract, ``EVM`` or ``SolidVM``

The metadata is derived per call from :class:`~strato_sdk.options.Options` and
the name of the contract involved, and is never stored.

Examples:
    Record history for the contract being created::

        from strato_sdk.metadata import construct_metadata

        metadata = construct_metadata(options.merge(enable_history=True), "Asset")
        metadata.to_dict()
        # {"history": "Asset", "VM": "SolidVM"}

    Keep a contract and two of its children out of the index::

        metadata = construct_metadata(
            options.merge(enable_index=False, noindex=["Item", "Owner"]), "Store"
        )
        metadata.noindex
        # "Store,Item,Owner"
"""

import unittest
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .config import Config, Node
from .http_client import RestError
from .options import VM, Options

BAD_REQUEST = 400


@dataclass
class Metadata:
    history: Optional[str] = None
    noindex: Optional[str] = None
    vm: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {}
        if self.history:
            data["history"] = self.history
        if self.noindex:
            data["noindex"] = self.noindex
        if self.vm:
            data["VM"] = self.vm
        return data


def construct_metadata(options: Options, contract_name: str) -> Metadata:
    """Build the metadata of a transaction touching ``contract_name``.

    :param options: Options of the call; ``enable_history``, ``history``,
        ``enable_index``, ``noindex`` and ``config.vm`` are consulted.
    :param contract_name: Name of the contract being created or called.
    :return: A new :class:`Metadata`.
    :raises RestError: With status 400 if ``config.vm`` is not a known VM.
    """
    metadata = Metadata()

    # history flag (default: off)
    if options.enable_history:
        metadata.history = contract_name
    if options.history is not None:
        metadata.history = _append(metadata.history, _names(options.history))

    # index flag (default: on)
    if options.enable_index is False:
        metadata.noindex = contract_name
    if options.noindex is not None:
        others = [name for name in _names(options.noindex) if name != contract_name]
        metadata.noindex = _append(metadata.noindex, others)

    vm = options.config.vm
    if vm is not None:
        if vm not in [v.value for v in VM]:
            raise RestError(BAD_REQUEST, f"Illegal VM type {vm}", {"options": options})
        metadata.vm = vm

    return metadata


def _names(value: Union[str, List[str]]) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    return [name.strip() for name in value if name.strip()]


def _append(current: Optional[str], names: List[str]) -> Optional[str]:
    tokens = current.split(",") if current else []
    for name in names:
        if name not in tokens:
            tokens.append(name)
    return ",".join(tokens) or None


class Test(unittest.TestCase):
    def options(self, vm: Optional[str] = None, **kwargs) -> Options:
        return Options(config=Config(nodes=[Node("http://node")], vm=vm), **kwargs)

    def test_defaults(self):
        metadata = construct_metadata(self.options(), "Foo")
        self.assertEqual(metadata, Metadata())
        self.assertEqual(metadata.to_dict(), {})

    def test_vm(self):
        metadata = construct_metadata(self.options(vm="EVM"), "Foo")
        self.assertEqual(metadata.to_dict(), {"VM": "EVM"})
        metadata = construct_metadata(self.options(vm="SolidVM"), "Foo")
        self.assertEqual(metadata.vm, "SolidVM")

    def test_illegal_vm(self):
        with self.assertRaises(RestError) as cm:
            construct_metadata(self.options(vm="Bogus"), "Foo")
        self.assertEqual(cm.exception.status_code, 400)
        self.assertIn("Illegal VM type Bogus", cm.exception.status_text)
        self.assertIn("options", cm.exception.data)

    def test_empty_vm(self):
        with self.assertRaises(RestError) as cm:
            construct_metadata(self.options(vm=""), "Foo")
        self.assertEqual(cm.exception.status_code, 400)

    def test_enable_history(self):
        metadata = construct_metadata(self.options(enable_history=True), "Foo")
        self.assertEqual(metadata.history, "Foo")

    def test_history_list(self):
        options = self.options(enable_history=True, history=["Foo", "Bar"])
        self.assertEqual(construct_metadata(options, "Foo").history, "Foo,Bar")
        options = self.options(enable_history=True, history=["Bar", "Baz"])
        self.assertEqual(construct_metadata(options, "Foo").history, "Foo,Bar,Baz")
        options = self.options(history=["Bar"])
        self.assertEqual(construct_metadata(options, "Foo").history, "Bar")

    def test_history_string(self):
        options = self.options(enable_history=True, history="Bar")
        self.assertEqual(construct_metadata(options, "Foo").history, "Foo,Bar")

    def test_history_token_dedup(self):
        options = self.options(enable_history=True, history="EventX")
        self.assertEqual(construct_metadata(options, "Event").history, "Event,EventX")

    def test_enable_index(self):
        metadata = construct_metadata(self.options(enable_index=False), "Foo")
        self.assertEqual(metadata.noindex, "Foo")
        metadata = construct_metadata(self.options(enable_index=True), "Foo")
        self.assertIsNone(metadata.noindex)

    def test_noindex(self):
        options = self.options(enable_index=False, noindex=["Foo", "Bar"])
        self.assertEqual(construct_metadata(options, "Foo").noindex, "Foo,Bar")
        options = self.options(noindex=["Foo", "Bar"])
        self.assertEqual(construct_metadata(options, "Foo").noindex, "Bar")
        options = self.options(noindex=["Foo"])
        self.assertIsNone(construct_metadata(options, "Foo").noindex)

    def test_idempotent(self):
        options = self.options(
            vm="SolidVM", enable_history=True, history=["A"], noindex="B,C"
        )
        first = construct_metadata(options, "Foo")
        second = construct_metadata(options, "Foo")
        self.assertEqual(first, second)
        self.assertEqual(
            first.to_dict(), {"history": "Foo,A", "noindex": "B,C", "VM": "SolidVM"}
        )
