# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Transaction envelopes and results for the STRATO Python SDK.

Mutating calls (contract creation, method calls and value transfers) are
submitted as envelopes ``{"payload": ..., "type": ...}`` batched into a single
body ``{"txs": [...]}``. The node answers with one result per envelope, in the
same order, each carrying the transaction hash and a status of ``Pending``,
``Success`` or ``Failure``.

Payloads are modelled as one dataclass per transaction type with an explicit
``to_dict`` encoder producing the wire format. Amounts are Python integers
and are only rendered as decimal strings at that boundary.
"""

import unittest
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .config import Config, Node
from .http_client import RestError
from .metadata import Metadata, construct_metadata
from .options import VM, Options
from .types import CallArgs, Contract, ContractDefinition, SendTx

BAD_REQUEST = 400


class TxPayloadType(str, Enum):
    CONTRACT_CREATE = "CONTRACT"
    FUNCTION_CALL = "FUNCTION"
    TRANSFER = "TRANSFER"


class TxResultStatus(str, Enum):
    PENDING = "Pending"
    SUCCESS = "Success"
    FAILURE = "Failure"


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class ContractCreatePayload:
    contract: str
    args: Dict[str, Any]
    metadata: Metadata
    src: Optional[str] = None
    chain_id: Optional[str] = None
    tx_params: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "src": self.src,
                "contract": self.contract,
                "args": self.args,
                "chainid": self.chain_id,
                "txParams": self.tx_params,
                "metadata": self.metadata.to_dict(),
            }
        )


@dataclass
class FunctionCallPayload:
    contract_name: str
    contract_address: Optional[str]
    method: str
    args: Dict[str, Any]
    metadata: Metadata
    value: Optional[int] = None
    chain_id: Optional[str] = None
    tx_params: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "contractName": self.contract_name,
                "contractAddress": self.contract_address,
                "chainid": self.chain_id,
                "value": None if self.value is None else str(self.value),
                "method": self.method,
                "args": self.args,
                "txParams": self.tx_params,
                "metadata": self.metadata.to_dict(),
            }
        )


@dataclass
class TransferPayload:
    to_address: str
    value: int
    chain_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "toAddress": self.to_address,
                "value": str(self.value),
                "chainid": self.chain_id,
            }
        )


Payload = Union[ContractCreatePayload, FunctionCallPayload, TransferPayload]


@dataclass
class TransactionEnvelope:
    payload: Payload
    type: TxPayloadType

    def to_dict(self) -> Dict[str, Any]:
        return {"payload": self.payload.to_dict(), "type": self.type.value}


@dataclass
class TransactionResult:
    """Result of a submitted transaction, pending or resolved."""

    hash: str
    status: TxResultStatus
    tx_result: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TransactionResult":
        return TransactionResult(
            hash=data["hash"],
            status=TxResultStatus(data["status"]),
            tx_result=data.get("txResult") or {},
            data=data.get("data") or {},
        )

    def is_pending(self) -> bool:
        return self.status == TxResultStatus.PENDING

    def is_success(self) -> bool:
        return self.status == TxResultStatus.SUCCESS

    def is_failure(self) -> bool:
        return self.status == TxResultStatus.FAILURE

    @property
    def contents(self) -> Any:
        return self.data.get("contents")


def get_create_args(
    contract: ContractDefinition, options: Options
) -> TransactionEnvelope:
    src = None if options.config.vm == VM.EVM.value else contract.source
    payload = ContractCreatePayload(
        contract=contract.name,
        args=contract.args,
        metadata=construct_metadata(options, contract.name),
        src=src,
        chain_id=contract.chain_id,
        tx_params=contract.tx_params,
    )
    return TransactionEnvelope(payload, TxPayloadType.CONTRACT_CREATE)


def get_call_args(call_args: CallArgs, options: Options) -> TransactionEnvelope:
    contract = call_args.contract
    payload = FunctionCallPayload(
        contract_name=contract.name,
        contract_address=contract.address,
        method=call_args.method,
        args=call_args.args,
        metadata=construct_metadata(options, contract.name),
        value=call_args.value,
        chain_id=call_args.chain_id,
        tx_params=call_args.tx_params,
    )
    return TransactionEnvelope(payload, TxPayloadType.FUNCTION_CALL)


def get_send_args(send_tx: SendTx) -> TransactionEnvelope:
    payload = TransferPayload(send_tx.to_address, send_tx.value, send_tx.chain_id)
    return TransactionEnvelope(payload, TxPayloadType.TRANSFER)


def batch(envelopes: List[TransactionEnvelope]) -> Dict[str, Any]:
    """Wrap envelopes into a submission body, keeping their order."""
    return {"txs": [envelope.to_dict() for envelope in envelopes]}


def assert_tx_result(tx_result: TransactionResult) -> TransactionResult:
    if tx_result.is_failure():
        raise RestError(
            BAD_REQUEST, tx_result.tx_result.get("message", ""), tx_result.tx_result
        )
    return tx_result


def assert_tx_result_list(
    tx_results: List[TransactionResult],
) -> List[TransactionResult]:
    for index, tx_result in enumerate(tx_results):
        if tx_result.is_failure():
            raise RestError(
                BAD_REQUEST,
                f"tx:{index}, message:{tx_result.tx_result.get('message', '')}",
                {"index": index, "txResult": tx_result.tx_result},
            )
    return tx_results


class Test(unittest.TestCase):
    def options(self, vm: Optional[str] = None, **kwargs) -> Options:
        return Options(config=Config(nodes=[Node("http://node")], vm=vm), **kwargs)

    def test_create_args(self):
        contract = ContractDefinition("Foo", "contract Foo {}", {"x": 1}, "c1")
        envelope = get_create_args(contract, self.options(vm="SolidVM"))

        self.assertEqual(
            envelope.to_dict(),
            {
                "payload": {
                    "src": "contract Foo {}",
                    "contract": "Foo",
                    "args": {"x": 1},
                    "chainid": "c1",
                    "metadata": {"VM": "SolidVM"},
                },
                "type": "CONTRACT",
            },
        )

    def test_create_args_evm_omits_source(self):
        contract = ContractDefinition("Foo", "contract Foo {}")
        payload = get_create_args(contract, self.options(vm="EVM")).to_dict()["payload"]

        self.assertNotIn("src", payload)
        self.assertEqual(payload["metadata"], {"VM": "EVM"})

    def test_call_args(self):
        call_args = CallArgs(
            Contract("Foo", "abcd"), "multiply", {"a": 2}, value=10**30
        )
        envelope = get_call_args(call_args, self.options(enable_history=True))

        self.assertEqual(envelope.type, TxPayloadType.FUNCTION_CALL)
        self.assertEqual(
            envelope.to_dict()["payload"],
            {
                "contractName": "Foo",
                "contractAddress": "abcd",
                "value": "1000000000000000000000000000000",
                "method": "multiply",
                "args": {"a": 2},
                "metadata": {"history": "Foo"},
            },
        )

    def test_send_args(self):
        envelope = get_send_args(SendTx("abcd", 5))
        self.assertEqual(
            envelope.to_dict(),
            {"payload": {"toAddress": "abcd", "value": "5"}, "type": "TRANSFER"},
        )

    def test_batch_preserves_order(self):
        calls = [CallArgs(Contract("Foo", "abcd"), f"m{i}") for i in range(5)]
        body = batch([get_call_args(c, self.options()) for c in calls])

        self.assertEqual(len(body["txs"]), 5)
        self.assertEqual(
            [tx["payload"]["method"] for tx in body["txs"]],
            ["m0", "m1", "m2", "m3", "m4"],
        )

    def test_result_from_dict(self):
        result = TransactionResult.from_dict(
            {
                "hash": "ff",
                "status": "Success",
                "txResult": {"message": "ok"},
                "data": {"contents": {"name": "Foo"}},
            }
        )
        self.assertTrue(result.is_success())
        self.assertEqual(result.contents, {"name": "Foo"})
        self.assertFalse(TransactionResult("ff", TxResultStatus.PENDING).is_success())

    def test_assert_tx_result(self):
        failed = TransactionResult(
            "ff", TxResultStatus.FAILURE, {"message": "out of gas"}
        )
        with self.assertRaisesRegex(RestError, "out of gas"):
            assert_tx_result(failed)
        ok = TransactionResult("ee", TxResultStatus.SUCCESS)
        with self.assertRaises(RestError) as cm:
            assert_tx_result_list([ok, failed])
        self.assertEqual(cm.exception.status_code, 400)
        self.assertEqual(cm.exception.data["index"], 1)
        self.assertEqual(assert_tx_result_list([ok]), [ok])
