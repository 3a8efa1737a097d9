from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class OAuthUser:
    """A user identified by an OAuth access token."""

    token: str


@dataclass
class BlockchainUser(OAuthUser):
    """An OAuth user together with the address of its STRATO key."""

    address: str = ""


@dataclass
class StratoUser:
    username: str
    password: str


@dataclass
class Contract:
    name: str
    address: Optional[str] = None
    chain_id: Optional[str] = None


@dataclass
class ContractDefinition:
    """Source and constructor arguments of a contract to be uploaded."""

    name: str
    source: str
    args: Dict[str, Any] = field(default_factory=dict)
    chain_id: Optional[str] = None
    tx_params: Optional[Dict[str, Any]] = None


@dataclass
class CallArgs:
    """Arguments of a contract method call.

    ``value`` is an amount in wei; it is sent as an integer string.
    """

    contract: Contract
    method: str
    args: Dict[str, Any] = field(default_factory=dict)
    value: Optional[int] = None
    chain_id: Optional[str] = None
    tx_params: Optional[Dict[str, Any]] = None


@dataclass
class SendTx:
    to_address: str
    value: int
    chain_id: Optional[str] = None


@dataclass
class Chain:
    """Definition of a private chain to be created.

    Either ``src`` with ``contract_name`` or ``code_ptr`` identifies the governing
    contract.
    """

    label: str
    args: Dict[str, Any] = field(default_factory=dict)
    members: List[Dict[str, Any]] = field(default_factory=list)
    balances: List[Dict[str, Any]] = field(default_factory=list)
    src: Optional[str] = None
    contract_name: Optional[str] = None
    code_ptr: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "label": self.label,
            "args": self.args,
            "members": self.members,
            "balances": self.balances,
        }
        if self.src is not None:
            data["src"] = self.src
        if self.contract_name is not None:
            data["contractName"] = self.contract_name
        if self.code_ptr is not None:
            data["codePtr"] = self.code_ptr
        return data
