"""EIP-712 typed data construction and signer recovery.

Two payload kinds are built here: relay requests (verified by the forwarder
contract) and BLS public key approvals (verified by the BLS registrar). Both
carry the chain id and verifying contract in their domain, so a signature is
only valid for the exact (chain id, contract) pair it was produced for.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

import msgspec
from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import keccak, to_bytes, to_checksum_address

from .signing_types import APPROVAL_CLIENT_MESSAGE, ApprovalData, RelayRequest
from .types import Address

RELAY_REQUEST_DOMAIN_NAME = "GSN Relayed Transaction"
RELAY_REQUEST_DOMAIN_VERSION = "2"
APPROVAL_DOMAIN_NAME = "GSN BLS Key Approval"
APPROVAL_DOMAIN_VERSION = "1"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

FORWARD_REQUEST_TYPE = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "gas", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "data", "type": "bytes"},
    {"name": "validUntil", "type": "uint256"},
]

RELAY_DATA_TYPE = [
    {"name": "gasPrice", "type": "uint256"},
    {"name": "pctRelayFee", "type": "uint256"},
    {"name": "baseRelayFee", "type": "uint256"},
    {"name": "relayWorker", "type": "address"},
    {"name": "paymaster", "type": "address"},
    {"name": "forwarder", "type": "address"},
    {"name": "paymasterData", "type": "bytes"},
    {"name": "clientId", "type": "uint256"},
]

RELAY_REQUEST_TYPES = {
    "RelayRequest": [*FORWARD_REQUEST_TYPE, {"name": "relayData", "type": "RelayData"}],
    "RelayData": RELAY_DATA_TYPE,
}

APPROVAL_DATA_TYPES = {
    "ApprovalData": [
        {"name": "clientMessage", "type": "string"},
        {"name": "blsPublicKey0", "type": "uint256"},
        {"name": "blsPublicKey1", "type": "uint256"},
        {"name": "blsPublicKey2", "type": "uint256"},
        {"name": "blsPublicKey3", "type": "uint256"},
    ],
}


def parse_uint(value: str | int) -> int:
    """Parse a decimal or 0x-prefixed hex quantity.

    Raises:
        ValueError: If the value is not a non-negative integer

    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid quantity: {value!r}")
    if isinstance(value, int):
        result = value
    elif value.startswith(("0x", "0X")):
        result = int(value, 16)
    else:
        result = int(value, 10)
    if result < 0 or result >= 2**256:
        raise ValueError(f"Quantity out of uint256 range: {value!r}")
    return result


def _json_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_value(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class SignableTypedData:
    """A domain-separated EIP-712 payload.

    The message and types are private snapshots taken at construction. The
    message and types properties and to_eip712() hand out fresh copies on every
    call, so nothing outside can alter what gets signed.
    """

    chain_id: int
    verifying_contract: Address
    primary_type: str
    _message: dict[str, Any] = field(repr=False)
    _types: dict[str, list[dict[str, str]]] = field(repr=False)
    domain_name: str
    domain_version: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "_message", copy.deepcopy(self._message))
        object.__setattr__(self, "_types", copy.deepcopy(self._types))

    @property
    def message(self) -> dict[str, Any]:
        return copy.deepcopy(self._message)

    @property
    def types(self) -> dict[str, list[dict[str, str]]]:
        return copy.deepcopy(self._types)

    @property
    def domain(self) -> dict[str, Any]:
        return {
            "name": self.domain_name,
            "version": self.domain_version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def to_eip712(self) -> dict[str, Any]:
        """Return the full EIP-712 structure (types, primaryType, domain, message)."""
        return {
            "types": {"EIP712Domain": copy.deepcopy(EIP712_DOMAIN_TYPE), **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain,
            "message": self.message,
        }

    def to_json_dict(self) -> dict[str, Any]:
        """Return the EIP-712 structure with JSON-safe values, as wallets expect it.

        uint256 values become decimal strings and bytes become 0x-hex.
        """
        data = self.to_eip712()
        data["message"] = _json_value(data["message"])
        return data

    def signable_message(self) -> SignableMessage:
        return encode_typed_data(full_message=self.to_eip712())

    def digest(self) -> bytes:
        """Return the 32-byte EIP-712 hash that ECDSA signs over."""
        signable = self.signable_message()
        return keccak(b"\x19" + signable.version + signable.header + signable.body)


def _relay_request_message(relay_request: RelayRequest) -> dict[str, Any]:
    request = relay_request.request
    relay_data = relay_request.relay_data
    return {
        "from": to_checksum_address(request.from_),
        "to": to_checksum_address(request.to),
        "value": parse_uint(request.value),
        "gas": parse_uint(request.gas),
        "nonce": parse_uint(request.nonce),
        "data": to_bytes(hexstr=request.data),
        "validUntil": parse_uint(request.valid_until),
        "relayData": {
            "gasPrice": parse_uint(relay_data.gas_price),
            "pctRelayFee": parse_uint(relay_data.pct_relay_fee),
            "baseRelayFee": parse_uint(relay_data.base_relay_fee),
            "relayWorker": to_checksum_address(relay_data.relay_worker),
            "paymaster": to_checksum_address(relay_data.paymaster),
            "forwarder": to_checksum_address(relay_data.forwarder),
            "paymasterData": to_bytes(hexstr=relay_data.paymaster_data),
            "clientId": parse_uint(relay_data.client_id),
        },
    }


def as_relay_request(relay_request: RelayRequest | dict[str, Any]) -> RelayRequest:
    """Accept a RelayRequest or its camelCase dict form."""
    if isinstance(relay_request, RelayRequest):
        return relay_request
    try:
        return msgspec.convert(relay_request, RelayRequest)
    except msgspec.ValidationError as e:
        raise ValueError(f"Invalid relay request: {e}") from e


def build_relay_request_data(
    chain_id: int,
    forwarder_address: str,
    relay_request: RelayRequest | dict[str, Any],
) -> SignableTypedData:
    """Wrap a relay request for signing under (chain_id, forwarder_address).

    Raises:
        ValueError: If the chain id, forwarder or any request field is malformed

    """
    if chain_id <= 0:
        raise ValueError(f"chain_id must be positive, got {chain_id}")
    return SignableTypedData(
        chain_id=chain_id,
        verifying_contract=Address(to_checksum_address(forwarder_address)),
        primary_type="RelayRequest",
        _message=_relay_request_message(as_relay_request(relay_request)),
        _types=RELAY_REQUEST_TYPES,
        domain_name=RELAY_REQUEST_DOMAIN_NAME,
        domain_version=RELAY_REQUEST_DOMAIN_VERSION,
    )


def build_approval_data(
    chain_id: int,
    registrar_address: str,
    approval: ApprovalData,
) -> SignableTypedData:
    """Wrap a BLS public key approval for signing under (chain_id, registrar_address).

    Raises:
        ValueError: If the chain id or registrar is malformed, or the approval
            does not carry the fixed confirmation message

    """
    if chain_id <= 0:
        raise ValueError(f"chain_id must be positive, got {chain_id}")
    if approval.client_message != APPROVAL_CLIENT_MESSAGE:
        raise ValueError(f"Unexpected approval client message: {approval.client_message!r}")
    return SignableTypedData(
        chain_id=chain_id,
        verifying_contract=Address(to_checksum_address(registrar_address)),
        primary_type="ApprovalData",
        _message={
            "clientMessage": approval.client_message,
            "blsPublicKey0": parse_uint(approval.bls_public_key0),
            "blsPublicKey1": parse_uint(approval.bls_public_key1),
            "blsPublicKey2": parse_uint(approval.bls_public_key2),
            "blsPublicKey3": parse_uint(approval.bls_public_key3),
        },
        _types=APPROVAL_DATA_TYPES,
        domain_name=APPROVAL_DOMAIN_NAME,
        domain_version=APPROVAL_DOMAIN_VERSION,
    )


def sign_typed_data(private_key: str, typed_data: SignableTypedData) -> bytes:
    """Sign typed data with a raw private key (eth_signTypedData_v4 semantics)."""
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_eip712())
    return bytes(signed.signature)


def recover_signer(typed_data: SignableTypedData, signature: bytes | str) -> Address:
    """Recover the address that produced signature over typed_data."""
    return Address(
        Account.recover_message(typed_data.signable_message(), signature=signature)
    )
