"""Relay request and BLS authorization wire types.

Field names on the wire are camelCase, matching the JSON produced by relay
clients and consumed by relay servers and the BLS registrar.
"""

import msgspec

from .types import Address, PrefixedHexString

# Fixed confirmation string embedded in every BLS public key approval.
APPROVAL_CLIENT_MESSAGE = "I UNDERSTAND WHAT I AM DOING"


class ForwardRequest(msgspec.Struct, frozen=True):
    """The call the user wants the forwarder to execute on their behalf."""

    from_: str = msgspec.field(name="from")
    to: str
    value: str
    gas: str
    nonce: str
    data: str
    valid_until: str = msgspec.field(name="validUntil")


class RelayData(msgspec.Struct, frozen=True):
    """Relay-specific parameters signed together with the forward request."""

    gas_price: str = msgspec.field(name="gasPrice")
    pct_relay_fee: str = msgspec.field(name="pctRelayFee")
    base_relay_fee: str = msgspec.field(name="baseRelayFee")
    relay_worker: str = msgspec.field(name="relayWorker")
    paymaster: str
    paymaster_data: str = msgspec.field(name="paymasterData")
    client_id: str = msgspec.field(name="clientId")
    forwarder: str


class RelayRequest(msgspec.Struct, frozen=True):
    """A relay request: forward request plus relay data."""

    request: ForwardRequest
    relay_data: RelayData = msgspec.field(name="relayData")


class RelayMetadata(msgspec.Struct, frozen=True):
    """Metadata sent alongside a signed relay request."""

    approval_data: str = msgspec.field(name="approvalData")
    relay_hub_address: str = msgspec.field(name="relayHubAddress")
    relay_max_nonce: int = msgspec.field(name="relayMaxNonce")
    signature: str
    # Gas price floor accepted by the client; not part of the signed payload.
    min_acceptable_gas_price: str = msgspec.field(name="minAcceptableGasPrice")


class RelayTransactionRequest(msgspec.Struct, frozen=True):
    """Body of a relay transaction submitted to a relay server."""

    relay_request: RelayRequest = msgspec.field(name="relayRequest")
    metadata: RelayMetadata


class ApprovalData(msgspec.Struct, frozen=True):
    """Message approving a BLS public key for an Ethereum account."""

    client_message: str = msgspec.field(name="clientMessage")
    bls_public_key0: str = msgspec.field(name="blsPublicKey0")
    bls_public_key1: str = msgspec.field(name="blsPublicKey1")
    bls_public_key2: str = msgspec.field(name="blsPublicKey2")
    bls_public_key3: str = msgspec.field(name="blsPublicKey3")

    @classmethod
    def for_public_key(cls, public_key: list[str]) -> "ApprovalData":
        """Build the approval message for a serialized BLS public key."""
        if len(public_key) != 4:
            raise ValueError(
                f"BLS public key must have 4 components, got {len(public_key)}"
            )
        return cls(
            client_message=APPROVAL_CLIENT_MESSAGE,
            bls_public_key0=public_key[0],
            bls_public_key1=public_key[1],
            bls_public_key2=public_key[2],
            bls_public_key3=public_key[3],
        )


class AuthorizationElement(msgspec.Struct, frozen=True):
    """Binding of an Ethereum address to a BLS public key, signed by both keys.

    Attributes:
        authorizer: The Ethereum address
        bls_public_key: 4-component serialized BLS public key
        ecdsa_signature: Signature of the approval data by authorizer
        bls_signature: BLS signature over the element with ecdsa_signature set

    """

    authorizer: Address
    bls_public_key: list[str] = msgspec.field(name="blsPublicKey")
    ecdsa_signature: PrefixedHexString = msgspec.field(name="ecdsaSignature")
    bls_signature: list[str] = msgspec.field(name="blsSignature", default_factory=list)


class ExternalBlsKeypair(msgspec.Struct, frozen=True):
    """Externally supplied BLS keypair.

    public_key is optional; when given it must match the key derived from
    secret_key.
    """

    secret_key: str = msgspec.field(name="secretKey")
    public_key: list[str] | None = msgspec.field(name="publicKey", default=None)


relay_request_decoder = msgspec.json.Decoder(RelayRequest)
relay_transaction_request_decoder = msgspec.json.Decoder(RelayTransactionRequest)
authorization_element_decoder = msgspec.json.Decoder(AuthorizationElement)
