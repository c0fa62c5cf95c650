"""Data classes for relaysigner.

This module contains dataclasses and structured types used across the codebase.
None of these are serialized out directly; wire shapes live in signing_types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .types import Address, BlsPublicKeySerialized, PrefixedHexString


class SignatureScheme(str, Enum):
    """Scheme that produced a signature."""

    ECDSA = "ecdsa"
    BLS = "bls"


@dataclass(frozen=True, slots=True)
class AccountKeypair:
    """A locally-controlled Ethereum account.

    Attributes:
        private_key: 0x-prefixed 32-byte secret (hidden from repr)
        address: Checksummed address derived from private_key

    """

    private_key: PrefixedHexString = field(repr=False)
    address: Address


@dataclass(frozen=True, slots=True)
class BlsKeypair:
    """A BLS keypair on alt_bn128.

    Attributes:
        secret_key: Scalar secret, never serialized out
        public_key: 4 hex-encoded G2 coordinates

    """

    secret_key: int = field(repr=False)
    public_key: BlsPublicKeySerialized

    def __post_init__(self) -> None:
        if len(self.public_key) != 4:
            raise ValueError(
                f"BLS public key must have 4 components, got {len(self.public_key)}"
            )


@dataclass(frozen=True, slots=True)
class Signature:
    """A verified signature released by the signing dispatcher.

    Attributes:
        scheme: Scheme that produced the signature
        value: Raw signature bytes (65 bytes r || s || v for ECDSA)
        signer: Address the signature was verified against

    """

    scheme: SignatureScheme
    value: bytes
    signer: Address

    def to_hex(self) -> PrefixedHexString:
        """Return the signature as a 0x-prefixed hex string."""
        return PrefixedHexString("0x" + self.value.hex())


@dataclass(frozen=True, slots=True)
class KeystoreLoadResult:
    """Result of decrypting an encrypted account keystore.

    Attributes:
        private_key: 0x-prefixed private key (hidden from repr)
        address: Checksummed address of the key
        source: Keystore file the key came from

    """

    private_key: PrefixedHexString = field(repr=False)
    address: Address
    source: Path
