"""BLS signatures over alt_bn128.

Public keys live in G2 and serialize to 4 field elements (x.c0, x.c1, y.c0,
y.c1); signatures live in G1 and serialize to their affine (x, y). Messages
are mapped to G1 by keccak try-and-increment. All components are 0x-hex.
"""

from __future__ import annotations

import logging
import secrets
from typing import Protocol

from eth_utils import keccak
from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    G2,
    b,
    b2,
    curve_order,
    field_modulus,
    is_on_curve,
    multiply,
    normalize,
    pairing,
)

from .models import BlsKeypair
from .signing_types import ExternalBlsKeypair
from .types import BlsPublicKeySerialized, BlsSignatureSerialized

logger = logging.getLogger(__name__)


class BlsBackend(Protocol):
    """BLS primitives consumed by the authorization flow.

    Implementations are stateless: the keypair is owned by the caller.
    """

    def new_keypair(self) -> BlsKeypair: ...

    def keypair_from_external(self, keypair: ExternalBlsKeypair) -> BlsKeypair: ...

    def sign(self, keypair: BlsKeypair, message: bytes) -> BlsSignatureSerialized: ...

    def verify(
        self,
        public_key: list[str],
        message: bytes,
        signature: list[str],
    ) -> bool: ...


def _parse_component(value: str) -> int:
    result = int(value, 16)
    if not 0 <= result < field_modulus:
        raise ValueError(f"BLS component out of field range: {value}")
    return result


def hash_to_g1(message: bytes) -> tuple[FQ, FQ, FQ]:
    """Map a message onto G1 (keccak, then increment x until it is on the curve)."""
    x = int.from_bytes(keccak(message), "big") % field_modulus
    while True:
        y_squared = (pow(x, 3, field_modulus) + 3) % field_modulus
        # field_modulus % 4 == 3, so this is the square root when one exists
        y = pow(y_squared, (field_modulus + 1) // 4, field_modulus)
        if y * y % field_modulus == y_squared:
            return (FQ(x), FQ(y), FQ.one())
        x += 1


def serialize_public_key(point: tuple[FQ2, FQ2, FQ2]) -> BlsPublicKeySerialized:
    x, y = normalize(point)
    return BlsPublicKeySerialized([hex(int(c)) for c in (*x.coeffs, *y.coeffs)])


def deserialize_public_key(public_key: list[str]) -> tuple[FQ2, FQ2, FQ2]:
    """Parse a 4-component public key and check it is a valid G2 element.

    Raises:
        ValueError: If the key is malformed or not in G2

    """
    if len(public_key) != 4:
        raise ValueError(f"BLS public key must have 4 components, got {len(public_key)}")
    c = [_parse_component(v) for v in public_key]
    point = (FQ2([c[0], c[1]]), FQ2([c[2], c[3]]), FQ2.one())
    if not is_on_curve(point, b2):
        raise ValueError("BLS public key is not on the curve")
    if multiply(point, curve_order)[2] != FQ2.zero():
        raise ValueError("BLS public key is not in the G2 subgroup")
    return point


def serialize_signature(point: tuple[FQ, FQ, FQ]) -> BlsSignatureSerialized:
    x, y = normalize(point)
    return BlsSignatureSerialized([hex(int(x)), hex(int(y))])


def deserialize_signature(signature: list[str]) -> tuple[FQ, FQ, FQ]:
    if len(signature) != 2:
        raise ValueError(f"BLS signature must have 2 components, got {len(signature)}")
    x, y = (_parse_component(v) for v in signature)
    point = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(point, b):
        raise ValueError("BLS signature is not on the curve")
    return point


class Bn128BlsBackend:
    """BLS backend on alt_bn128 using py_ecc."""

    def _keypair(self, secret_key: int) -> BlsKeypair:
        if not 0 < secret_key < curve_order:
            raise ValueError("BLS secret key out of range")
        return BlsKeypair(
            secret_key=secret_key,
            public_key=serialize_public_key(multiply(G2, secret_key)),
        )

    def new_keypair(self) -> BlsKeypair:
        keypair = self._keypair(secrets.randbelow(curve_order - 1) + 1)
        logger.info(f"Generated BLS keypair: {keypair.public_key[0][:18]}...")
        return keypair

    def keypair_from_external(self, keypair: ExternalBlsKeypair) -> BlsKeypair:
        """
        Build a keypair from its external representation.

        Raises:
            ValueError: If the secret key is malformed or the supplied
                public key does not belong to it
        """
        result = self._keypair(int(keypair.secret_key, 16))
        if keypair.public_key is not None:
            supplied = [_parse_component(v) for v in keypair.public_key]
            derived = [int(v, 16) for v in result.public_key]
            if supplied != derived:
                raise ValueError("BLS public key does not match secret key")
        return result

    def sign(self, keypair: BlsKeypair, message: bytes) -> BlsSignatureSerialized:
        return serialize_signature(multiply(hash_to_g1(message), keypair.secret_key))

    def verify(
        self,
        public_key: list[str],
        message: bytes,
        signature: list[str],
    ) -> bool:
        """Check e(pk, H(m)) == e(G2, sig). Malformed inputs verify as False."""
        try:
            pk_point = deserialize_public_key(public_key)
            sig_point = deserialize_signature(signature)
        except ValueError as e:
            logger.debug(f"Rejecting malformed BLS input: {e}")
            return False
        return pairing(pk_point, hash_to_g1(message)) == pairing(G2, sig_point)
