"""Type definitions for relaysigner.

This module contains type aliases and NewType definitions for domain-specific
types to improve type safety and code readability.
"""

from typing import NewType

Address = NewType("Address", str)
"""Ethereum address, 0x-prefixed, 40 hex characters (checksummed when produced here)."""

PrefixedHexString = NewType("PrefixedHexString", str)
"""0x-prefixed hex string (private keys, ECDSA signatures, BLS components)."""

BlsPublicKeySerialized = NewType("BlsPublicKeySerialized", list[str])
"""BLS public key as 4 hex-encoded G2 coordinates: x.c0, x.c1, y.c0, y.c1."""

BlsSignatureSerialized = NewType("BlsSignatureSerialized", list[str])
"""BLS signature as hex-encoded G1 coordinates."""
