"""Encrypted account keystore (Web3 Secret Storage, version 3) handling."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import msgspec
from eth_account import Account

from .storage import is_same_address, private_key_to_address
from .types import PrefixedHexString

logger = logging.getLogger(__name__)


class KeystoreError(Exception):
    """Error decrypting or parsing keystore."""


class Keystore(msgspec.Struct):
    """Version 3 keystore representation."""

    crypto: dict[str, Any]
    version: int
    id: str | None = None
    address: str | None = None

    def __post_init__(self) -> None:
        """Validate keystore structure after initialization."""
        self._validate()

    def _validate(self) -> None:
        if self.version != 3:
            raise KeystoreError(
                f"Keystore version {self.version} is not supported, "
                "only version 3 is supported",
            )

        if "kdf" not in self.crypto or "cipher" not in self.crypto or "mac" not in self.crypto:
            raise KeystoreError("Invalid crypto structure")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Keystore:
        # geth writes "Crypto" in older keystores
        if "crypto" not in data and "Crypto" in data:
            data = {**data, "crypto": data["Crypto"]}
        try:
            return msgspec.convert(data, cls)
        except msgspec.ValidationError as e:
            raise KeystoreError(f"Invalid keystore structure: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> Keystore:
        """Load keystore from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise KeystoreError(f"Invalid JSON: {e}") from e
        except FileNotFoundError as e:
            raise KeystoreError(f"Keystore file not found: {path}") from e
        if not isinstance(data, dict):
            raise KeystoreError("Invalid keystore structure: expected a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, json_str: str) -> Keystore:
        """Load keystore from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise KeystoreError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise KeystoreError("Invalid keystore structure: expected a JSON object")
        return cls.from_dict(data)

    def decrypt(self, password: str) -> PrefixedHexString:
        """Decrypt the keystore and return the 0x-prefixed private key.

        Raises:
            KeystoreError: On a wrong password, a corrupt keystore, or when the
                decrypted key does not match the keystore's address

        """
        try:
            secret = Account.decrypt(msgspec.to_builtins(self), password)
        except (ValueError, KeyError, TypeError) as e:
            if "mac mismatch" in str(e).lower():
                raise KeystoreError("Invalid password") from e
            raise KeystoreError(f"Decryption failed: {e}") from e

        if len(secret) != 32:
            raise KeystoreError(f"Invalid private key length: {len(secret)}")

        private_key = PrefixedHexString("0x" + bytes(secret).hex())
        if self.address and not is_same_address(self.address, private_key_to_address(private_key)):
            raise KeystoreError(f"Decrypted key does not match keystore address {self.address}")
        return private_key
