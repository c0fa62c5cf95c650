"""In-memory storage for locally-controlled Ethereum accounts."""

import logging
import threading

from eth_account import Account
from eth_utils import is_hex, remove_0x_prefix

from .models import AccountKeypair
from .types import Address, PrefixedHexString

logger = logging.getLogger(__name__)


def normalize_private_key(private_key: str) -> PrefixedHexString:
    """Validate a hex private key and return it 0x-prefixed and lowercase.

    Raises:
        ValueError: If the key is not 32 bytes of hex

    """
    if not isinstance(private_key, str) or not is_hex(private_key):
        raise ValueError("Private key must be a hex string")
    stripped = remove_0x_prefix(private_key).lower()
    if len(stripped) != 64:
        raise ValueError(f"Private key must be 32 bytes, got {len(stripped) // 2}")
    return PrefixedHexString("0x" + stripped)


def private_key_to_address(private_key: str) -> Address:
    """Derive the checksummed address of a hex private key."""
    return Address(Account.from_key(normalize_private_key(private_key)).address)


def normalize_address(address: str) -> str:
    """Normalize an address for comparison (checksum casing is ignored)."""
    return remove_0x_prefix(address).lower()


def is_same_address(a: str, b: str) -> bool:
    """Compare two addresses ignoring 0x prefix and checksum casing."""
    return normalize_address(a) == normalize_address(b)


class AccountStorage:
    """Append-only store of locally-held account keypairs.

    Adding the same key twice yields two entries; lookups return the first.
    Lookups are by normalized address; listing preserves insertion order.
    """

    def __init__(self) -> None:
        self._accounts: list[AccountKeypair] = []
        self._by_address: dict[str, AccountKeypair] = {}
        self._lock = threading.Lock()

    def _update_accounts_metric(self) -> None:
        """Update the accounts_loaded metric (lazily imported to ensure proper setup order)."""
        from .metrics import ACCOUNTS_LOADED

        ACCOUNTS_LOADED.set(len(self._accounts))

    def add(self, private_key: str) -> AccountKeypair:
        """Import a private key and return the stored keypair.

        Raises:
            ValueError: If the private key is malformed

        """
        normalized = normalize_private_key(private_key)
        keypair = AccountKeypair(
            private_key=normalized,
            address=private_key_to_address(normalized),
        )
        with self._lock:
            self._accounts.append(keypair)
            self._by_address.setdefault(normalize_address(keypair.address), keypair)
            self._update_accounts_metric()
        logger.info(f"Added account: {keypair.address}")
        return keypair

    def generate(self) -> AccountKeypair:
        """Generate a fresh random account and store it."""
        account = Account.create()
        return self.add("0x" + bytes(account.key).hex())

    def find(self, address: str) -> AccountKeypair | None:
        """Return the first keypair held for address, if any."""
        return self._by_address.get(normalize_address(address))

    def list_addresses(self) -> list[Address]:
        """Return held addresses in insertion order."""
        with self._lock:
            return [keypair.address for keypair in self._accounts]

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and self.find(address) is not None

    def clear(self) -> None:
        """Clear all accounts (useful for testing)."""
        with self._lock:
            self._accounts.clear()
            self._by_address.clear()
            self._update_accounts_metric()
