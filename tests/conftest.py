"""Test fixtures and utilities."""

from collections.abc import Generator
from typing import Any

import pytest

from relaysigner.account_manager import AccountManager
from relaysigner.storage import AccountStorage
from tests.helpers import CHAIN_ID, FORWARDER, TEST_ADDRESS, TEST_PRIVATE_KEY, FakeBlsBackend


@pytest.fixture
def relay_request() -> dict[str, Any]:
    """Return a relay request in its camelCase wire form."""
    return {
        "request": {
            "from": TEST_ADDRESS,
            "to": "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0",
            "value": "0",
            "gas": "1000000",
            "nonce": "7",
            "data": "0xa9059cbb",
            "validUntil": "0",
        },
        "relayData": {
            "gasPrice": "20000000000",
            "pctRelayFee": "10",
            "baseRelayFee": "0",
            "relayWorker": "0xCf7Ed3AccA5a467e9e704C703E8D87F634fB0Fc9",
            "paymaster": "0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9",
            "paymasterData": "0x",
            "clientId": "1",
            "forwarder": FORWARDER,
        },
    }


@pytest.fixture
def storage() -> Generator[AccountStorage, None, None]:
    """Create a fresh account storage."""
    storage = AccountStorage()
    yield storage
    storage.clear()


@pytest.fixture
def fake_bls() -> FakeBlsBackend:
    """Create a deterministic fake BLS backend."""
    return FakeBlsBackend()


@pytest.fixture
def manager(fake_bls: FakeBlsBackend) -> AccountManager:
    """Account manager holding the test key, with the fake BLS backend."""
    manager = AccountManager(CHAIN_ID, bls_backend=fake_bls)
    manager.add_account(TEST_PRIVATE_KEY)
    return manager
