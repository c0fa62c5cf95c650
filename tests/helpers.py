"""Shared test constants and fakes."""

import asyncio
from typing import Any

from eth_utils import keccak

from relaysigner.models import BlsKeypair
from relaysigner.signing_types import ExternalBlsKeypair

# Well-known development key; never holds funds on a real network.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

OTHER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

FORWARDER = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
REGISTRAR = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
CHAIN_ID = 1337


class FakeBlsBackend:
    """Deterministic stand-in for the BLS primitives.

    A "signature" is keccak(public key || message) split in two, so it
    verifies only under the public key and message it was made for.
    """

    def __init__(self) -> None:
        self.signed_messages: list[bytes] = []
        self.keypairs_created = 0
        self._next_secret = 1

    def _keypair(self, secret_key: int) -> BlsKeypair:
        public_key = [
            hex(int.from_bytes(keccak(secret_key.to_bytes(32, "big") + bytes([i])), "big"))
            for i in range(4)
        ]
        return BlsKeypair(secret_key=secret_key, public_key=public_key)

    def new_keypair(self) -> BlsKeypair:
        self.keypairs_created += 1
        keypair = self._keypair(self._next_secret)
        self._next_secret += 1
        return keypair

    def keypair_from_external(self, keypair: ExternalBlsKeypair) -> BlsKeypair:
        result = self._keypair(int(keypair.secret_key, 16))
        if keypair.public_key is not None and keypair.public_key != result.public_key:
            raise ValueError("BLS public key does not match secret key")
        return result

    @staticmethod
    def _signature(public_key: list[str], message: bytes) -> list[str]:
        digest = keccak("".join(public_key).encode() + message)
        return [hex(int.from_bytes(digest[:16], "big")), hex(int.from_bytes(digest[16:], "big"))]

    def sign(self, keypair: BlsKeypair, message: bytes) -> list[str]:
        self.signed_messages.append(message)
        return self._signature(list(keypair.public_key), message)

    def verify(self, public_key: list[str], message: bytes, signature: list[str]) -> bool:
        return self._signature(public_key, message) == signature


class FakeRemoteSigner:
    """Remote signer returning a canned signature and recording its calls."""

    def __init__(self, response: str | None = None) -> None:
        self.response = response
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def sign(self, address: str, typed_data: dict[str, Any]) -> str:
        self.calls.append((address, typed_data))
        if self.response is not None:
            return self.response
        raise RuntimeError("no signature configured")


class BlockingRemoteSigner:
    """Remote signer that never answers until released."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def sign(self, address: str, typed_data: dict[str, Any]) -> str:
        self.started.set()
        await self.release.wait()
        return "0x" + "00" * 65
