"""Tests for the AccountManager facade."""

import json
from pathlib import Path
from typing import Any

import msgspec
import pytest
from eth_account import Account

from relaysigner.account_manager import AccountManager
from relaysigner.authorization import BlsNotInitialized, KeypairAlreadySet, authorization_element_message
from relaysigner.config import Config
from relaysigner.models import AccountKeypair
from relaysigner.remote import JsonRpcRemoteSigner
from relaysigner.signer import SigningFailure
from relaysigner.signing_types import ExternalBlsKeypair, RelayRequest
from relaysigner.typed_data import build_relay_request_data, recover_signer, sign_typed_data
from tests.helpers import (
    CHAIN_ID,
    FORWARDER,
    OTHER_ADDRESS,
    OTHER_PRIVATE_KEY,
    REGISTRAR,
    TEST_ADDRESS,
    TEST_PRIVATE_KEY,
    FakeBlsBackend,
    FakeRemoteSigner,
)


class TestAccounts:
    """Tests for account import and listing."""

    def test_rejects_invalid_chain_id(self) -> None:
        """Test that a non-positive chain id is rejected."""
        with pytest.raises(ValueError, match="chain_id"):
            AccountManager(0)

    def test_add_account(self) -> None:
        """Test importing a hex private key."""
        manager = AccountManager(CHAIN_ID)
        keypair = manager.add_account(TEST_PRIVATE_KEY)

        assert keypair.address == TEST_ADDRESS
        assert manager.get_accounts() == [TEST_ADDRESS]

    def test_add_account_legacy_keypair_object(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the legacy {privateKey: bytes} form is accepted with an error log."""
        manager = AccountManager(CHAIN_ID)

        keypair = manager.add_account({"privateKey": bytes.fromhex(TEST_PRIVATE_KEY[2:])})

        assert keypair.address == TEST_ADDRESS
        assert "prefixed hex string" in caplog.text

    def test_add_account_legacy_account_keypair(self) -> None:
        """Test the legacy AccountKeypair form is accepted."""
        manager = AccountManager(CHAIN_ID)
        legacy = AccountKeypair(private_key=OTHER_PRIVATE_KEY, address=OTHER_ADDRESS)

        assert manager.add_account(legacy).address == OTHER_ADDRESS

    def test_add_account_invalid_key(self) -> None:
        """Test that a malformed key is rejected and nothing is stored."""
        manager = AccountManager(CHAIN_ID)
        with pytest.raises(ValueError):
            manager.add_account("0x1234")
        assert manager.get_accounts() == []

    def test_new_account(self) -> None:
        """Test random account generation."""
        manager = AccountManager(CHAIN_ID)

        first = manager.new_account()
        second = manager.new_account()

        assert first.address != second.address
        assert manager.get_accounts() == [first.address, second.address]
        assert Account.from_key(first.private_key).address == first.address


class TestSignRelayRequest:
    """End-to-end ECDSA relay request signing."""

    async def test_signature_recovers_to_sender(
        self, manager: AccountManager, relay_request: dict[str, Any]
    ) -> None:
        """Test the relay request signature recovers to its sender."""
        signature = await manager.sign_relay_request(relay_request)

        payload = build_relay_request_data(CHAIN_ID, FORWARDER, relay_request)
        assert signature.startswith("0x")
        assert len(signature) == 2 + 65 * 2
        assert recover_signer(payload, signature) == TEST_ADDRESS

    async def test_accepts_struct(self, manager: AccountManager, relay_request: dict[str, Any]) -> None:
        """Test that a RelayRequest struct signs like its dict form."""
        struct = msgspec.convert(relay_request, RelayRequest)
        assert await manager.sign_relay_request(struct) == await manager.sign_relay_request(relay_request)

    async def test_signature_is_bound_to_chain(
        self, manager: AccountManager, relay_request: dict[str, Any]
    ) -> None:
        """Test that the signature does not recover under another chain id."""
        signature = await manager.sign_relay_request(relay_request)

        other_chain = build_relay_request_data(CHAIN_ID + 1, FORWARDER, relay_request)
        assert recover_signer(other_chain, signature) != TEST_ADDRESS

    async def test_unknown_sender_without_remote(
        self, manager: AccountManager, relay_request: dict[str, Any]
    ) -> None:
        """Test signing for an unknown sender fails without a remote signer."""
        relay_request["request"]["from"] = OTHER_ADDRESS
        with pytest.raises(SigningFailure, match="no remote signer"):
            await manager.sign_relay_request(relay_request)

    async def test_unknown_sender_with_remote(self, relay_request: dict[str, Any]) -> None:
        """Test signing for an unknown sender is delegated to the remote signer."""
        relay_request["request"]["from"] = OTHER_ADDRESS
        payload = build_relay_request_data(CHAIN_ID, FORWARDER, relay_request)
        remote = FakeRemoteSigner("0x" + sign_typed_data(OTHER_PRIVATE_KEY, payload).hex())
        manager = AccountManager(CHAIN_ID, remote_signer=remote)

        signature = await manager.sign_relay_request(relay_request)

        assert recover_signer(payload, signature) == OTHER_ADDRESS
        assert remote.calls[0][0] == OTHER_ADDRESS

    async def test_invalid_request(self, manager: AccountManager) -> None:
        """Test that a malformed relay request is rejected."""
        with pytest.raises(ValueError, match="Invalid relay request"):
            await manager.sign_relay_request({"request": {}})


class TestBls:
    """Tests for BLS keypair handling and relay request BLS signing."""

    async def test_sign_relay_request_bls_requires_keypair(
        self, manager: AccountManager, relay_request: dict[str, Any]
    ) -> None:
        """Test BLS signing before a keypair is set."""
        with pytest.raises(BlsNotInitialized):
            await manager.sign_relay_request_bls(relay_request)

    async def test_sign_relay_request_bls(
        self, manager: AccountManager, fake_bls: FakeBlsBackend, relay_request: dict[str, Any]
    ) -> None:
        """Test BLS signing of the relay request digest."""
        keypair = manager.new_bls_keypair()

        result = await manager.sign_relay_request_bls(relay_request)

        components = json.loads(result)
        payload = build_relay_request_data(CHAIN_ID, FORWARDER, relay_request)
        assert fake_bls.signed_messages == [payload.digest()]
        assert fake_bls.verify(list(keypair.public_key), payload.digest(), components)

    def test_set_bls_keypair_from_dict(self, manager: AccountManager, fake_bls: FakeBlsBackend) -> None:
        """Test setting the BLS keypair from its dict form."""
        keypair = manager.set_bls_keypair({"secretKey": "0x2a"})

        assert keypair == fake_bls.keypair_from_external(ExternalBlsKeypair(secret_key="0x2a"))
        assert manager.bls.keypair == keypair

    def test_set_bls_keypair_twice(self, manager: AccountManager) -> None:
        """Test the BLS keypair can only be set once."""
        first = manager.set_bls_keypair({"secretKey": "0x2a"})

        with pytest.raises(KeypairAlreadySet):
            manager.set_bls_keypair({"secretKey": "0x2b"})
        with pytest.raises(KeypairAlreadySet):
            manager.new_bls_keypair()

        assert manager.bls.keypair == first

    def test_set_bls_keypair_invalid(self, manager: AccountManager) -> None:
        """Test that a malformed external keypair leaves the slot unset."""
        with pytest.raises(ValueError, match="Invalid BLS keypair"):
            manager.set_bls_keypair({"publicKey": ["0x1"]})
        assert manager.bls.keypair is None


class TestAuthorization:
    async def test_create_account_authorization_element(
        self, manager: AccountManager, fake_bls: FakeBlsBackend
    ) -> None:
        """Test creating an authorization element through the facade."""
        manager.new_bls_keypair()

        element = await manager.create_account_authorization_element(TEST_ADDRESS, REGISTRAR)

        assert element.authorizer == TEST_ADDRESS
        assert element.bls_public_key == list(manager.bls.keypair.public_key)
        assert len(element.bls_signature) == 2

    async def test_split_steps_match_element(
        self, manager: AccountManager
    ) -> None:
        """Test the split authorization steps reproduce the element."""
        manager.new_bls_keypair()
        element = await manager.create_account_authorization_element(TEST_ADDRESS, REGISTRAR)

        ecdsa = await manager.create_account_authorization_signature_ecdsa(TEST_ADDRESS, REGISTRAR)
        partial = msgspec.structs.replace(element, bls_signature=[])
        bls = await manager.create_account_authorization_signature_bls(partial)

        # ECDSA signing is deterministic (RFC 6979), as is the fake BLS backend
        assert ecdsa == element.ecdsa_signature
        assert bls == element.bls_signature
        assert authorization_element_message(partial) == authorization_element_message(element)

    async def test_is_authorization_issued(self, manager: AccountManager) -> None:
        """Test the authorization issuance check."""
        manager.new_bls_keypair()
        assert await manager.is_authorization_issued_to_current_key(TEST_ADDRESS) is False


class TestFromConfig:
    """Tests for building a manager from configuration."""

    def test_defaults(self) -> None:
        """Test a manager built from default config."""
        manager = AccountManager.from_config(Config(chain_id=CHAIN_ID))

        assert manager.chain_id == CHAIN_ID
        assert manager.get_accounts() == []
        assert manager._dispatcher.remote_signer is None

    def test_rpc_url_creates_remote_signer(self) -> None:
        """Test rpc_url configures a JSON-RPC remote signer."""
        config = Config(chain_id=CHAIN_ID, rpc_url="http://localhost:8545", method_suffix="_v3")
        manager = AccountManager.from_config(config)

        remote = manager._dispatcher.remote_signer
        assert isinstance(remote, JsonRpcRemoteSigner)
        assert remote.method == "eth_signTypedData_v3"

    def test_explicit_remote_signer_wins(self) -> None:
        """Test an explicit remote signer takes precedence over rpc_url."""
        remote = FakeRemoteSigner()
        config = Config(chain_id=CHAIN_ID, rpc_url="http://localhost:8545")

        manager = AccountManager.from_config(config, remote_signer=remote)

        assert manager._dispatcher.remote_signer is remote

    def test_loads_keystores(self, tmp_path: Path) -> None:
        """Test keystores with passwords beside them are loaded."""
        keystore = Account.encrypt(TEST_PRIVATE_KEY, "secret", kdf="pbkdf2", iterations=2)
        (tmp_path / "account.json").write_text(json.dumps(keystore))
        (tmp_path / "account.txt").write_text("secret\n")

        manager = AccountManager.from_config(Config(chain_id=CHAIN_ID, keystores_path=tmp_path))

        assert manager.get_accounts() == [TEST_ADDRESS]

    def test_loads_keystores_with_separate_passwords(self, tmp_path: Path) -> None:
        """Test keystores with passwords in a separate directory are loaded."""
        keystores = tmp_path / "keystores"
        passwords = tmp_path / "passwords"
        keystores.mkdir()
        passwords.mkdir()
        keystore = Account.encrypt(OTHER_PRIVATE_KEY, "pw", kdf="pbkdf2", iterations=2)
        (keystores / "other.json").write_text(json.dumps(keystore))
        (passwords / "other.txt").write_text("pw")

        config = Config(chain_id=CHAIN_ID, keystores_path=keystores, keystores_passwords_path=passwords)
        manager = AccountManager.from_config(config)

        assert manager.get_accounts() == [OTHER_ADDRESS]
