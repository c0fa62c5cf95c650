"""Account management facade used by relay clients."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import msgspec

from .authorization import BlsAuthorizationFlow
from .bls import BlsBackend, Bn128BlsBackend
from .bulk_loader import load_external_keystores, load_keystores_from_directory
from .config import Config
from .models import AccountKeypair, BlsKeypair
from .remote import JsonRpcRemoteSigner, RemoteSigner
from .signer import SigningDispatcher
from .signing_types import AuthorizationElement, ExternalBlsKeypair, RelayRequest
from .storage import AccountStorage
from .typed_data import as_relay_request, build_relay_request_data
from .types import Address, PrefixedHexString

logger = logging.getLogger(__name__)


def _legacy_private_key(keypair: Any) -> str | None:
    """Extract a hex key from the old keypair-object form of add_account, if given one."""
    if isinstance(keypair, AccountKeypair):
        return keypair.private_key
    if isinstance(keypair, Mapping) and "privateKey" in keypair:
        value = keypair["privateKey"]
        return "0x" + value.hex() if isinstance(value, (bytes, bytearray)) else value
    return None


class AccountManager:
    """Holds accounts and a BLS keypair and signs relay requests and authorizations.

    Only argument marshalling happens here; signing and verification are
    delegated to SigningDispatcher and BlsAuthorizationFlow.
    """

    def __init__(
        self,
        chain_id: int,
        remote_signer: RemoteSigner | None = None,
        bls_backend: BlsBackend | None = None,
        verify_bls_signatures: bool = True,
    ) -> None:
        if chain_id < 1:
            raise ValueError(f"chain_id must be positive, got {chain_id}")
        self.chain_id = chain_id
        self._storage = AccountStorage()
        self._dispatcher = SigningDispatcher(self._storage, remote_signer)
        self._bls = BlsAuthorizationFlow(
            self._dispatcher,
            bls_backend if bls_backend is not None else Bn128BlsBackend(),
            chain_id,
            verify_signatures=verify_bls_signatures,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        remote_signer: RemoteSigner | None = None,
        bls_backend: BlsBackend | None = None,
    ) -> AccountManager:
        """Create a manager from config, loading any configured keystores.

        An explicit remote_signer takes precedence over config.rpc_url.
        """
        if remote_signer is None and config.rpc_url is not None:
            remote_signer = JsonRpcRemoteSigner(
                config.rpc_url,
                method_suffix=config.method_suffix,
                json_stringify_request=config.json_stringify_request,
                timeout=config.remote_timeout,
            )
        manager = cls(
            config.chain_id,
            remote_signer=remote_signer,
            bls_backend=bls_backend,
            verify_bls_signatures=config.verify_bls_signatures,
        )
        if config.keystores_path is not None:
            if config.keystores_passwords_path is not None:
                load_external_keystores(
                    config.keystores_path, config.keystores_passwords_path, manager.storage
                )
            else:
                load_keystores_from_directory(config.keystores_path, manager.storage)
        return manager

    @property
    def storage(self) -> AccountStorage:
        return self._storage

    @property
    def bls(self) -> BlsAuthorizationFlow:
        return self._bls

    # Accounts

    def add_account(self, private_key: str) -> AccountKeypair:
        """Import a 0x-prefixed hex private key."""
        legacy = _legacy_private_key(private_key)
        if legacy is not None:
            logger.error("add_account accepts a private key as a prefixed hex string now!")
            private_key = legacy
        return self._storage.add(private_key)

    def new_account(self) -> AccountKeypair:
        """Generate a random account, store it, and return it."""
        return self._storage.generate()

    def get_accounts(self) -> list[Address]:
        return self._storage.list_addresses()

    # Relay requests

    async def sign_relay_request(
        self,
        relay_request: RelayRequest | dict[str, Any],
    ) -> PrefixedHexString:
        """ECDSA-sign a relay request as its sender, under its forwarder's domain."""
        request = as_relay_request(relay_request)
        payload = build_relay_request_data(self.chain_id, request.relay_data.forwarder, request)
        signature = await self._dispatcher.sign(request.request.from_, payload)
        return signature.to_hex()

    async def sign_relay_request_bls(
        self,
        relay_request: RelayRequest | dict[str, Any],
    ) -> str:
        """BLS-sign a relay request.

        Returns:
            JSON array of the hex components of the BLS signature, as used for aggregation
        """
        request = as_relay_request(relay_request)
        payload = build_relay_request_data(self.chain_id, request.relay_data.forwarder, request)
        components = await self._bls.sign_typed_data_bls(payload)
        return msgspec.json.encode(components).decode()

    # BLS keypair

    def set_bls_keypair(self, keypair: ExternalBlsKeypair | dict[str, Any]) -> BlsKeypair:
        """Set the BLS keypair from its external representation. Only one keypair is supported."""
        if not isinstance(keypair, ExternalBlsKeypair):
            try:
                keypair = msgspec.convert(keypair, ExternalBlsKeypair)
            except msgspec.ValidationError as e:
                raise ValueError(f"Invalid BLS keypair: {e}") from e
        internal = self._bls.backend.keypair_from_external(keypair)
        self._bls.set_keypair(internal)
        return internal

    def new_bls_keypair(self) -> BlsKeypair:
        """Create a new BLS keypair and hold it."""
        return self._bls.new_keypair()

    # Authorization

    async def create_account_authorization_signature_ecdsa(
        self,
        address: str,
        registrar_address: str,
    ) -> PrefixedHexString:
        signature = await self._bls.create_authorization_signature_ecdsa(address, registrar_address)
        return signature.to_hex()

    async def create_account_authorization_signature_bls(
        self,
        element: AuthorizationElement,
    ) -> list[str]:
        return list(await self._bls.create_authorization_signature_bls(element))

    async def create_account_authorization_element(
        self,
        address: str,
        registrar_address: str,
    ) -> AuthorizationElement:
        """
        Sign the BLS public key with the account's ECDSA key, then sign the result with the BLS key.

        Returns:
            The authorization a relay server uses to register the BLS key on first use
        """
        return await self._bls.create_authorization_element(address, registrar_address)

    async def is_authorization_issued_to_current_key(self, address: str) -> bool:
        return await self._bls.is_authorization_issued_to_current_key(address)
