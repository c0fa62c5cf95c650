"""BLS keypair lifecycle and the two-leg ECDSA + BLS authorization protocol.

An authorization element binds an Ethereum address to a BLS public key:

1. the address signs (EIP-712, ECDSA) an approval message embedding the
   BLS public key;
2. the BLS key signs the element that already carries that ECDSA signature.

The second leg covers the first, so neither signature can be reused with a
different counterpart.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time

import msgspec
from eth_abi import encode
from eth_utils import keccak, to_bytes

from .bls import BlsBackend
from .metrics import SIGNING_DURATION_SECONDS, SIGNING_ERRORS_TOTAL, SIGNING_REQUESTS_TOTAL
from .models import BlsKeypair, Signature, SignatureScheme
from .signer import SignerError, SigningDispatcher, SigningFailure, VerificationMismatch
from .signing_types import ApprovalData, AuthorizationElement
from .typed_data import SignableTypedData, build_approval_data
from .types import BlsPublicKeySerialized, BlsSignatureSerialized

logger = logging.getLogger(__name__)


class BlsNotInitialized(SignerError):
    """A BLS operation was requested before a keypair was set."""


class KeypairAlreadySet(SignerError):
    """A BLS keypair is already held; it can only be set once."""


def authorization_element_message(element: AuthorizationElement) -> bytes:
    """Return the bytes the BLS leg signs: keccak(abi.encode(authorizer, pubkey, ecdsaSig))."""
    return keccak(
        encode(
            ["address", "uint256[4]", "bytes"],
            [
                element.authorizer,
                [int(c, 16) for c in element.bls_public_key],
                to_bytes(hexstr=element.ecdsa_signature),
            ],
        )
    )


class BlsAuthorizationFlow:
    """Holds at most one BLS keypair and produces BLS signatures and authorization elements."""

    def __init__(
        self,
        dispatcher: SigningDispatcher,
        backend: BlsBackend,
        chain_id: int,
        verify_signatures: bool = True,
    ) -> None:
        self._dispatcher = dispatcher
        self._backend = backend
        self._chain_id = chain_id
        self._verify_signatures = verify_signatures
        self._keypair: BlsKeypair | None = None
        self._lock = threading.Lock()

    @property
    def keypair(self) -> BlsKeypair | None:
        return self._keypair

    @property
    def backend(self) -> BlsBackend:
        return self._backend

    def set_keypair(self, keypair: BlsKeypair) -> None:
        """Set the BLS keypair. Only the unset -> set transition is allowed.

        Raises:
            KeypairAlreadySet: If a keypair is already held

        """
        with self._lock:
            if self._keypair is not None:
                raise KeypairAlreadySet("BLS Keypair already set!")
            self._keypair = keypair
        logger.info(f"BLS keypair set: {keypair.public_key[0][:18]}...")

    def new_keypair(self) -> BlsKeypair:
        """Generate and set a fresh BLS keypair."""
        if self._keypair is not None:
            raise KeypairAlreadySet("BLS Keypair already set!")
        keypair = self._backend.new_keypair()
        self.set_keypair(keypair)
        return keypair

    def _require_keypair(self) -> BlsKeypair:
        keypair = self._keypair
        if keypair is None:
            raise BlsNotInitialized("BLS Keypair is not set")
        return keypair

    def public_key_serialized(self) -> BlsPublicKeySerialized:
        return BlsPublicKeySerialized(list(self._require_keypair().public_key))

    async def sign_bls(self, message: bytes) -> BlsSignatureSerialized:
        """
        Sign message with the held BLS key and verify the result.

        Raises:
            BlsNotInitialized: If no keypair is held
            SigningFailure: If the backend fails or returns malformed output
            VerificationMismatch: If the signature does not verify under the held key
        """
        keypair = self._require_keypair()
        SIGNING_REQUESTS_TOTAL.labels(scheme=SignatureScheme.BLS.value, signer="local").inc()
        start_time = time.perf_counter()

        try:
            signature = await asyncio.to_thread(self._backend.sign, keypair, message)
            if not signature or not all(isinstance(c, str) for c in signature):
                raise ValueError(f"malformed BLS signature: {signature!r}")
            valid = (
                await asyncio.to_thread(
                    self._backend.verify, list(keypair.public_key), message, list(signature)
                )
                if self._verify_signatures
                else True
            )
        except Exception as e:
            SIGNING_ERRORS_TOTAL.labels(error_type="bls_signing_failed").inc()
            raise SigningFailure(f"BLS key {keypair.public_key[0][:18]}...", e) from e

        if not valid:
            SIGNING_ERRORS_TOTAL.labels(error_type="verification_mismatch").inc()
            raise VerificationMismatch(
                keypair.public_key[0],
                "<invalid>",
                message="Internal signer exception: BLS signature does not verify under held public key",
            )

        SIGNING_DURATION_SECONDS.labels(scheme=SignatureScheme.BLS.value).observe(
            time.perf_counter() - start_time
        )
        return BlsSignatureSerialized(list(signature))

    async def sign_typed_data_bls(self, payload: SignableTypedData) -> BlsSignatureSerialized:
        """BLS-sign the EIP-712 digest of payload."""
        return await self.sign_bls(payload.digest())

    async def create_authorization_signature_ecdsa(
        self,
        address: str,
        registrar_address: str,
    ) -> Signature:
        """Sign the approval of the held BLS public key as address (first leg)."""
        approval = ApprovalData.for_public_key(self.public_key_serialized())
        payload = build_approval_data(self._chain_id, registrar_address, approval)
        return await self._dispatcher.sign(address, payload)

    async def create_authorization_signature_bls(
        self,
        element: AuthorizationElement,
    ) -> BlsSignatureSerialized:
        """Sign a (partial) authorization element with the held BLS key (second leg)."""
        return await self.sign_bls(authorization_element_message(element))

    async def create_authorization_element(
        self,
        address: str,
        registrar_address: str,
    ) -> AuthorizationElement:
        """
        Build an authorization element binding address to the held BLS public key.

        Raises:
            BlsNotInitialized: If no keypair is held
            SigningFailure: If either leg fails to sign
            VerificationMismatch: If either leg fails verification
        """
        public_key = self.public_key_serialized()
        ecdsa_signature = await self.create_authorization_signature_ecdsa(
            address, registrar_address
        )
        partial = AuthorizationElement(
            authorizer=ecdsa_signature.signer,
            bls_public_key=list(public_key),
            ecdsa_signature=ecdsa_signature.to_hex(),
            bls_signature=[],
        )
        bls_signature = await self.create_authorization_signature_bls(partial)
        logger.info(f"Created authorization element for {partial.authorizer}")
        return msgspec.structs.replace(partial, bls_signature=list(bls_signature))

    async def is_authorization_issued_to_current_key(self, address: str) -> bool:
        """Whether address has authorized the held BLS key on-chain.

        No issuance state is tracked locally, so this always reports False.
        """
        # TODO: query the BLS registrar contract once a contract-call interface is available
        return False
