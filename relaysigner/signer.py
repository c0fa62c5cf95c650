"""Signing orchestration with mandatory verification by recovery."""

import logging
import time

from eth_utils import to_bytes

from .metrics import SIGNING_DURATION_SECONDS, SIGNING_ERRORS_TOTAL, SIGNING_REQUESTS_TOTAL
from .models import Signature, SignatureScheme
from .remote import RemoteSigner
from .storage import AccountStorage, is_same_address
from .typed_data import SignableTypedData, recover_signer, sign_typed_data
from .types import Address

logger = logging.getLogger(__name__)


class SignerError(Exception):
    """Error during signing operation."""


class SigningFailure(SignerError):
    """The signer raised or returned malformed output."""

    def __init__(self, address: str, cause: object) -> None:
        self.address = address
        self.cause = cause
        super().__init__(f"Failed to sign relayed transaction for {address}: {cause}")


class VerificationMismatch(SignerError):
    """The recovered signer is not the intended signer. Never retriable."""

    def __init__(self, expected: str, recovered: str, message: str | None = None) -> None:
        self.expected = expected
        self.recovered = recovered
        super().__init__(
            message
            or f"Internal signer exception: signature is not correct: "
            f"sender={expected}, recovered={recovered}"
        )


class SigningDispatcher:
    """Produces ECDSA signatures over typed data for a target address.

    Keys held in storage sign locally; any other address is delegated to the
    remote signer. Every signature is checked by recovering its signer before
    it is returned.
    """

    def __init__(self, storage: AccountStorage, remote_signer: RemoteSigner | None = None) -> None:
        self._storage = storage
        self._remote_signer = remote_signer

    @property
    def remote_signer(self) -> RemoteSigner | None:
        return self._remote_signer

    async def sign(self, target_address: str, payload: SignableTypedData) -> Signature:
        """
        Sign payload as target_address.

        Args:
            target_address: Address that must have produced the signature
            payload: Domain-separated typed data

        Returns:
            The verified signature

        Raises:
            SigningFailure: If the signer fails or returns malformed output
            VerificationMismatch: If the recovered address differs from target_address
        """
        keypair = self._storage.find(target_address)
        signer_kind = "local" if keypair is not None else "remote"
        SIGNING_REQUESTS_TOTAL.labels(scheme=SignatureScheme.ECDSA.value, signer=signer_kind).inc()

        start_time = time.perf_counter()
        try:
            if keypair is not None:
                signature = self._sign_with_controlled_key(keypair.private_key, payload)
            else:
                signature = await self._sign_with_remote(target_address, payload)
            # Sanity check only; the verifying contract is authoritative
            recovered = recover_signer(payload, signature)
        except SignerError:
            SIGNING_ERRORS_TOTAL.labels(error_type="signing_failed").inc()
            raise
        except Exception as e:
            SIGNING_ERRORS_TOTAL.labels(error_type="signing_failed").inc()
            raise SigningFailure(target_address, e) from e

        if not is_same_address(target_address, recovered):
            SIGNING_ERRORS_TOTAL.labels(error_type="verification_mismatch").inc()
            logger.error(f"Recovered {recovered} while signing as {target_address}")
            raise VerificationMismatch(target_address, recovered)

        SIGNING_DURATION_SECONDS.labels(scheme=SignatureScheme.ECDSA.value).observe(
            time.perf_counter() - start_time
        )
        logger.debug(f"Signed {payload.primary_type} as {recovered} ({signer_kind})")
        return Signature(scheme=SignatureScheme.ECDSA, value=signature, signer=Address(recovered))

    # Kept as separate methods so the signing strategy can be replaced or spied on.

    def _sign_with_controlled_key(self, private_key: str, payload: SignableTypedData) -> bytes:
        return sign_typed_data(private_key, payload)

    async def _sign_with_remote(self, address: str, payload: SignableTypedData) -> bytes:
        if self._remote_signer is None:
            raise SigningFailure(address, "account is not held locally and no remote signer is configured")
        signature = await self._remote_signer.sign(address, payload.to_json_dict())
        return to_bytes(hexstr=signature)
