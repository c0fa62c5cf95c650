"""Tests for the alt_bn128 BLS backend."""

import pytest
from py_ecc.optimized_bn128 import b, curve_order, field_modulus, is_on_curve

from relaysigner.bls import (
    Bn128BlsBackend,
    deserialize_public_key,
    deserialize_signature,
    hash_to_g1,
)
from relaysigner.signing_types import ExternalBlsKeypair


@pytest.fixture(scope="module")
def backend() -> Bn128BlsBackend:
    return Bn128BlsBackend()


class TestHashToG1:
    def test_point_is_on_curve(self) -> None:
        """Test hashed points lie on the curve."""
        point = hash_to_g1(b"relay request")
        assert is_on_curve(point, b)

    def test_deterministic_and_message_bound(self) -> None:
        """Test hashing is deterministic and message dependent."""
        assert hash_to_g1(b"a") == hash_to_g1(b"a")
        assert hash_to_g1(b"a") != hash_to_g1(b"b")


class TestKeypairs:
    """Tests for keypair generation and import."""

    def test_new_keypair(self, backend: Bn128BlsBackend) -> None:
        """Test random keypair generation."""
        keypair = backend.new_keypair()

        assert 0 < keypair.secret_key < curve_order
        assert len(keypair.public_key) == 4
        assert all(c.startswith("0x") for c in keypair.public_key)
        # Parses as a valid G2 point
        deserialize_public_key(keypair.public_key)

    def test_secret_key_hidden_from_repr(self, backend: Bn128BlsBackend) -> None:
        """Test the secret key never appears in repr."""
        keypair = backend.new_keypair()
        assert str(keypair.secret_key) not in repr(keypair)
        assert hex(keypair.secret_key) not in repr(keypair)

    def test_keypair_from_external(self, backend: Bn128BlsBackend) -> None:
        """Test importing an external keypair."""
        original = backend.new_keypair()

        restored = backend.keypair_from_external(
            ExternalBlsKeypair(secret_key=hex(original.secret_key))
        )
        assert restored == original

        checked = backend.keypair_from_external(
            ExternalBlsKeypair(secret_key=hex(original.secret_key), public_key=list(original.public_key))
        )
        assert checked.public_key == original.public_key

    def test_keypair_from_external_mismatched_public_key(self, backend: Bn128BlsBackend) -> None:
        """Test an external public key must match its secret key."""
        first = backend.new_keypair()
        second = backend.new_keypair()

        with pytest.raises(ValueError, match="does not match"):
            backend.keypair_from_external(
                ExternalBlsKeypair(secret_key=hex(first.secret_key), public_key=list(second.public_key))
            )

    @pytest.mark.parametrize("secret", ["0x0", hex(curve_order)], ids=["zero", "order"])
    def test_secret_key_out_of_range(self, backend: Bn128BlsBackend, secret: str) -> None:
        """Test secret keys outside the scalar field are rejected."""
        with pytest.raises(ValueError, match="out of range"):
            backend.keypair_from_external(ExternalBlsKeypair(secret_key=secret))


class TestSignVerify:
    """Pairing-based sign/verify round trip."""

    def test_sign_and_verify(self, backend: Bn128BlsBackend) -> None:
        """Test signing and pairing verification."""
        keypair = backend.new_keypair()
        message = b"\x01" * 32

        signature = backend.sign(keypair, message)

        assert len(signature) == 2
        assert backend.verify(keypair.public_key, message, signature) is True
        assert backend.verify(keypair.public_key, b"\x02" * 32, signature) is False

    def test_signing_is_deterministic(self, backend: Bn128BlsBackend) -> None:
        """Test BLS signing is deterministic."""
        keypair = backend.new_keypair()
        assert backend.sign(keypair, b"m") == backend.sign(keypair, b"m")

    def test_signature_is_on_curve(self, backend: Bn128BlsBackend) -> None:
        """Test signatures deserialize as curve points."""
        keypair = backend.new_keypair()
        deserialize_signature(backend.sign(keypair, b"m"))

    @pytest.mark.parametrize(
        "public_key,signature",
        [
            (["0x1", "0x2", "0x3"], ["0x1", "0x2"]),
            (["0x1", "0x2", "0x3", "0x4"], ["0x1", "0x2"]),
            (None, ["0x1", "0x3"]),
            (None, [hex(field_modulus), "0x2"]),
            (None, ["0x1"]),
        ],
        ids=["short_key", "key_off_curve", "signature_off_curve", "out_of_field", "short_signature"],
    )
    def test_malformed_inputs_do_not_verify(
        self,
        backend: Bn128BlsBackend,
        public_key: list[str] | None,
        signature: list[str],
    ) -> None:
        """Test malformed keys and signatures verify as False."""
        if public_key is None:
            public_key = list(backend.new_keypair().public_key)
        assert backend.verify(public_key, b"m", signature) is False

