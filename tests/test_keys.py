"""Tests for key material generation and pre-key signatures."""

import dataclasses
import os

import pytest
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from pqxdh import (
    AgreementConfig,
    InvalidSignature,
    MalformedBundle,
    RandomnessUnavailable,
    dh,
    generate_hybrid_session,
    generate_kem_keypair,
    generate_key_pair,
    generate_session,
    generate_signed_pre_key,
    generate_signing_keypair,
    sign,
    verify,
    verify_bundle,
)


def test_generate_key_pair():
    """Key pairs are 32-byte X25519 keys with a matching public point."""
    kp = generate_key_pair()
    assert len(kp.public_key) == 32
    assert len(kp.private_key) == 32

    expected = X25519PrivateKey.from_private_bytes(kp.private_key).public_key().public_bytes_raw()
    assert kp.public_key == expected


def test_key_pair_repr_hides_private_key():
    kp = generate_key_pair()
    assert kp.private_key.hex() not in repr(kp)
    assert "private_key" not in repr(kp)


def test_dh_commutative():
    """DH(a, B) == DH(b, A) for generated key pairs."""
    for _ in range(5):
        a = generate_key_pair()
        b = generate_key_pair()
        assert dh(a.private_key, b.public_key) == dh(b.private_key, a.public_key)


def test_dh_rejects_bad_public_key():
    a = generate_key_pair()
    with pytest.raises(MalformedBundle):
        dh(a.private_key, b"\x00" * 31)
    # All-zero point is low order and yields an all-zero secret
    with pytest.raises(MalformedBundle):
        dh(a.private_key, b"\x00" * 32)


def test_randomness_unavailable(monkeypatch):
    """A failing OS random source surfaces as RandomnessUnavailable."""
    def broken_urandom(n):
        raise NotImplementedError("no entropy source")

    monkeypatch.setattr(os, "urandom", broken_urandom)
    with pytest.raises(RandomnessUnavailable):
        generate_key_pair()


@pytest.mark.parametrize("scheme", ["ed25519", "dilithium3"])
def test_sign_verify(scheme):
    signing_key = generate_signing_keypair(scheme)
    data = generate_key_pair().public_key

    signature = sign(scheme, signing_key.private_key, data)
    assert verify(scheme, signing_key.public_key, data, signature)

    other = generate_key_pair().public_key
    assert not verify(scheme, signing_key.public_key, other, signature)


def test_verify_rejects_foreign_signing_key():
    a = generate_signing_keypair("ed25519")
    b = generate_signing_keypair("ed25519")
    data = b"\x01" * 32
    assert not verify("ed25519", b.public_key, data, sign("ed25519", a.private_key, data))


def test_signed_pre_key():
    """Signed pre-key signature verifies against the identity signing key."""
    signing_key = generate_signing_keypair("ed25519")
    spk = generate_signed_pre_key("ed25519", signing_key.private_key)

    assert len(spk.public_key) == 32
    assert len(spk.private_key) == 32
    assert verify("ed25519", signing_key.public_key, spk.public_key, spk.signature)


def test_generate_session():
    config = AgreementConfig.default()
    session = generate_session(config)

    assert len(session.pre_keys) == 10
    assert len({pk.public_key for pk in session.pre_keys}) == 10
    assert session.identity_key.public_key not in {pk.public_key for pk in session.pre_keys}


def test_generate_session_custom_pre_key_count():
    session = generate_session(AgreementConfig(pre_key_count=3))
    assert len(session.pre_keys) == 3
    assert len(session.bundle().pre_keys) == 3


def test_generate_kem_keypair():
    kp = generate_kem_keypair("ML-KEM-1024")
    assert len(kp.public_key) == 1568

    kp = generate_kem_keypair("Kyber768")
    assert len(kp.public_key) == 1184


def test_bundle_is_public_projection():
    session = generate_hybrid_session(AgreementConfig.default())
    bundle = session.bundle()

    assert bundle.identity_key == session.identity_key.public_key
    assert bundle.signing_key == session.signing_key.public_key
    assert list(bundle.pre_keys) == [pk.public_key for pk in session.pre_keys]
    assert bundle.signed_pre_key.public_key == session.signed_pre_key.public_key
    assert bundle.kyber_public_key == session.kyber_key_pair.public_key
    assert bundle.has_kem_key()


def test_verify_bundle_accepts_honest_bundles():
    config = AgreementConfig.default()
    verify_bundle(generate_session(config).bundle(), config.signature_scheme)
    verify_bundle(generate_hybrid_session(config).bundle(), config.signature_scheme)


def test_verify_bundle_rejects_tampered_signed_pre_key():
    config = AgreementConfig.default()
    bundle = generate_session(config).bundle()

    forged = dataclasses.replace(
        bundle,
        signed_pre_key=dataclasses.replace(
            bundle.signed_pre_key, public_key=generate_key_pair().public_key
        ),
    )
    with pytest.raises(InvalidSignature):
        verify_bundle(forged, config.signature_scheme)


def test_verify_bundle_rejects_substituted_signing_key():
    config = AgreementConfig.default()
    bundle = generate_session(config).bundle()
    attacker = generate_signing_keypair(config.signature_scheme)

    forged = dataclasses.replace(bundle, signing_key=attacker.public_key)
    with pytest.raises(InvalidSignature):
        verify_bundle(forged, config.signature_scheme)


def test_verify_bundle_rejects_tampered_kem_key():
    config = AgreementConfig.default()
    bundle = generate_hybrid_session(config).bundle()
    other = generate_kem_keypair(config.kem)

    forged = dataclasses.replace(bundle, kyber_public_key=other.public_key)
    with pytest.raises(InvalidSignature):
        verify_bundle(forged, config.signature_scheme)


def test_verify_bundle_rejects_empty_pre_keys():
    config = AgreementConfig.default()
    bundle = dataclasses.replace(generate_session(config).bundle(), pre_keys=())
    with pytest.raises(MalformedBundle):
        verify_bundle(bundle, config.signature_scheme)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
