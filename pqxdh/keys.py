"""Key material generation: X25519 pairs, signed pre-keys, KEM and signing keys."""

import logging

from cryptography.exceptions import InvalidSignature as _Ed25519InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from dilithium_py.dilithium import Dilithium3
from kyber_py.kyber import Kyber512, Kyber768, Kyber1024
from kyber_py.ml_kem import ML_KEM_512, ML_KEM_768, ML_KEM_1024

from .crypto import rand_bytes, x25519_keypair
from .error import ConfigError, InvalidSignature
from .kdf import short_fingerprint
from .types import (
    SIG_CONTEXT,
    AgreementConfig,
    ClassicalBundle,
    HybridBundle,
    HybridSession,
    KeyPair,
    Session,
    SignedPreKeyPair,
)

logger = logging.getLogger(__name__)

KEM_PARAMETER_SETS = {
    "ML-KEM-512": ML_KEM_512,
    "ML-KEM-768": ML_KEM_768,
    "ML-KEM-1024": ML_KEM_1024,
    "Kyber512": Kyber512,
    "Kyber768": Kyber768,
    "Kyber1024": Kyber1024,
}


def get_kem(name: str):
    """Return the kyber_py implementation for a KEM parameter set name."""
    try:
        return KEM_PARAMETER_SETS[name]
    except KeyError:
        raise ConfigError(f"Unsupported KEM parameter set: {name}")


def generate_key_pair() -> KeyPair:
    """Generate an X25519 key pair from 32 random bytes."""
    public_key, private_key = x25519_keypair()
    return KeyPair(public_key=public_key, private_key=private_key)


def generate_pre_key() -> KeyPair:
    """Generate a one-time pre-key; identical to an ordinary key pair."""
    return generate_key_pair()


def generate_signing_keypair(scheme: str) -> KeyPair:
    """
    Generate an identity signing key pair.

    Args:
        scheme: "ed25519" or "dilithium3"

    Returns:
        KeyPair holding raw public and private key bytes
    """
    if scheme == "ed25519":
        private_key = Ed25519PrivateKey.from_private_bytes(rand_bytes(32))
        return KeyPair(
            public_key=private_key.public_key().public_bytes_raw(),
            private_key=private_key.private_bytes_raw(),
        )
    if scheme == "dilithium3":
        public_key, private_key = Dilithium3.keygen()
        return KeyPair(public_key=public_key, private_key=private_key)
    raise ConfigError(f"Unsupported signature scheme: {scheme}")


def sign(scheme: str, private_key: bytes, data: bytes) -> bytes:
    """Sign SIG_CONTEXT || data with an identity signing key."""
    to_sign = SIG_CONTEXT + data
    if scheme == "ed25519":
        return Ed25519PrivateKey.from_private_bytes(private_key).sign(to_sign)
    if scheme == "dilithium3":
        return Dilithium3.sign(private_key, to_sign)
    raise ConfigError(f"Unsupported signature scheme: {scheme}")


def verify(scheme: str, public_key: bytes, data: bytes, signature: bytes) -> bool:
    """
    Verify a signature produced by :func:`sign`.

    Returns:
        True if the signature is valid, False otherwise
    """
    to_verify = SIG_CONTEXT + data
    if scheme == "ed25519":
        try:
            Ed25519PublicKey.from_public_bytes(public_key).verify(signature, to_verify)
            return True
        except (_Ed25519InvalidSignature, ValueError):
            return False
    if scheme == "dilithium3":
        try:
            return bool(Dilithium3.verify(public_key, to_verify, signature))
        except (ValueError, IndexError):
            return False
    raise ConfigError(f"Unsupported signature scheme: {scheme}")


def generate_signed_pre_key(scheme: str, signing_private_key: bytes) -> SignedPreKeyPair:
    """
    Generate a pre-key pair and sign its public key with the identity signing key.

    Args:
        scheme: Signature scheme of the identity signing key
        signing_private_key: Identity signing private key

    Returns:
        SignedPreKeyPair
    """
    key_pair = generate_key_pair()
    signature = sign(scheme, signing_private_key, key_pair.public_key)
    return SignedPreKeyPair(
        public_key=key_pair.public_key,
        private_key=key_pair.private_key,
        signature=signature,
    )


def generate_kem_keypair(kem: str) -> KeyPair:
    """
    Generate a KEM key pair for the given parameter set.

    Returns:
        KeyPair of (encapsulation key, decapsulation key)
    """
    public_key, private_key = get_kem(kem).keygen()
    return KeyPair(public_key=public_key, private_key=private_key)


def generate_session(config: AgreementConfig) -> Session:
    """Generate the full key material of a classical party."""
    identity_key = generate_key_pair()
    signing_key = generate_signing_keypair(config.signature_scheme)
    pre_keys = tuple(generate_pre_key() for _ in range(config.pre_key_count))
    signed_pre_key = generate_signed_pre_key(config.signature_scheme, signing_key.private_key)
    logger.debug(
        "Generated session %s with %d pre-keys",
        short_fingerprint(identity_key.public_key),
        len(pre_keys),
    )
    return Session(
        identity_key=identity_key,
        signing_key=signing_key,
        pre_keys=pre_keys,
        signed_pre_key=signed_pre_key,
    )


def generate_hybrid_session(config: AgreementConfig) -> HybridSession:
    """Generate the full key material of a hybrid party, including its KEM key pair."""
    classical = generate_session(config)
    kyber_key_pair = generate_kem_keypair(config.kem)
    kyber_signature = sign(
        config.signature_scheme,
        classical.signing_key.private_key,
        kyber_key_pair.public_key,
    )
    logger.debug("Generated %s key pair", config.kem)
    return HybridSession(
        identity_key=classical.identity_key,
        signing_key=classical.signing_key,
        pre_keys=classical.pre_keys,
        signed_pre_key=classical.signed_pre_key,
        kyber_key_pair=kyber_key_pair,
        kyber_signature=kyber_signature,
    )


def verify_bundle(bundle: ClassicalBundle, scheme: str) -> None:
    """
    Check the signatures a bundle carries before any of its keys are used.

    Args:
        bundle: Peer bundle (classical or hybrid)
        scheme: Signature scheme the peer signs with

    Raises:
        MalformedBundle: If required fields are missing
        InvalidSignature: If the signed pre-key or KEM key signature is invalid
    """
    bundle.validate()
    if not verify(
        scheme,
        bundle.signing_key,
        bundle.signed_pre_key.public_key,
        bundle.signed_pre_key.signature,
    ):
        logger.warning(
            "Rejected bundle %s: bad signed pre-key signature",
            short_fingerprint(bundle.identity_key),
        )
        raise InvalidSignature("Signed pre-key signature verification failed")

    if isinstance(bundle, HybridBundle) and not verify(
        scheme, bundle.signing_key, bundle.kyber_public_key, bundle.kyber_signature
    ):
        logger.warning(
            "Rejected bundle %s: bad KEM key signature",
            short_fingerprint(bundle.identity_key),
        )
        raise InvalidSignature("KEM public key signature verification failed")
