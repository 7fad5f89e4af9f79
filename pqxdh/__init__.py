"""
PQXDH: Asynchronous Authenticated Key Agreement

X3DH and its post-quantum hybrid PQXDH for two parties who are never
online at the same time.

Features:
- X3DH: four X25519 exchanges (identity, ephemeral, one-time pre-key,
  signed pre-key) combined into one session secret
- PQXDH: the same four exchanges plus an ML-KEM (or Kyber) encapsulation
- Signed pre-keys and KEM keys, verified before use (Ed25519 or Dilithium3)
- One-time pre-keys tracked on both sides, never silently reused
- Safety numbers for out-of-band identity verification
- ChaCha20-Poly1305 AEAD encryption under the derived key

There is no ratchet: every message derives its key from the same
long-term key material plus one fresh ephemeral key.
"""

from .types import (
    KEY_LEN,
    X25519_PUBLIC_KEY_SIZE,
    X25519_PRIVATE_KEY_SIZE,
    DEFAULT_INFO,
    DEFAULT_PRE_KEY_COUNT,
    DEFAULT_KEM,
    DEFAULT_SIGNATURE_SCHEME,
    DEFAULT_SAFETY_NUMBER_LENGTH,
    KEM_SIZES,
    SIGNATURE_SCHEMES,
    SIG_CONTEXT,
    AgreementConfig,
    KeyPair,
    SignedPreKeyPair,
    SignedPreKey,
    Session,
    HybridSession,
    ClassicalBundle,
    HybridBundle,
    EncryptedMessage,
    bundle_from_dict,
    bundle_from_json,
)
from .crypto import encrypt, decrypt, rand_bytes, dh
from .kdf import combine_secrets, derive_key, generate_safety_number
from .keys import (
    generate_key_pair,
    generate_pre_key,
    generate_signed_pre_key,
    generate_signing_keypair,
    generate_kem_keypair,
    generate_session,
    generate_hybrid_session,
    sign,
    verify,
    verify_bundle,
)
from .handshake import (
    kem_encapsulate,
    kem_decapsulate,
    x3dh_initiate,
    x3dh_respond,
    pqxdh_initiate,
    pqxdh_respond,
)
from .prekeys import PreKeyPool, PreKeyCursor
from .protocol import X3DH, PQXDH
from .error import (
    PqxdhError,
    RandomnessUnavailable,
    MalformedBundle,
    MalformedMessage,
    InvalidSignature,
    PreKeyIndexOutOfRange,
    PreKeyAlreadyConsumed,
    PreKeysExhausted,
    DecapsulationFailure,
    CipherFailure,
    ConfigError,
)

__version__ = "0.1.0"
__all__ = [
    # Constants
    "KEY_LEN",
    "X25519_PUBLIC_KEY_SIZE",
    "X25519_PRIVATE_KEY_SIZE",
    "DEFAULT_INFO",
    "DEFAULT_PRE_KEY_COUNT",
    "DEFAULT_KEM",
    "DEFAULT_SIGNATURE_SCHEME",
    "DEFAULT_SAFETY_NUMBER_LENGTH",
    "KEM_SIZES",
    "SIGNATURE_SCHEMES",
    "SIG_CONTEXT",
    # Types
    "AgreementConfig",
    "KeyPair",
    "SignedPreKeyPair",
    "SignedPreKey",
    "Session",
    "HybridSession",
    "ClassicalBundle",
    "HybridBundle",
    "EncryptedMessage",
    "bundle_from_dict",
    "bundle_from_json",
    # Crypto
    "encrypt",
    "decrypt",
    "rand_bytes",
    "dh",
    # KDF
    "combine_secrets",
    "derive_key",
    "generate_safety_number",
    # Key generation
    "generate_key_pair",
    "generate_pre_key",
    "generate_signed_pre_key",
    "generate_signing_keypair",
    "generate_kem_keypair",
    "generate_session",
    "generate_hybrid_session",
    "sign",
    "verify",
    "verify_bundle",
    # Handshake
    "kem_encapsulate",
    "kem_decapsulate",
    "x3dh_initiate",
    "x3dh_respond",
    "pqxdh_initiate",
    "pqxdh_respond",
    # Pre-keys
    "PreKeyPool",
    "PreKeyCursor",
    # Parties
    "X3DH",
    "PQXDH",
    # Errors
    "PqxdhError",
    "RandomnessUnavailable",
    "MalformedBundle",
    "MalformedMessage",
    "InvalidSignature",
    "PreKeyIndexOutOfRange",
    "PreKeyAlreadyConsumed",
    "PreKeysExhausted",
    "DecapsulationFailure",
    "CipherFailure",
    "ConfigError",
]
