"""Constants and types for the X3DH/PQXDH key agreement."""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

from .error import ConfigError, MalformedBundle, MalformedMessage


# Key length in bytes (derived cipher key)
KEY_LEN: int = 32

# X25519 key sizes
X25519_PUBLIC_KEY_SIZE: int = 32
X25519_PRIVATE_KEY_SIZE: int = 32

# ChaCha20-Poly1305 framing
NONCE_SIZE: int = 12
TAG_SIZE: int = 16

# Application-context string mixed into the combiner and key derivation
DEFAULT_INFO: bytes = b"PQXDH-Py-v1"

DEFAULT_PRE_KEY_COUNT: int = 10
DEFAULT_SAFETY_NUMBER_LENGTH: int = 12
DEFAULT_KEM: str = "ML-KEM-1024"
DEFAULT_SIGNATURE_SCHEME: str = "ed25519"

# Prefix of every pre-key signature input
SIG_CONTEXT: bytes = b"PQXDH-PreKey-Signature"

# (public key size, ciphertext size) per supported KEM parameter set
KEM_SIZES: Dict[str, Tuple[int, int]] = {
    "ML-KEM-512": (800, 768),
    "ML-KEM-768": (1184, 1088),
    "ML-KEM-1024": (1568, 1568),
    "Kyber512": (800, 768),
    "Kyber768": (1184, 1088),
    "Kyber1024": (1568, 1568),
}

SIGNATURE_SCHEMES: Tuple[str, ...] = ("ed25519", "dilithium3")

# Bundle variant tags
CLASSICAL: str = "x3dh"
HYBRID: str = "pqxdh"


@dataclass
class AgreementConfig:
    """Static configuration shared by both parties of an agreement."""

    info: bytes = DEFAULT_INFO
    pre_key_count: int = DEFAULT_PRE_KEY_COUNT
    kem: str = DEFAULT_KEM
    signature_scheme: str = DEFAULT_SIGNATURE_SCHEME
    safety_number_length: int = DEFAULT_SAFETY_NUMBER_LENGTH

    @classmethod
    def default(cls) -> "AgreementConfig":
        """Return the default configuration."""
        return cls()

    def validate(self) -> None:
        """Validate the configuration, raises ConfigError if invalid."""
        if not isinstance(self.info, bytes) or not self.info:
            raise ConfigError("info must be a non-empty byte string")
        if self.pre_key_count < 1:
            raise ConfigError("pre_key_count must be >= 1")
        if self.kem not in KEM_SIZES:
            raise ConfigError(f"Unsupported KEM parameter set: {self.kem}")
        if self.signature_scheme not in SIGNATURE_SCHEMES:
            raise ConfigError(f"Unsupported signature scheme: {self.signature_scheme}")
        # SHA-512 digest is 88 base64 characters
        if not 1 <= self.safety_number_length <= 88:
            raise ConfigError("safety_number_length must be between 1 and 88")


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: Any, error: Type[Exception], name: str) -> bytes:
    """Decode a standard base64 field, raising ``error`` on bad input."""
    if not isinstance(value, str):
        raise error(f"Field '{name}' must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise error(f"Field '{name}' is not valid base64: {e}")


@dataclass(frozen=True)
class KeyPair:
    """A public/private key pair held as raw bytes."""

    public_key: bytes
    private_key: bytes = field(repr=False)


@dataclass(frozen=True)
class SignedPreKeyPair(KeyPair):
    """Pre-key pair with a signature over its public key by the identity signing key."""

    signature: bytes = b""


@dataclass(frozen=True)
class SignedPreKey:
    """Public half of a signed pre-key as published in a bundle."""

    public_key: bytes
    signature: bytes


@dataclass(frozen=True)
class Session:
    """A party's complete private key material for the classical variant.

    Generated once when the party is created and never modified afterwards.
    """

    identity_key: KeyPair
    signing_key: KeyPair
    pre_keys: Tuple[KeyPair, ...]
    signed_pre_key: SignedPreKeyPair

    def bundle(self) -> "ClassicalBundle":
        """Project the public half of this session into a bundle."""
        return ClassicalBundle(
            identity_key=self.identity_key.public_key,
            signing_key=self.signing_key.public_key,
            pre_keys=tuple(pk.public_key for pk in self.pre_keys),
            signed_pre_key=SignedPreKey(
                public_key=self.signed_pre_key.public_key,
                signature=self.signed_pre_key.signature,
            ),
        )


@dataclass(frozen=True)
class HybridSession(Session):
    """Session material for the hybrid variant, adding a KEM key pair."""

    kyber_key_pair: Optional[KeyPair] = None
    kyber_signature: bytes = b""

    def bundle(self) -> "HybridBundle":
        classical = super().bundle()
        return HybridBundle(
            identity_key=classical.identity_key,
            signing_key=classical.signing_key,
            pre_keys=classical.pre_keys,
            signed_pre_key=classical.signed_pre_key,
            kyber_public_key=self.kyber_key_pair.public_key if self.kyber_key_pair else b"",
            kyber_signature=self.kyber_signature,
        )


@dataclass(frozen=True)
class ClassicalBundle:
    """Published public key material of an X3DH party."""

    variant: ClassVar[str] = CLASSICAL

    identity_key: bytes
    signing_key: bytes
    pre_keys: Tuple[bytes, ...]
    signed_pre_key: SignedPreKey

    def has_identity(self) -> bool:
        return len(self.identity_key) == X25519_PUBLIC_KEY_SIZE

    def has_pre_keys(self) -> bool:
        return len(self.pre_keys) > 0 and all(
            len(pk) == X25519_PUBLIC_KEY_SIZE for pk in self.pre_keys
        )

    def has_signed_pre_key(self) -> bool:
        return (
            len(self.signed_pre_key.public_key) == X25519_PUBLIC_KEY_SIZE
            and len(self.signed_pre_key.signature) > 0
            and len(self.signing_key) > 0
        )

    def has_kem_key(self) -> bool:
        return False

    def validate(self) -> None:
        """
        Check that every field an agreement needs is present.

        Raises:
            MalformedBundle: If a required field is missing or wrongly sized
        """
        if not self.has_identity():
            raise MalformedBundle("Bundle identity key must be a 32-byte X25519 key")
        if not self.has_pre_keys():
            raise MalformedBundle("Bundle must carry at least one 32-byte pre-key")
        if not self.has_signed_pre_key():
            raise MalformedBundle("Bundle signed pre-key is missing or incomplete")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant,
            "identityKey": b64encode(self.identity_key),
            "signingKey": b64encode(self.signing_key),
            "preKeys": [b64encode(pk) for pk in self.pre_keys],
            "signedPreKey": {
                "publicKey": b64encode(self.signed_pre_key.public_key),
                "signature": b64encode(self.signed_pre_key.signature),
            },
        }

    @classmethod
    def _fields_from_dict(cls, d: Dict[str, Any]) -> Dict[str, Any]:
        pre_keys = d.get("preKeys")
        if not isinstance(pre_keys, list):
            raise MalformedBundle("Field 'preKeys' must be a list")
        spk = d.get("signedPreKey")
        if not isinstance(spk, dict):
            raise MalformedBundle("Field 'signedPreKey' must be an object")
        return {
            "identity_key": b64decode(d.get("identityKey"), MalformedBundle, "identityKey"),
            "signing_key": b64decode(d.get("signingKey"), MalformedBundle, "signingKey"),
            "pre_keys": tuple(b64decode(pk, MalformedBundle, "preKeys") for pk in pre_keys),
            "signed_pre_key": SignedPreKey(
                public_key=b64decode(spk.get("publicKey"), MalformedBundle, "signedPreKey.publicKey"),
                signature=b64decode(spk.get("signature"), MalformedBundle, "signedPreKey.signature"),
            ),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ClassicalBundle":
        """Build a bundle of this variant from its wire dictionary."""
        if not isinstance(d, dict):
            raise MalformedBundle("Bundle must be a JSON object")
        if d.get("variant") != cls.variant:
            raise MalformedBundle(f"Expected a '{cls.variant}' bundle, got {d.get('variant')!r}")
        return cls(**cls._fields_from_dict(d))

    def to_json(self) -> bytes:
        """Serialize bundle to JSON bytes."""
        return json.dumps(self.to_dict()).encode()

    @classmethod
    def from_json(cls, data: bytes) -> "ClassicalBundle":
        """Deserialize bundle from JSON bytes."""
        try:
            d = json.loads(data)
        except (ValueError, TypeError) as e:
            raise MalformedBundle(f"Bundle is not valid JSON: {e}")
        return cls.from_dict(d)


@dataclass(frozen=True)
class HybridBundle(ClassicalBundle):
    """Published public key material of a PQXDH party."""

    variant: ClassVar[str] = HYBRID

    kyber_public_key: bytes = b""
    kyber_signature: bytes = b""

    def has_kem_key(self) -> bool:
        return len(self.kyber_public_key) > 0 and len(self.kyber_signature) > 0

    def validate(self) -> None:
        super().validate()
        if not self.has_kem_key():
            raise MalformedBundle("Hybrid bundle is missing its signed KEM public key")

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["kyberPublicKey"] = b64encode(self.kyber_public_key)
        d["kyberSignature"] = b64encode(self.kyber_signature)
        return d

    @classmethod
    def _fields_from_dict(cls, d: Dict[str, Any]) -> Dict[str, Any]:
        fields = super()._fields_from_dict(d)
        fields["kyber_public_key"] = b64decode(d.get("kyberPublicKey"), MalformedBundle, "kyberPublicKey")
        fields["kyber_signature"] = b64decode(d.get("kyberSignature"), MalformedBundle, "kyberSignature")
        return fields


_BUNDLE_VARIANTS: Dict[str, Type[ClassicalBundle]] = {
    CLASSICAL: ClassicalBundle,
    HYBRID: HybridBundle,
}


def bundle_from_dict(d: Dict[str, Any]) -> ClassicalBundle:
    """Decode a bundle of either variant, dispatching on its ``variant`` tag."""
    if not isinstance(d, dict):
        raise MalformedBundle("Bundle must be a JSON object")
    cls = _BUNDLE_VARIANTS.get(d.get("variant"))
    if cls is None:
        raise MalformedBundle(f"Unknown bundle variant: {d.get('variant')!r}")
    return cls.from_dict(d)


def bundle_from_json(data: bytes) -> ClassicalBundle:
    try:
        d = json.loads(data)
    except (ValueError, TypeError) as e:
        raise MalformedBundle(f"Bundle is not valid JSON: {e}")
    return bundle_from_dict(d)


@dataclass(frozen=True)
class EncryptedMessage:
    """Per-message artifact sent from initiator to responder."""

    ciphertext: bytes  # nonce || ChaCha20-Poly1305 ciphertext || tag
    ephemeral_key: bytes  # X25519 ephemeral public key (32 bytes)
    used_pre_key_index: int  # Index into the responder's pre-keys
    kyber_ciphertext: Optional[bytes] = None  # KEM ciphertext (hybrid only)

    def associated_data(self) -> bytes:
        """Header bytes authenticated by the cipher alongside the ciphertext."""
        return (
            self.ephemeral_key
            + self.used_pre_key_index.to_bytes(4, "big")
            + (self.kyber_ciphertext or b"")
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "ciphertext": b64encode(self.ciphertext),
            "ephemeralKey": b64encode(self.ephemeral_key),
            "usedPreKeyIndex": self.used_pre_key_index,
        }
        if self.kyber_ciphertext is not None:
            d["kyberCiphertext"] = b64encode(self.kyber_ciphertext)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EncryptedMessage":
        if not isinstance(d, dict):
            raise MalformedMessage("Message must be a JSON object")
        index = d.get("usedPreKeyIndex")
        if not isinstance(index, int) or isinstance(index, bool):
            raise MalformedMessage("Field 'usedPreKeyIndex' must be an integer")
        kyber_ct = d.get("kyberCiphertext")
        return cls(
            ciphertext=b64decode(d.get("ciphertext"), MalformedMessage, "ciphertext"),
            ephemeral_key=b64decode(d.get("ephemeralKey"), MalformedMessage, "ephemeralKey"),
            used_pre_key_index=index,
            kyber_ciphertext=(
                None if kyber_ct is None
                else b64decode(kyber_ct, MalformedMessage, "kyberCiphertext")
            ),
        )

    def to_json(self) -> bytes:
        """Serialize message to JSON bytes."""
        return json.dumps(self.to_dict()).encode()

    @classmethod
    def from_json(cls, data: bytes) -> "EncryptedMessage":
        """Deserialize message from JSON bytes."""
        try:
            d = json.loads(data)
        except (ValueError, TypeError) as e:
            raise MalformedMessage(f"Message is not valid JSON: {e}")
        return cls.from_dict(d)
