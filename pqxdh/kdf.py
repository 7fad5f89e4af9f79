"""Secret combination, cipher-key derivation and safety numbers (SHA-512)."""

import base64
import hashlib
from typing import Sequence

from .types import DEFAULT_SAFETY_NUMBER_LENGTH, KEY_LEN


def combine_secrets(secrets: Sequence[bytes], info: bytes) -> bytes:
    """
    Reduce an ordered list of raw shared secrets to one session secret.

    secret = SHA-512(s_1 || s_2 || ... || s_n || info)

    Args:
        secrets: Raw secrets in protocol order (DH1..DH4, then the KEM secret)
        info: Application-context string

    Returns:
        64-byte session secret
    """
    if not secrets:
        raise ValueError("At least one secret is required")
    h = hashlib.sha512()
    for secret in secrets:
        h.update(secret)
    h.update(info)
    return h.digest()


def derive_key(secret: bytes, info: bytes, length: int = KEY_LEN) -> bytes:
    """
    Derive the symmetric cipher key from a session secret.

    key = SHA-512(secret || info)[:length]
    """
    if not 1 <= length <= hashlib.sha512().digest_size:
        raise ValueError(f"Key length must be between 1 and 64, got {length}")
    return hashlib.sha512(secret + info).digest()[:length]


def generate_safety_number(
    key1: bytes,
    key2: bytes,
    length: int = DEFAULT_SAFETY_NUMBER_LENGTH,
) -> str:
    """
    Fingerprint two identity public keys for out-of-band comparison.

    The keys are ordered byte-wise first, so both parties get the same value
    whichever of them is passed first.

    Args:
        key1: An identity public key
        key2: The other identity public key
        length: Number of base64 characters to keep

    Returns:
        Prefix of base64(SHA-512(min(key1, key2) || max(key1, key2)))
    """
    first, second = (key1, key2) if key1 <= key2 else (key2, key1)
    digest = hashlib.sha512(first + second).digest()
    return base64.b64encode(digest).decode("ascii")[:length]


def short_fingerprint(public_key: bytes) -> str:
    """Short hex label for a public key, safe to put in log records."""
    return hashlib.sha256(public_key).hexdigest()[:8]
