"""Primitive operations: secure randomness, X25519 and ChaCha20-Poly1305."""

import os
from typing import Tuple

from Crypto.Cipher import ChaCha20_Poly1305
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from .types import KEY_LEN, NONCE_SIZE, TAG_SIZE, X25519_PRIVATE_KEY_SIZE
from .error import CipherFailure, MalformedBundle, RandomnessUnavailable


def rand_bytes(n: int) -> bytes:
    """
    Generate n random bytes using OS-provided secure random.

    Raises:
        RandomnessUnavailable: If the OS random source cannot be used
    """
    try:
        return os.urandom(n)
    except (NotImplementedError, OSError) as e:
        raise RandomnessUnavailable(f"Secure random source unavailable: {e}")


def x25519_public_from_private(private_key: bytes) -> bytes:
    """Derive the X25519 public point for a 32-byte private scalar."""
    return X25519PrivateKey.from_private_bytes(private_key).public_key().public_bytes_raw()


def x25519_keypair() -> Tuple[bytes, bytes]:
    """
    Generate a new X25519 key pair from 32 fresh random bytes.

    Returns:
        Tuple of (public_key, private_key)
    """
    private_key = rand_bytes(X25519_PRIVATE_KEY_SIZE)
    return x25519_public_from_private(private_key), private_key


def dh(our_priv: bytes, peer_pub: bytes) -> bytes:
    """
    Compute an X25519 shared secret.

    Args:
        our_priv: Our X25519 private key (32 bytes)
        peer_pub: Peer's X25519 public key (32 bytes)

    Returns:
        Shared secret (32 bytes)

    Raises:
        MalformedBundle: If the peer key is not a usable X25519 point
    """
    try:
        public_key = X25519PublicKey.from_public_bytes(peer_pub)
        return X25519PrivateKey.from_private_bytes(our_priv).exchange(public_key)
    except ValueError as e:
        # exchange() rejects low-order points that yield an all-zero secret
        raise MalformedBundle(f"Invalid X25519 public key: {e}")


def encrypt(key: bytes, ad: bytes, pt: bytes) -> bytes:
    """
    Encrypt plaintext using ChaCha20-Poly1305 under a fresh random nonce.

    Args:
        key: Cipher key (32 bytes)
        ad: Associated data
        pt: Plaintext

    Returns:
        nonce || ciphertext || tag
    """
    if len(key) != KEY_LEN:
        raise ValueError(f"Cipher key must be {KEY_LEN} bytes, got {len(key)}")
    nonce = rand_bytes(NONCE_SIZE)
    cipher = ChaCha20_Poly1305.new(key=key, nonce=nonce)
    cipher.update(ad)
    ciphertext, tag = cipher.encrypt_and_digest(pt)
    return nonce + ciphertext + tag


def decrypt(key: bytes, ad: bytes, ct: bytes) -> bytes:
    """
    Decrypt and authenticate nonce || ciphertext || tag.

    Raises:
        CipherFailure: If decryption or authentication fails
    """
    if len(ct) < NONCE_SIZE + TAG_SIZE:
        raise CipherFailure("Ciphertext too short")

    nonce = ct[:NONCE_SIZE]
    ciphertext = ct[NONCE_SIZE:-TAG_SIZE]
    tag = ct[-TAG_SIZE:]

    cipher = ChaCha20_Poly1305.new(key=key, nonce=nonce)
    cipher.update(ad)

    try:
        return cipher.decrypt_and_verify(ciphertext, tag)
    except ValueError as e:
        raise CipherFailure(f"Decryption failed: {e}")
