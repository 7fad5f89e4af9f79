"""Ordered DH and KEM computations for X3DH and PQXDH.

Both sides must produce the same list, in the same order:

    DH1 = DH(IK_A, IK_B)
    DH2 = DH(EK_A, IK_B)
    DH3 = DH(EK_A, OPK_B[i])
    DH4 = DH(EK_A, SPK_B)
    SS  = KEM.Decaps(CT, PQPK_B)      (PQXDH only)

where A is the initiator and B the responder. The responder computes the
same values with the operands mirrored.
"""

import logging
from typing import List, Optional, Tuple

from .crypto import dh
from .error import DecapsulationFailure, MalformedBundle, MalformedMessage, PreKeyIndexOutOfRange
from .keys import generate_key_pair, get_kem
from .types import (
    KEM_SIZES,
    X25519_PUBLIC_KEY_SIZE,
    ClassicalBundle,
    HybridBundle,
    HybridSession,
    KeyPair,
    Session,
)

logger = logging.getLogger(__name__)


def kem_encapsulate(kem: str, public_key: bytes) -> Tuple[bytes, bytes]:
    """
    Encapsulate to a peer's KEM public key.

    Args:
        kem: KEM parameter set name
        public_key: Peer's KEM public key

    Returns:
        Tuple of (ciphertext, shared_secret)

    Raises:
        MalformedBundle: If the public key has the wrong size or is rejected
    """
    pk_size, _ = KEM_SIZES[kem]
    if len(public_key) != pk_size:
        raise MalformedBundle(
            f"{kem} public key must be {pk_size} bytes, got {len(public_key)}"
        )
    try:
        shared_secret, ciphertext = get_kem(kem).encaps(public_key)
    except ValueError as e:
        raise MalformedBundle(f"{kem} public key rejected: {e}")
    return ciphertext, shared_secret


def kem_decapsulate(kem: str, private_key: bytes, ciphertext: bytes) -> bytes:
    """
    Decapsulate a KEM ciphertext with our private key.

    A tampered ciphertext of the right size decapsulates to an unrelated
    pseudorandom secret (implicit rejection); the cipher then fails to
    authenticate.

    Raises:
        DecapsulationFailure: If the ciphertext is malformed or rejected
    """
    _, ct_size = KEM_SIZES[kem]
    if len(ciphertext) != ct_size:
        raise DecapsulationFailure(
            f"{kem} ciphertext must be {ct_size} bytes, got {len(ciphertext)}"
        )
    try:
        return get_kem(kem).decaps(private_key, ciphertext)
    except ValueError as e:
        raise DecapsulationFailure(f"{kem} decapsulation failed: {e}")


def x3dh_initiate(
    identity_key: KeyPair,
    bundle: ClassicalBundle,
    pre_key_index: int,
) -> Tuple[List[bytes], bytes]:
    """
    Initiator side: compute DH1..DH4 against a peer bundle.

    The caller must have verified the bundle's signatures first.

    Args:
        identity_key: Our identity key pair
        bundle: Peer's bundle
        pre_key_index: Which of the peer's pre-keys to use

    Returns:
        Tuple of ([dh1, dh2, dh3, dh4], ephemeral_public_key)
    """
    if not 0 <= pre_key_index < len(bundle.pre_keys):
        raise PreKeyIndexOutOfRange(
            f"Bundle has no pre-key at index {pre_key_index}"
        )

    # Single-use ephemeral key; the private half is dropped on return
    ephemeral = generate_key_pair()

    dh1 = dh(identity_key.private_key, bundle.identity_key)
    dh2 = dh(ephemeral.private_key, bundle.identity_key)
    dh3 = dh(ephemeral.private_key, bundle.pre_keys[pre_key_index])
    dh4 = dh(ephemeral.private_key, bundle.signed_pre_key.public_key)

    return [dh1, dh2, dh3, dh4], ephemeral.public_key


def x3dh_respond(
    session: Session,
    peer_identity_key: bytes,
    ephemeral_key: bytes,
    pre_key_index: int,
) -> List[bytes]:
    """
    Responder side: recompute DH1..DH4 with the operands mirrored.

    Args:
        session: Our key material
        peer_identity_key: Initiator's identity public key
        ephemeral_key: Initiator's ephemeral public key from the message
        pre_key_index: Index of our pre-key the initiator used

    Returns:
        [dh1, dh2, dh3, dh4], byte-equal to the initiator's list
    """
    if len(ephemeral_key) != X25519_PUBLIC_KEY_SIZE:
        raise MalformedMessage(
            f"Ephemeral key must be {X25519_PUBLIC_KEY_SIZE} bytes, got {len(ephemeral_key)}"
        )
    if not 0 <= pre_key_index < len(session.pre_keys):
        raise PreKeyIndexOutOfRange(
            f"Pre-key index {pre_key_index} out of range (0..{len(session.pre_keys) - 1})"
        )

    dh1 = dh(session.identity_key.private_key, peer_identity_key)
    try:
        dh2 = dh(session.identity_key.private_key, ephemeral_key)
        dh3 = dh(session.pre_keys[pre_key_index].private_key, ephemeral_key)
        dh4 = dh(session.signed_pre_key.private_key, ephemeral_key)
    except MalformedBundle as e:
        raise MalformedMessage(f"Invalid ephemeral key: {e}")

    return [dh1, dh2, dh3, dh4]


def pqxdh_initiate(
    identity_key: KeyPair,
    bundle: HybridBundle,
    pre_key_index: int,
    kem: str,
) -> Tuple[List[bytes], bytes, bytes]:
    """
    Initiator side of PQXDH: DH1..DH4 followed by a KEM encapsulation.

    Returns:
        Tuple of ([dh1, dh2, dh3, dh4, kem_secret], ephemeral_public_key, kem_ciphertext)
    """
    secrets, ephemeral_public = x3dh_initiate(identity_key, bundle, pre_key_index)
    ciphertext, kem_secret = kem_encapsulate(kem, bundle.kyber_public_key)
    logger.debug("Encapsulated %s secret (%d-byte ciphertext)", kem, len(ciphertext))
    return secrets + [kem_secret], ephemeral_public, ciphertext


def pqxdh_respond(
    session: HybridSession,
    peer_identity_key: bytes,
    ephemeral_key: bytes,
    pre_key_index: int,
    kyber_ciphertext: Optional[bytes],
    kem: str,
) -> List[bytes]:
    """
    Responder side of PQXDH: mirrored DH1..DH4 followed by KEM decapsulation.

    Returns:
        [dh1, dh2, dh3, dh4, kem_secret]
    """
    if not kyber_ciphertext:
        raise MalformedMessage("Hybrid message is missing its KEM ciphertext")
    secrets = x3dh_respond(session, peer_identity_key, ephemeral_key, pre_key_index)
    kem_secret = kem_decapsulate(kem, session.kyber_key_pair.private_key, kyber_ciphertext)
    return secrets + [kem_secret]
