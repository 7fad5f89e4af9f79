"""Parties of the X3DH and PQXDH agreements."""

import dataclasses
import logging
from typing import List, Optional, Tuple, Union

from .crypto import decrypt, encrypt
from .error import CipherFailure, ConfigError, MalformedBundle, MalformedMessage
from .handshake import pqxdh_initiate, pqxdh_respond, x3dh_initiate, x3dh_respond
from .kdf import combine_secrets, derive_key, generate_safety_number, short_fingerprint
from .keys import generate_hybrid_session, generate_session, verify_bundle
from .prekeys import PreKeyCursor, PreKeyPool
from .types import (
    CLASSICAL,
    HYBRID,
    AgreementConfig,
    ClassicalBundle,
    EncryptedMessage,
    HybridBundle,
    HybridSession,
    Session,
)

logger = logging.getLogger(__name__)


class X3DH:
    """
    A party in the classical X3DH agreement.

    Holds the party's key material for its whole lifetime. Messages are not
    ratcheted: every message derives its key from the same long-term
    material plus one fresh ephemeral key and one one-time pre-key.
    """

    bundle_variant = CLASSICAL

    def __init__(self, session: Session, config: Optional[AgreementConfig] = None):
        """
        Wrap existing key material.

        Args:
            session: The party's key material
            config: Agreement configuration; must match the peer's
        """
        self._config = config or AgreementConfig.default()
        self._config.validate()
        self._session = session
        self._pool = PreKeyPool(len(session.pre_keys))
        self._cursor = PreKeyCursor()

    @classmethod
    def create(cls, config: Optional[AgreementConfig] = None) -> "X3DH":
        """Generate fresh key material and return a new party."""
        config = config or AgreementConfig.default()
        config.validate()
        return cls(cls._generate_session(config), config)

    @staticmethod
    def _generate_session(config: AgreementConfig) -> Session:
        return generate_session(config)

    @property
    def config(self) -> AgreementConfig:
        return self._config

    @property
    def session(self) -> Session:
        return self._session

    @property
    def identity_key(self) -> bytes:
        """Our identity public key."""
        return self._session.identity_key.public_key

    def get_public_bundle(self) -> ClassicalBundle:
        """Return a publishable snapshot of our public key material."""
        return self._session.bundle()

    def remaining_pre_keys(self, sender_bundle: ClassicalBundle) -> int:
        """Number of our one-time pre-keys a sender has not used yet."""
        return self._pool.remaining(sender_bundle.identity_key)

    def safety_number(self, peer_bundle: ClassicalBundle) -> str:
        """Safety number between our identity key and a peer's."""
        return generate_safety_number(
            self.identity_key,
            peer_bundle.identity_key,
            self._config.safety_number_length,
        )

    def _check_peer_bundle(self, bundle: ClassicalBundle) -> None:
        if not isinstance(bundle, ClassicalBundle) or bundle.variant != self.bundle_variant:
            raise MalformedBundle(
                f"{type(self).__name__} requires a '{self.bundle_variant}' bundle"
            )
        verify_bundle(bundle, self._config.signature_scheme)

    def _initiate(
        self, bundle: ClassicalBundle, index: int
    ) -> Tuple[List[bytes], bytes, Optional[bytes]]:
        secrets, ephemeral_key = x3dh_initiate(self._session.identity_key, bundle, index)
        return secrets, ephemeral_key, None

    def _respond(self, peer_identity_key: bytes, message: EncryptedMessage) -> List[bytes]:
        if message.kyber_ciphertext is not None:
            raise MalformedMessage("Classical message must not carry a KEM ciphertext")
        return x3dh_respond(
            self._session,
            peer_identity_key,
            message.ephemeral_key,
            message.used_pre_key_index,
        )

    def _cipher_key(self, secrets: List[bytes]) -> bytes:
        session_secret = combine_secrets(secrets, self._config.info)
        return derive_key(session_secret, self._config.info)

    def encrypt_message(
        self, recipient_bundle: ClassicalBundle, message: Union[str, bytes]
    ) -> EncryptedMessage:
        """
        Agree on a key with the recipient's bundle and encrypt a message.

        The recipient's signatures are verified before any of its keys are
        used, and the next unused pre-key of the bundle is selected.

        Args:
            recipient_bundle: Recipient's published bundle
            message: Plaintext; str is UTF-8 encoded

        Returns:
            EncryptedMessage to send to the recipient

        Raises:
            MalformedBundle: If the bundle is incomplete or of the wrong variant
            InvalidSignature: If the bundle's signatures do not verify
            PreKeysExhausted: If every pre-key of the bundle has been used
        """
        if isinstance(message, str):
            message = message.encode("utf-8")

        self._check_peer_bundle(recipient_bundle)
        index = self._cursor.reserve(recipient_bundle)

        secrets, ephemeral_key, kyber_ct = self._initiate(recipient_bundle, index)
        key = self._cipher_key(secrets)

        header = EncryptedMessage(
            ciphertext=b"",
            ephemeral_key=ephemeral_key,
            used_pre_key_index=index,
            kyber_ciphertext=kyber_ct,
        )
        ct = encrypt(key, header.associated_data(), message)
        logger.debug(
            "Encrypted %d bytes to %s with pre-key %d",
            len(message),
            short_fingerprint(recipient_bundle.identity_key),
            index,
        )
        return dataclasses.replace(header, ciphertext=ct)

    def decrypt_message(
        self, sender_bundle: ClassicalBundle, message: EncryptedMessage
    ) -> bytes:
        """
        Recompute the agreement from our side and decrypt a message.

        The pre-key the message used is marked consumed only once the message
        has decrypted successfully.

        Args:
            sender_bundle: Sender's published bundle (its identity key is used)
            message: Message produced by the sender's encrypt_message

        Returns:
            Decrypted plaintext

        Raises:
            MalformedBundle: If the sender bundle has no usable identity key
            MalformedMessage: If the message is structurally invalid
            PreKeyIndexOutOfRange: If the pre-key index does not exist locally
            PreKeyAlreadyConsumed: If this sender already used the pre-key
            DecapsulationFailure: If the KEM ciphertext is malformed (hybrid)
            CipherFailure: If authentication fails
        """
        if not sender_bundle.has_identity():
            raise MalformedBundle("Sender bundle identity key must be a 32-byte X25519 key")

        index = message.used_pre_key_index
        self._pool.check(sender_bundle.identity_key, index)

        secrets = self._respond(sender_bundle.identity_key, message)
        key = self._cipher_key(secrets)

        try:
            pt = decrypt(key, message.associated_data(), message.ciphertext)
        except CipherFailure:
            logger.warning(
                "Failed to decrypt message from %s (pre-key %d)",
                short_fingerprint(sender_bundle.identity_key),
                index,
            )
            raise

        self._pool.consume(sender_bundle.identity_key, index)
        return pt


class PQXDH(X3DH):
    """
    A party in the hybrid PQXDH agreement.

    Same flow as X3DH with a KEM encapsulation appended as the fifth secret.
    """

    bundle_variant = HYBRID

    def __init__(self, session: HybridSession, config: Optional[AgreementConfig] = None):
        if not isinstance(session, HybridSession) or session.kyber_key_pair is None:
            raise ConfigError("PQXDH requires a HybridSession with a KEM key pair")
        super().__init__(session, config)

    @staticmethod
    def _generate_session(config: AgreementConfig) -> HybridSession:
        return generate_hybrid_session(config)

    def get_public_bundle(self) -> HybridBundle:
        return self._session.bundle()

    def _initiate(
        self, bundle: HybridBundle, index: int
    ) -> Tuple[List[bytes], bytes, Optional[bytes]]:
        return pqxdh_initiate(self._session.identity_key, bundle, index, self._config.kem)

    def _respond(self, peer_identity_key: bytes, message: EncryptedMessage) -> List[bytes]:
        return pqxdh_respond(
            self._session,
            peer_identity_key,
            message.ephemeral_key,
            message.used_pre_key_index,
            message.kyber_ciphertext,
            self._config.kem,
        )
