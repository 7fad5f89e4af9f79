"""PQXDH error types."""


class PqxdhError(Exception):
    """Base exception for X3DH/PQXDH key agreement errors."""
    pass


class RandomnessUnavailable(PqxdhError):
    """The operating system's secure random source failed."""
    pass


class MalformedBundle(PqxdhError):
    """Peer bundle is missing required fields or carries invalid ones."""
    pass


class MalformedMessage(PqxdhError):
    """Encrypted message is missing required fields or cannot be decoded."""
    pass


class InvalidSignature(PqxdhError):
    """Signature over a published pre-key does not verify."""
    pass


class PreKeyIndexOutOfRange(PqxdhError):
    """Pre-key index does not address an existing local pre-key."""
    pass


class PreKeyAlreadyConsumed(PqxdhError):
    """One-time pre-key was already used by an earlier message."""
    pass


class PreKeysExhausted(PqxdhError):
    """Every one-time pre-key of a peer bundle has been used."""
    pass


class DecapsulationFailure(PqxdhError):
    """KEM decapsulation failed."""
    pass


class CipherFailure(PqxdhError):
    """AEAD decryption failed."""
    pass


class ConfigError(PqxdhError):
    """Configuration error."""
    pass
