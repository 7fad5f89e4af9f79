"""One-time pre-key bookkeeping for both sides of an agreement."""

import hashlib
import logging
import threading
from typing import Dict, Set

from .error import PreKeyAlreadyConsumed, PreKeyIndexOutOfRange, PreKeysExhausted
from .kdf import short_fingerprint
from .types import ClassicalBundle

logger = logging.getLogger(__name__)


class PreKeyPool:
    """Consumed-set over a party's own pre-keys (responder side).

    Indices are tracked per sender identity key, matching the per-bundle
    cursor each initiator keeps. An initiator that loses its cursor state
    starts again at index 0 and is rejected as a replay.
    """

    def __init__(self, size: int):
        self._lock = threading.Lock()
        self._size = size
        self._consumed: Dict[bytes, Set[int]] = {}

    def _check(self, sender: bytes, index: int) -> None:
        if not 0 <= index < self._size:
            raise PreKeyIndexOutOfRange(
                f"Pre-key index {index} out of range (0..{self._size - 1})"
            )
        if index in self._consumed.get(sender, ()):
            raise PreKeyAlreadyConsumed(
                f"Pre-key {index} has already been used by {short_fingerprint(sender)}"
            )

    def check(self, sender: bytes, index: int) -> None:
        """
        Ensure an index addresses a pre-key this sender has not used yet.

        Args:
            sender: Sender's identity public key
            index: Pre-key index from the message

        Raises:
            PreKeyIndexOutOfRange: If the index does not address a local pre-key
            PreKeyAlreadyConsumed: If the sender already used this pre-key
        """
        with self._lock:
            self._check(sender, index)

    def consume(self, sender: bytes, index: int) -> None:
        """Mark a pre-key as used by a sender. Re-checks under the lock."""
        with self._lock:
            self._check(sender, index)
            self._consumed.setdefault(sender, set()).add(index)
            remaining = self._size - len(self._consumed[sender])
        logger.debug(
            "Consumed pre-key %d for %s, %d remaining",
            index,
            short_fingerprint(sender),
            remaining,
        )

    def remaining(self, sender: bytes) -> int:
        """Number of pre-keys a sender has not used yet."""
        with self._lock:
            return self._size - len(self._consumed.get(sender, ()))


class PreKeyCursor:
    """Monotonic per-bundle cursor over a peer's pre-keys (initiator side).

    The first message to a bundle uses index 0, the next index 1, and so on.
    A bundle with different pre-keys gets a fresh cursor.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._next: Dict[bytes, int] = {}

    @staticmethod
    def _bundle_id(bundle: ClassicalBundle) -> bytes:
        h = hashlib.sha256(bundle.identity_key)
        for pk in bundle.pre_keys:
            h.update(pk)
        return h.digest()

    def reserve(self, bundle: ClassicalBundle) -> int:
        """
        Take the next unused pre-key index of a peer bundle.

        Raises:
            PreKeysExhausted: If every pre-key of the bundle has been used
        """
        bundle_id = self._bundle_id(bundle)
        with self._lock:
            index = self._next.get(bundle_id, 0)
            if index >= len(bundle.pre_keys):
                logger.warning(
                    "Pre-keys of bundle %s exhausted",
                    short_fingerprint(bundle.identity_key),
                )
                raise PreKeysExhausted(
                    f"All {len(bundle.pre_keys)} pre-keys of this bundle have been used"
                )
            self._next[bundle_id] = index + 1
        return index
