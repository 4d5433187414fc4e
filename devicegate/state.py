"""Persisted SecurityState holder.

One instance per SecurityCore. The state blob is plaintext JSON so it can be
read before anyone has authenticated; it is rewritten whole after every
mutation.
"""

import logging

from pydantic import ValidationError

from devicegate.config import SECURITY_STATE_KEY
from devicegate.models import SecurityState
from devicegate.storage import FileCorruptedError, KeyValueStore, StorageError


logger = logging.getLogger(__name__)


class SecurityStateStore:
    """Owns the in-memory SecurityState and its durable copy."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self.state = SecurityState()

    def load(self) -> SecurityState:
        """Load persisted state, falling back to defaults if absent or corrupt.

        Raises:
            StorageError: If the host store itself can't be read (corrupt
                bytes are treated as absent)
        """
        try:
            raw = self._store.get(SECURITY_STATE_KEY)
        except FileCorruptedError as e:
            logger.warning("Discarding unreadable security state: %s", e)
            raw = None

        if raw:
            try:
                self.state = SecurityState.model_validate_json(raw)
                return self.state
            except ValidationError:
                logger.warning("Failed to parse security state, using defaults")
        self.state = SecurityState()
        return self.state

    def save(self) -> None:
        """Persist the current state.

        A failed write is logged; the in-memory state remains authoritative.
        """
        try:
            self._store.set(SECURITY_STATE_KEY, self.state.model_dump_json())
        except StorageError as e:
            logger.error("Failed to persist security state: %s", e)

    def reset(self) -> SecurityState:
        """Replace the state with defaults (in memory only)."""
        self.state = SecurityState()
        return self.state

    def snapshot(self) -> SecurityState:
        """Return a detached copy safe to hand to callers."""
        return self.state.model_copy()
