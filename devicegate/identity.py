"""Per-device random identifier.

The identifier is an input to key derivation, so it lives outside the
encrypted domain in plaintext. Once created it must not change while any
ciphertext exists under it.
"""

import logging
import secrets
from typing import Optional

from devicegate.config import DEVICE_ID_BYTES, DEVICE_ID_KEY
from devicegate.storage import KeyValueStore, StorageError, StorageUnavailableError


logger = logging.getLogger(__name__)


class DeviceIdentity:
    """Lazily created, persisted device identifier."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._device_id: Optional[str] = None

    def get_or_create(self) -> str:
        """Return the device identifier, generating and persisting it once.

        Returns:
            Hex identifier string

        Raises:
            StorageUnavailableError: If the host store can't be read or written
        """
        if self._device_id is not None:
            return self._device_id

        try:
            device_id = self._store.get(DEVICE_ID_KEY)
            if not device_id:
                device_id = secrets.token_hex(DEVICE_ID_BYTES)
                self._store.set(DEVICE_ID_KEY, device_id)
                logger.info("Generated new device identifier")
        except StorageError as e:
            raise StorageUnavailableError(f"Device identity unavailable: {e}") from e

        self._device_id = device_id
        return device_id

    def forget(self) -> None:
        """Drop the cached identifier.

        Only valid once every record encrypted under it has been wiped.
        """
        self._device_id = None
