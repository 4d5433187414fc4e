"""Encrypted persistence adapter.

The rest of the application persists plain JSON-serializable objects through
save() / load(); this adapter serializes them, routes the bytes through the
EncryptionService and stores the resulting blob under "encrypted_<key>".

Unreadable records (wrong key, corruption, foreign data) load as None so the
caller treats them as "nothing saved".
"""

import json
import logging
from typing import Any, Optional

from devicegate.config import ENCRYPTED_KEY_PREFIX
from devicegate.crypto import EncryptionService, decode_blob, encode_blob
from devicegate.storage import KeyValueStore, StorageError


logger = logging.getLogger(__name__)


class EncryptedPersistenceAdapter:
    """Transparent encrypt-on-write / decrypt-on-read over the host store."""

    def __init__(self, store: KeyValueStore, encryption: EncryptionService):
        self._store = store
        self._encryption = encryption

    @staticmethod
    def _record_key(key: str) -> str:
        return ENCRYPTED_KEY_PREFIX + key

    def save(self, key: str, value: Any) -> bool:
        """Serialize, encrypt and store a value.

        Args:
            key: Logical record name
            value: JSON-serializable object

        Returns:
            True on success, False if the value can't be serialized or stored
        """
        try:
            data = json.dumps(value).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error("Cannot serialize value for %s: %s", key, e)
            return False

        return self._write(key, data)

    def _write(self, key: str, data: bytes) -> bool:
        blob = encode_blob(self._encryption.encrypt(data))
        try:
            self._store.set(self._record_key(key), blob)
        except StorageError as e:
            logger.error("Secure store failed for %s: %s", key, e)
            return False
        return True

    def _read(self, key: str) -> Optional[bytes]:
        try:
            blob = self._store.get(self._record_key(key))
        except StorageError as e:
            logger.warning("Record %s could not be read: %s", key, e)
            return None
        if blob is None:
            return None

        payload = decode_blob(blob)
        if payload is None:
            logger.warning("Unrecognised blob format for %s", key)
            return None
        return self._encryption.decrypt(payload)

    def load(self, key: str) -> Optional[Any]:
        """Load and decrypt a value.

        Args:
            key: Logical record name

        Returns:
            The stored object, or None if absent or unreadable
        """
        data = self._read(key)
        if data is None:
            return None

        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Decrypted record %s is not valid JSON", key)
            return None

    def delete(self, key: str) -> bool:
        """Delete a record.

        Returns:
            True on success, False if the record didn't exist
        """
        return self._store.delete(self._record_key(key))

    def exists(self, key: str) -> bool:
        return self._store.exists(self._record_key(key))

    def list_keys(self) -> list[str]:
        """Get the logical names of all stored records."""
        prefix_len = len(ENCRYPTED_KEY_PREFIX)
        return [
            name[prefix_len:]
            for name in self._store.keys()
            if name.startswith(ENCRYPTED_KEY_PREFIX)
        ]

    def export_plaintext(self) -> dict[str, bytes]:
        """Decrypt every readable record into memory.

        Used before a PIN change so the records can be rewritten under the
        new key. Unreadable records are left out.
        """
        snapshot = {}
        for key in self.list_keys():
            data = self._read(key)
            if data is not None:
                snapshot[key] = data
            else:
                logger.warning("Record %s is unreadable and will not be migrated", key)
        return snapshot

    def import_plaintext(self, snapshot: dict[str, bytes]) -> int:
        """Re-encrypt a snapshot under the current key.

        Returns:
            Number of records written
        """
        return sum(1 for key, data in snapshot.items() if self._write(key, data))
