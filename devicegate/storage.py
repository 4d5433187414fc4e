"""Host key-value store.

Every durable record the core writes goes through a KeyValueStore. Keys are
logical names ("device_id", "encrypted_notes", ...); the store prefixes them
with a namespace so that a wipe can remove exactly what the core owns.

Two implementations ship here: FileStore keeps one file per key with secure
permissions on Unix systems, MemoryStore keeps everything in a dict.
"""

import logging
import os
import stat
import sys
from typing import Optional
from urllib.parse import quote, unquote

from devicegate.config import STORAGE_NAMESPACE


logger = logging.getLogger(__name__)

# Secure file permission: owner read/write only (0600 in octal)
SECURE_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR  # 0o600

TMP_SUFFIX = ".tmp"


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailableError(StorageError):
    """The durable store cannot be read or written."""
    pass


class FileCorruptedError(StorageError):
    """Record exists but contains invalid data."""
    pass


def _validate_key(key: str) -> str:
    if not isinstance(key, str) or not key:
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class KeyValueStore:
    """Namespaced string key-value store.

    Subclasses implement the raw accessors; the public methods take logical
    keys and apply the namespace.
    """

    def __init__(self, namespace: str = STORAGE_NAMESPACE):
        self.namespace = namespace

    def _full_key(self, key: str) -> str:
        return self.namespace + _validate_key(key)

    # Raw accessors
    def _read(self, full_key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, full_key: str, value: str) -> None:
        raise NotImplementedError

    def _remove(self, full_key: str) -> bool:
        raise NotImplementedError

    def _list(self) -> list[str]:
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        return self._read(self._full_key(key))

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        self._write(self._full_key(key), value)

    def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key was deleted, False if it didn't exist
        """
        return self._remove(self._full_key(key))

    def keys(self) -> list[str]:
        """List logical keys under this store's namespace."""
        prefix_len = len(self.namespace)
        return sorted(
            full_key[prefix_len:]
            for full_key in self._list()
            if full_key.startswith(self.namespace)
        )

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def check_available(self) -> None:
        """Probe the store with a write/read/delete cycle.

        Raises:
            StorageUnavailableError: If the probe fails
        """
        probe_key = "__probe__"
        try:
            self.set(probe_key, "ok")
            value = self.get(probe_key)
            self.delete(probe_key)
        except StorageUnavailableError:
            raise
        except (StorageError, OSError) as e:
            raise StorageUnavailableError(f"Store probe failed: {e}") from e
        if value != "ok":
            raise StorageUnavailableError("Store probe returned unexpected data")


class MemoryStore(KeyValueStore):
    """In-process store, used for tests and ephemeral sessions."""

    def __init__(self, namespace: str = STORAGE_NAMESPACE):
        super().__init__(namespace)
        self.data: dict[str, str] = {}

    def _read(self, full_key: str) -> Optional[str]:
        return self.data.get(full_key)

    def _write(self, full_key: str, value: str) -> None:
        self.data[full_key] = value

    def _remove(self, full_key: str) -> bool:
        return self.data.pop(full_key, None) is not None

    def _list(self) -> list[str]:
        return list(self.data)


def _filename(full_key: str) -> str:
    """Map a key to a file name that stays inside the store directory.

    Everything outside [A-Za-z0-9_~-] is percent-encoded, dots included, so
    no key can name a parent directory or collide with a temporary file.
    """
    return quote(full_key, safe="").replace(".", "%2E")


def _set_secure_permissions(filepath: str) -> None:
    """Set restrictive file permissions on a record file.

    On Unix systems: Sets file to mode 0600 (owner read/write only)
    On Windows: No-op (Windows uses ACLs, not Unix permissions)
    """
    if sys.platform == "win32":
        return

    try:
        os.chmod(filepath, SECURE_FILE_MODE)
    except OSError as e:
        # Best effort - the record itself was written
        logger.warning("Could not restrict permissions on %s: %s", filepath, e)


class FileStore(KeyValueStore):
    """Directory-backed store with one UTF-8 file per key.

    Keys are percent-encoded into file names. A file whose name is not such
    an encoding (dropped in by hand) is listed but can never be deleted
    through the store, so a wipe reports it as left behind.

    Writes go to a temporary file which is then renamed over the target, so a
    crash mid-write never leaves a half-written record behind.
    """

    def __init__(self, directory: str, namespace: str = STORAGE_NAMESPACE):
        super().__init__(namespace)
        self.directory = directory

    def ensure_directory(self) -> None:
        """Create the store directory if it doesn't exist.

        On Unix systems, the directory is created with mode 0700 (owner only).

        Raises:
            StorageUnavailableError: If the directory cannot be created
        """
        try:
            if sys.platform != "win32":
                os.makedirs(self.directory, mode=0o700, exist_ok=True)
            else:
                os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot create store directory {self.directory}: {e}"
            ) from e

    def _path(self, full_key: str) -> str:
        return os.path.join(self.directory, _filename(full_key))

    def _read(self, full_key: str) -> Optional[str]:
        filepath = self._path(full_key)
        if not os.path.exists(filepath):
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise FileCorruptedError(f"Invalid text in {filepath}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {filepath}: {e}") from e

    def _write(self, full_key: str, value: str) -> None:
        self.ensure_directory()
        filepath = self._path(full_key)
        tmp_path = filepath + TMP_SUFFIX
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value)
            _set_secure_permissions(tmp_path)
            os.replace(tmp_path, filepath)
        except OSError as e:
            raise StorageError(f"Failed to write {filepath}: {e}") from e

    def _remove(self, full_key: str) -> bool:
        filepath = self._path(full_key)
        if not os.path.exists(filepath):
            return False
        try:
            os.remove(filepath)
        except OSError as e:
            raise StorageError(f"Failed to delete {filepath}: {e}") from e
        return True

    def _list(self) -> list[str]:
        if not os.path.isdir(self.directory):
            return []
        return [
            unquote(name) for name in os.listdir(self.directory)
            if not name.endswith(TMP_SUFFIX)
            and os.path.isfile(os.path.join(self.directory, name))
        ]
