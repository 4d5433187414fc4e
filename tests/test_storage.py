"""Tests for host key-value stores and device identity."""

import os
import stat
import sys

import pytest

from devicegate import (
    DeviceIdentity,
    FileCorruptedError,
    FileStore,
    MemoryStore,
    StorageError,
    StorageUnavailableError,
)
from devicegate.config import DEVICE_ID_KEY


class BrokenStore(MemoryStore):
    """Store whose every write fails."""

    def _write(self, full_key, value):
        raise StorageError("disk full")


class TestMemoryStore:
    """Test the in-memory store."""

    def test_get_set_delete(self):
        store = MemoryStore()
        assert store.get("a") is None
        store.set("a", "1")
        assert store.get("a") == "1"
        assert store.exists("a")
        assert store.delete("a") is True
        assert store.delete("a") is False

    def test_namespace_applied(self):
        store = MemoryStore(namespace="ns_")
        store.set("device_id", "x")
        assert store.data == {"ns_device_id": "x"}

    def test_keys_only_in_namespace(self):
        store = MemoryStore(namespace="ns_")
        store.set("b", "1")
        store.set("a", "2")
        store.data["other_app_key"] = "keep"
        assert store.keys() == ["a", "b"]

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            MemoryStore().set("", "x")

    def test_check_available(self):
        store = MemoryStore()
        store.check_available()
        assert store.keys() == []

    def test_check_available_fails(self):
        with pytest.raises(StorageUnavailableError):
            BrokenStore().check_available()


class TestFileStore:
    """Test the directory-backed store."""

    def test_round_trip(self, tmp_path):
        store = FileStore(str(tmp_path / "data"))
        store.set("security_state", '{"a": 1}')
        assert store.get("security_state") == '{"a": 1}'
        assert store.keys() == ["security_state"]

    def test_missing_directory_reads_empty(self, tmp_path):
        store = FileStore(str(tmp_path / "missing"))
        assert store.get("x") is None
        assert store.keys() == []

    def test_delete(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.set("x", "1")
        assert store.delete("x")
        assert not store.delete("x")
        assert store.get("x") is None

    def test_unicode(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.set("note", "brûlure 🔥")
        assert store.get("note") == "brûlure 🔥"

    def test_files_namespaced(self, tmp_path):
        store = FileStore(str(tmp_path), namespace="bw_")
        store.set("device_id", "x")
        assert os.listdir(tmp_path) == ["bw_device_id"]

    def test_foreign_files_ignored(self, tmp_path):
        (tmp_path / "unrelated.txt").write_text("x")
        store = FileStore(str(tmp_path), namespace="bw_")
        assert store.keys() == []

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix permissions only")
    def test_secure_permissions(self, tmp_path):
        """Records are owner read/write only, directory owner only."""
        directory = tmp_path / "secure"
        store = FileStore(str(directory))
        store.set("pin_hash", "abc")

        file_mode = stat.S_IMODE(os.stat(directory / (store.namespace + "pin_hash")).st_mode)
        dir_mode = stat.S_IMODE(os.stat(directory).st_mode)
        assert file_mode == 0o600
        assert dir_mode & 0o077 == 0

    @pytest.mark.parametrize("key", ["patient notes", "../escape", "a/b", "ward.3", "x.tmp", "ünï"])
    def test_any_key_stays_in_directory(self, tmp_path, key):
        """Keys are encoded into plain file names inside the store directory."""
        directory = tmp_path / "data"
        store = FileStore(str(directory))
        store.set(key, "value")

        assert store.get(key) == "value"
        assert store.keys() == [key]
        assert len(os.listdir(directory)) == 1
        assert os.listdir(tmp_path) == ["data"]
        assert store.delete(key)
        assert os.listdir(directory) == []

    def test_invalid_utf8_is_corrupted(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.set("notes", "ok")
        (tmp_path / (store.namespace + "notes")).write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(FileCorruptedError):
            store.get("notes")

    def test_foreign_file_listed_but_not_deletable(self, tmp_path):
        store = FileStore(str(tmp_path), namespace="bw_")
        (tmp_path / "bw_a b").write_text("x")
        assert store.keys() == ["a b"]
        assert store.delete("a b") is False

    def test_unavailable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = FileStore(str(blocker / "data"))
        with pytest.raises(StorageUnavailableError):
            store.check_available()


class TestDeviceIdentity:
    """Test per-device identifier."""

    def test_created_once(self, store):
        identity = DeviceIdentity(store)
        device_id = identity.get_or_create()
        assert len(device_id) == 32  # 16 bytes hex
        assert store.get(DEVICE_ID_KEY) == device_id
        assert identity.get_or_create() == device_id

    def test_persisted_across_instances(self, store):
        first = DeviceIdentity(store).get_or_create()
        assert DeviceIdentity(store).get_or_create() == first

    def test_unique_per_device(self):
        assert DeviceIdentity(MemoryStore()).get_or_create() != DeviceIdentity(MemoryStore()).get_or_create()

    def test_store_failure_is_fatal(self):
        with pytest.raises(StorageUnavailableError):
            DeviceIdentity(BrokenStore()).get_or_create()

    def test_forget_reloads_from_store(self, store):
        identity = DeviceIdentity(store)
        device_id = identity.get_or_create()
        identity.forget()
        assert identity.get_or_create() == device_id
