"""Tests for the write-once original-DUID store."""

import json
import socket
from pathlib import Path

import pytest

from duidstuff.duidconfig import StoreConfig
from duidstuff.store import OriginalDuidStore, OriginalStoreError

DUID_A = bytes.fromhex("00030001aabbccddeeff")
DUID_B = bytes.fromhex("000300011122334455ff")


@pytest.fixture
def store(tmp_path: Path) -> OriginalDuidStore:
    return OriginalDuidStore("linux", path=tmp_path / "state" / "duid.original")


class TestBackup:
    def test_first_backup_writes(self, store: OriginalDuidStore) -> None:
        assert not store.has()
        assert store.backup_if_absent(DUID_A) is True
        assert store.has()
        assert store.load() == DUID_A

    def test_write_once(self, store: OriginalDuidStore) -> None:
        store.backup_if_absent(DUID_A)
        assert store.backup_if_absent(DUID_B) is False
        assert store.load() == DUID_A

    def test_record_format(self, store: OriginalDuidStore) -> None:
        store.backup_if_absent(DUID_A)
        data = json.loads(store.path().read_text())
        assert set(data) == {"duid", "storedAt", "platform", "hostname"}
        assert data["duid"] == "00030001aabbccddeeff"
        assert data["platform"] == "linux"
        assert data["hostname"] == socket.gethostname()

    def test_record_metadata(self, store: OriginalDuidStore) -> None:
        store.backup_if_absent(DUID_A)
        record = store.record()
        assert record is not None
        assert record.duid_bytes == DUID_A
        assert record.stored_at.tzinfo is not None

    def test_no_temp_files_left(self, store: OriginalDuidStore) -> None:
        store.backup_if_absent(DUID_A)
        assert [p.name for p in store.path().parent.iterdir()] == ["duid.original"]

    def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = OriginalDuidStore("linux", path=blocker / "duid.original")
        with pytest.raises(OriginalStoreError, match="Could not write"):
            store.backup_if_absent(DUID_A)


class TestLoad:
    def test_missing(self, store: OriginalDuidStore) -> None:
        assert store.load() is None
        assert store.record() is None

    def test_legacy_raw_bytes(self, store: OriginalDuidStore) -> None:
        store.path().parent.mkdir(parents=True)
        store.path().write_bytes(DUID_B)
        assert store.load() == DUID_B
        assert store.record() is None

    def test_unparseable_record_falls_back_to_raw_content(self, store: OriginalDuidStore) -> None:
        store.path().parent.mkdir(parents=True)
        store.path().write_bytes(b'{"duid": "zz"')
        assert store.load() == b'{"duid": "zz"'
        assert store.record() is None

    def test_empty_file(self, store: OriginalDuidStore) -> None:
        store.path().parent.mkdir(parents=True)
        store.path().write_bytes(b"")
        assert store.load() is None

    def test_existing_legacy_file_blocks_backup(self, store: OriginalDuidStore) -> None:
        store.path().parent.mkdir(parents=True)
        store.path().write_bytes(DUID_B)
        assert store.backup_if_absent(DUID_A) is False
        assert store.load() == DUID_B


class TestClear:
    def test_clear(self, store: OriginalDuidStore) -> None:
        store.backup_if_absent(DUID_A)
        assert store.clear() is True
        assert not store.has()
        assert store.clear() is False

    def test_backup_possible_after_clear(self, store: OriginalDuidStore) -> None:
        store.backup_if_absent(DUID_A)
        store.clear()
        assert store.backup_if_absent(DUID_B) is True
        assert store.load() == DUID_B


class TestPath:
    def test_system_directory(self, tmp_path: Path) -> None:
        config = StoreConfig(linux_dir=tmp_path / "var" / "lib" / "duidstuff", user_dir=tmp_path / "home")
        store = OriginalDuidStore("linux", config)
        assert store.path() == tmp_path / "var" / "lib" / "duidstuff" / "duid.original"
        assert store.path().parent.is_dir()

    def test_falls_back_to_user_directory(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        config = StoreConfig(linux_dir=blocker / "sub", user_dir=tmp_path / "home" / ".duidstuff")
        store = OriginalDuidStore("linux", config)
        assert store.path() == tmp_path / "home" / ".duidstuff" / "duid.original"

    def test_stable_across_instances(self, tmp_path: Path) -> None:
        config = StoreConfig(linux_dir=tmp_path / "lib")
        first = OriginalDuidStore("linux", config)
        first.backup_if_absent(DUID_A)
        second = OriginalDuidStore("linux", config)
        assert second.path() == first.path()
        assert second.load() == DUID_A

    def test_darwin_file_name(self, tmp_path: Path) -> None:
        config = StoreConfig(darwin_dir=tmp_path / "dhcpclient")
        assert OriginalDuidStore("darwin", config).path() == tmp_path / "dhcpclient" / "DUID.original"
