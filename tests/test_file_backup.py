"""Unit tests for timestamped file backups."""

import os
from unittest.mock import patch

import pytest

from error_handler import BackupError, NotFoundError, ParseError
from file_backup import (create_backup, create_multiple_backups, generate_backup_path, list_backups,
                         parse_backup_path, restore_backup)


class TestBackupNaming:
    """<path>.bak.<unix seconds> naming convention."""

    def test_generate_backup_path(self):
        assert generate_backup_path("/data/storage.json", 1700000000) == "/data/storage.json.bak.1700000000"

    def test_parse_backup_path(self):
        record = parse_backup_path("/data/storage.json.bak.1700000000")
        assert record.original_path == "/data/storage.json"
        assert record.timestamp == 1700000000
        assert record.to_dict()["backup_path"] == "/data/storage.json.bak.1700000000"

    @pytest.mark.parametrize("name", [
        "/data/storage.json",
        "/data/storage.json.bak.",
        "/data/storage.json.bak.12ab",
        "/data/storage.json.backup.1700000000",
    ])
    def test_parse_rejects_other_names(self, name):
        assert parse_backup_path(name) is None


class TestCreateBackup:
    """Backups are byte-identical copies that leave the source untouched."""

    def test_backup_is_identical_copy(self, temp_dir):
        source = temp_dir / "state.vscdb"
        content = bytes(range(256)) * 4
        source.write_bytes(content)

        backup_path = create_backup(str(source))

        record = parse_backup_path(backup_path)
        assert record is not None
        assert record.original_path == str(source)
        assert open(backup_path, "rb").read() == content
        assert source.read_bytes() == content

    def test_missing_source(self, temp_dir):
        with pytest.raises(NotFoundError):
            create_backup(str(temp_dir / "missing.json"))

    def test_copy_failure_becomes_backup_error(self, temp_dir):
        source = temp_dir / "storage.json"
        source.write_text("{}")
        with patch("file_backup.shutil.copyfileobj", side_effect=PermissionError("denied")):
            with pytest.raises(BackupError, match="denied"):
                create_backup(str(source))
        assert list_backups(str(source)) == []

    def test_backup_in_same_second_keeps_earlier_one(self, temp_dir):
        source = temp_dir / "storage.json"
        source.write_text("original")

        with patch("file_backup.time.time", return_value=1700000000):
            first = create_backup(str(source))
            source.write_text("modified")
            second = create_backup(str(source))

        assert first == generate_backup_path(str(source), 1700000000)
        assert second == generate_backup_path(str(source), 1700000001)
        assert open(first).read() == "original"
        assert open(second).read() == "modified"
        assert [r.backup_path for r in list_backups(str(source))] == [second, first]

    def test_multiple_backups_report_every_failure(self, temp_dir):
        present = temp_dir / "present.json"
        present.write_text("{}")
        missing_a = str(temp_dir / "a.json")
        missing_b = str(temp_dir / "b.json")

        with pytest.raises(BackupError) as exc_info:
            create_multiple_backups([str(present), missing_a, missing_b])

        message = str(exc_info.value)
        assert message.startswith("Some backups failed:")
        assert missing_a in message and missing_b in message
        assert list_backups(str(present))

    def test_multiple_backups_success(self, temp_dir):
        files = []
        for name in ("one.json", "two.json"):
            path = temp_dir / name
            path.write_text(name)
            files.append(str(path))

        backups = create_multiple_backups(files)
        assert set(backups) == set(files)
        for original, backup in backups.items():
            assert open(backup).read() == open(original).read()


class TestListAndRestore:
    """Locating and restoring backups."""

    def test_list_backups_newest_first(self, temp_dir):
        source = temp_dir / "storage.json"
        source.write_text("{}")
        for ts in (100, 300, 200):
            (temp_dir / f"storage.json.bak.{ts}").write_text(str(ts))
        (temp_dir / "storage.json.bak.notanumber").write_text("x")

        records = list_backups(str(source))
        assert [r.timestamp for r in records] == [300, 200, 100]

    def test_restore_to_original(self, temp_dir):
        source = temp_dir / "storage.json"
        source.write_text("modified")
        backup = temp_dir / "storage.json.bak.100"
        backup.write_text("original")

        restored = restore_backup(str(backup))
        assert restored == str(source)
        assert source.read_text() == "original"

    def test_restore_to_explicit_target(self, temp_dir):
        backup = temp_dir / "anything.copy"
        backup.write_text("payload")
        target = temp_dir / "target.json"

        restore_backup(str(backup), str(target))
        assert target.read_text() == "payload"

    def test_restore_requires_backup_name_without_target(self, temp_dir):
        backup = temp_dir / "anything.copy"
        backup.write_text("payload")
        with pytest.raises(ParseError):
            restore_backup(str(backup))

    def test_restore_missing_backup(self, temp_dir):
        with pytest.raises(NotFoundError):
            restore_backup(os.path.join(str(temp_dir), "storage.json.bak.1"))
