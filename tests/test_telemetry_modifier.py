"""Unit tests for the storage.json / machineid identifier reset."""

import json
import os
from unittest.mock import patch

import pytest

from device_codes import is_valid_device_id, is_valid_machine_id
from error_handler import NotFoundError, ParseError, WriteFailureError
from file_backup import list_backups
from telemetry_modifier import DEVICE_ID_KEY, MACHINE_ID_KEY, TelemetryModifier
from tests.conftest import ORIGINAL_DEVICE_ID, ORIGINAL_MACHINE_ID, write_storage


def read_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class TestModifyTelemetryIds:
    """Identifier replacement and rollback."""

    def test_documented_scenario(self, system_paths):
        write_storage(system_paths, {
            MACHINE_ID_KEY: ORIGINAL_MACHINE_ID,
            DEVICE_ID_KEY: ORIGINAL_DEVICE_ID,
            "other": "x",
        })

        result = TelemetryModifier(system_paths).modify_telemetry_ids()

        data = read_json(system_paths.storage_path)
        assert data["other"] == "x"
        assert data[MACHINE_ID_KEY] != ORIGINAL_MACHINE_ID
        assert data[DEVICE_ID_KEY] != ORIGINAL_DEVICE_ID
        assert is_valid_machine_id(data[MACHINE_ID_KEY])
        assert is_valid_device_id(data[DEVICE_ID_KEY])
        assert result.old_machine_id == ORIGINAL_MACHINE_ID
        assert result.old_device_id == ORIGINAL_DEVICE_ID
        assert result.new_machine_id == data[MACHINE_ID_KEY]
        assert result.new_device_id == data[DEVICE_ID_KEY]

    def test_machineid_file_receives_device_id(self, vscode_tree):
        result = TelemetryModifier(vscode_tree).modify_telemetry_ids()
        with open(vscode_tree.machine_id_path, encoding="utf-8") as f:
            assert f.read() == result.new_device_id

    def test_backups_created_before_change(self, vscode_tree):
        result = TelemetryModifier(vscode_tree).modify_telemetry_ids()

        backup = read_json(result.storage_backup_path)
        assert backup[MACHINE_ID_KEY] == ORIGINAL_MACHINE_ID
        assert result.machine_id_backup_path is not None
        with open(result.machine_id_backup_path, encoding="utf-8") as f:
            assert f.read() == "old-machine-id"

    def test_missing_machineid_file_is_created_without_backup(self, system_paths):
        write_storage(system_paths, {MACHINE_ID_KEY: ORIGINAL_MACHINE_ID})

        result = TelemetryModifier(system_paths).modify_telemetry_ids()

        assert result.machine_id_backup_path is None
        assert result.old_device_id == ""
        assert os.path.exists(system_paths.machine_id_path)

    def test_applied_twice_yields_fresh_valid_pairs(self, vscode_tree):
        modifier = TelemetryModifier(vscode_tree)
        first = modifier.modify_telemetry_ids()
        second = modifier.modify_telemetry_ids()

        assert first.new_machine_id != second.new_machine_id
        assert first.new_device_id != second.new_device_id
        assert second.old_machine_id == first.new_machine_id
        for result in (first, second):
            assert is_valid_machine_id(result.new_machine_id)
            assert is_valid_device_id(result.new_device_id)

        data = read_json(vscode_tree.storage_path)
        assert data["telemetry.sqmId"] == "{SQM}"
        assert data["theme"] == "vs-dark"

    def test_runs_in_same_second_keep_original_backup(self, vscode_tree):
        modifier = TelemetryModifier(vscode_tree)
        with patch("file_backup.time.time", return_value=1700000000):
            first = modifier.modify_telemetry_ids()
            second = modifier.modify_telemetry_ids()

        assert first.storage_backup_path != second.storage_backup_path
        original = read_json(first.storage_backup_path)
        assert original[MACHINE_ID_KEY] == ORIGINAL_MACHINE_ID
        assert original[DEVICE_ID_KEY] == ORIGINAL_DEVICE_ID
        assert read_json(second.storage_backup_path)[MACHINE_ID_KEY] == first.new_machine_id
        assert len(list_backups(vscode_tree.storage_path)) == 2

    def test_output_uses_four_space_indent(self, vscode_tree):
        TelemetryModifier(vscode_tree).modify_telemetry_ids()
        with open(vscode_tree.storage_path, encoding="utf-8") as f:
            text = f.read()
        assert f'\n    "{MACHINE_ID_KEY}"' in text

    def test_missing_storage_file(self, system_paths):
        with pytest.raises(NotFoundError):
            TelemetryModifier(system_paths).modify_telemetry_ids()

    def test_malformed_storage_is_restored(self, system_paths):
        os.makedirs(os.path.dirname(system_paths.storage_path))
        with open(system_paths.storage_path, "w", encoding="utf-8") as f:
            f.write("{not json")

        with pytest.raises(ParseError):
            TelemetryModifier(system_paths).modify_telemetry_ids()

        with open(system_paths.storage_path, encoding="utf-8") as f:
            assert f.read() == "{not json"
        assert len(list_backups(system_paths.storage_path)) == 1

    def test_non_object_storage_is_parse_error(self, system_paths):
        write_storage(system_paths, ["not", "an", "object"])
        with pytest.raises(ParseError):
            TelemetryModifier(system_paths).modify_telemetry_ids()

    def test_write_failure_restores_both_files(self, vscode_tree):
        original_storage = read_json(vscode_tree.storage_path)
        calls = []

        def failing_write(path, content, prefix=None):
            calls.append(path)
            if path == vscode_tree.machine_id_path:
                raise OSError("disk full")
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)

        with patch("telemetry_modifier.atomic_write_text", side_effect=failing_write):
            with pytest.raises(WriteFailureError, match="disk full"):
                TelemetryModifier(vscode_tree).modify_telemetry_ids()

        assert calls == [vscode_tree.storage_path, vscode_tree.machine_id_path]
        assert read_json(vscode_tree.storage_path) == original_storage
        with open(vscode_tree.machine_id_path, encoding="utf-8") as f:
            assert f.read() == "old-machine-id"


class TestReadOnlyHelpers:
    """Advisory reads never raise."""

    def test_validate_storage_file(self, vscode_tree, temp_dir):
        modifier = TelemetryModifier(vscode_tree)
        assert modifier.validate_storage_file()

        broken = temp_dir / "broken.json"
        broken.write_text("[1, 2")
        assert not modifier.validate_storage_file(str(broken))
        assert not modifier.validate_storage_file(str(temp_dir / "missing.json"))

    def test_get_current_telemetry_ids(self, vscode_tree):
        ids = TelemetryModifier(vscode_tree).get_current_telemetry_ids()
        assert ids.machine_id == ORIGINAL_MACHINE_ID
        assert ids.device_id == ORIGINAL_DEVICE_ID

    def test_get_current_telemetry_ids_missing(self, system_paths):
        assert TelemetryModifier(system_paths).get_current_telemetry_ids() is None
