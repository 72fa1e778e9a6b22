"""Unit tests for the clean orchestrator and risk assessment."""

import os
from unittest.mock import patch

import pytest

from augment_cleaner import (AugmentCleaner, CleanStep, RiskLevel, SystemStatus, assess_risk)
from device_codes import is_valid_machine_id
from error_handler import CleanerError, ErrorHandler, NotFoundError, ProcessError
from sqlite_modifier import DatabaseInfo
from workspace_cleaner import WorkspaceInfo


@pytest.fixture
def cleaner(vscode_tree, mock_controller):
    return AugmentCleaner(vscode_tree, process_controller=mock_controller, handler=ErrorHandler())


def make_status(paths, storage=True, database=True, workspace=True, augment_records=3):
    return SystemStatus(
        storage_file_valid=storage,
        database_valid=database,
        workspace_exists=workspace,
        telemetry_ids=None,
        database_info=DatabaseInfo(tables=["ItemTable"], total_records=5, augment_records=augment_records),
        workspace_info=WorkspaceInfo(exists=workspace),
        system_paths=paths
    )


class TestFullClean:
    """Ordered steps and progress events."""

    def test_progress_sequence(self, cleaner):
        events = list(cleaner.iter_full_clean())

        assert [(e.step, e.progress) for e in events] == [
            (CleanStep.TELEMETRY, 10),
            (CleanStep.TELEMETRY, 33),
            (CleanStep.DATABASE, 40),
            (CleanStep.DATABASE, 66),
            (CleanStep.WORKSPACE, 70),
            (CleanStep.COMPLETE, 100),
        ]
        assert all(e.result is None for e in events[:-1])
        assert events[-1].result is not None

    def test_perform_full_clean_forwards_events(self, cleaner, vscode_tree):
        received = []
        result = cleaner.perform_full_clean(on_progress=received.append)

        assert [e.progress for e in received] == [10, 33, 40, 66, 70, 100]
        assert result.success
        assert is_valid_machine_id(result.telemetry.new_machine_id)
        assert result.database.deleted_rows == 3
        assert result.workspace.deleted_files_count == 4
        assert result.system_paths == vscode_tree

        data = result.to_dict()
        assert data["system_paths"]["db_path"] == vscode_tree.db_path
        assert "T" in data["timestamp"]

    def test_step_failure_aborts_run(self, cleaner, vscode_tree):
        os.remove(vscode_tree.db_path)
        received = []

        with pytest.raises(CleanerError, match="Clean operation failed") as exc_info:
            cleaner.perform_full_clean(on_progress=received.append)

        assert isinstance(exc_info.value.__cause__, NotFoundError)
        assert [e.progress for e in received] == [10, 33, 40]
        # telemetry stays modified, workspace untouched
        assert cleaner.workspace_cleaner.get_workspace_info().total_files == 4
        assert cleaner.error_handler.get_error_summary()["total_errors"] == 1

    def test_close_and_reopen(self, cleaner, mock_controller):
        cleaner.perform_full_clean(close_vscode=True, reopen_vscode=True)
        mock_controller.terminate.assert_called_once()
        mock_controller.relaunch.assert_called_once()

    def test_close_failure_prevents_clean(self, cleaner, mock_controller, vscode_tree):
        mock_controller.terminate.return_value = False

        with pytest.raises(ProcessError):
            cleaner.perform_full_clean(close_vscode=True)

        assert cleaner.sqlite_modifier.count_augment_records() == 3

    def test_relaunch_failure_is_not_fatal(self, cleaner, mock_controller):
        mock_controller.relaunch.return_value = False
        result = cleaner.perform_full_clean(reopen_vscode=True)
        assert result.success


class TestStatusAndPreview:
    """Concurrent advisory reads."""

    def test_check_system_status(self, cleaner, vscode_tree):
        status = cleaner.check_system_status()
        assert status.storage_file_valid
        assert status.database_valid
        assert status.workspace_exists
        assert status.telemetry_ids.machine_id == "a" * 64
        assert status.database_info.augment_records == 3
        assert status.workspace_info.total_files == 4
        assert status.system_paths == vscode_tree

    def test_status_on_empty_system(self, system_paths, mock_controller):
        status = AugmentCleaner(system_paths, process_controller=mock_controller).check_system_status()
        assert not status.storage_file_valid
        assert not status.database_valid
        assert not status.workspace_exists
        assert status.telemetry_ids is None
        assert status.database_info is None
        assert status.workspace_info.total_files == 0

    def test_preview_operations(self, cleaner):
        preview = cleaner.preview_operations()
        assert preview.telemetry_ids.device_id == "11111111-1111-4111-8111-111111111111"
        assert len(preview.database_records) == 3
        assert len(preview.workspace_contents) == 3
        assert set(preview.to_dict()) == {"telemetry_ids", "database_records", "workspace_contents"}

    def test_preview_limits(self, vscode_tree, mock_controller):
        cleaner = AugmentCleaner(vscode_tree, process_controller=mock_controller,
                                 preview_limit=1, preview_max_items=2)
        preview = cleaner.preview_operations()
        assert len(preview.database_records) == 1
        assert len(preview.workspace_contents) == 2

    def test_preview_changes_nothing(self, cleaner, vscode_tree):
        before = open(vscode_tree.storage_path, "rb").read()
        cleaner.preview_operations()
        assert open(vscode_tree.storage_path, "rb").read() == before


class TestRiskAssessment:
    """Risk level derivation."""

    def test_running_editor_is_high_risk(self, vscode_tree):
        risk = assess_risk(make_status(vscode_tree), vscode_running=True)
        assert risk.risk_level is RiskLevel.HIGH
        assert any("running" in w for w in risk.warnings)
        assert any("Close VS Code" in r for r in risk.recommendations)

    def test_all_present_and_closed_is_low(self, vscode_tree):
        risk = assess_risk(make_status(vscode_tree), vscode_running=False)
        assert risk.risk_level is RiskLevel.LOW
        assert risk.warnings == []
        assert len(risk.recommendations) == 2

    def test_missing_files_raise_to_medium(self, vscode_tree):
        risk = assess_risk(make_status(vscode_tree, storage=False), vscode_running=False)
        assert risk.risk_level is RiskLevel.MEDIUM

        risk = assess_risk(make_status(vscode_tree, database=False), vscode_running=False)
        assert risk.risk_level is RiskLevel.MEDIUM

    def test_missing_files_never_lower_high(self, vscode_tree):
        status = make_status(vscode_tree, storage=False, database=False)
        risk = assess_risk(status, vscode_running=True)
        assert risk.risk_level is RiskLevel.HIGH
        assert len(risk.warnings) == 3

    def test_workspace_and_empty_database_only_warn(self, vscode_tree):
        status = make_status(vscode_tree, workspace=False, augment_records=0)
        risk = assess_risk(status, vscode_running=False)
        assert risk.risk_level is RiskLevel.LOW
        assert len(risk.warnings) == 2

    def test_recommendations_always_present(self, vscode_tree):
        risk = assess_risk(make_status(vscode_tree), vscode_running=True)
        assert risk.recommendations[-2].startswith("Backups")
        assert "manually" in risk.recommendations[-1]
        assert risk.to_dict()["risk_level"] == "high"

    def test_get_risk_assessment_queries_controller(self, cleaner, mock_controller):
        mock_controller.is_running.return_value = True
        assert cleaner.get_risk_assessment().risk_level is RiskLevel.HIGH
        assert cleaner.is_vscode_running()

    def test_get_risk_assessment_with_given_inputs(self, cleaner, mock_controller, vscode_tree):
        with patch.object(cleaner, "check_system_status") as check:
            risk = cleaner.get_risk_assessment(make_status(vscode_tree), vscode_running=False)
        check.assert_not_called()
        mock_controller.is_running.assert_not_called()
        assert risk.risk_level is RiskLevel.LOW
