import logging
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, asdict, field
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Dict, List, Any, Callable, Iterator

from colorama import Fore, Style

from device_codes import TelemetryIds
from error_handler import (CleanerError, ProcessError, ErrorHandler, error_context,
                           error_handler as default_error_handler)
from quit_vscode import VSCodeProcessController
from sqlite_modifier import SqliteModifier, DatabaseCleanResult, DatabaseInfo, PREVIEW_LIMIT
from telemetry_modifier import TelemetryModifier, TelemetryModificationResult
from utils import SystemPaths
from workspace_cleaner import WorkspaceCleaner, WorkspaceCleanResult, WorkspaceInfo, WorkspaceEntry

logger = logging.getLogger(__name__)

EMOJI = {
    "START": "🚀",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "WARNING": "⚠️",
    "INFO": "ℹ️",
}


class CleanStep(Enum):
    TELEMETRY = "telemetry"
    DATABASE = "database"
    WORKSPACE = "workspace"
    COMPLETE = "complete"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]


@dataclass
class FullCleanResult:
    telemetry: TelemetryModificationResult
    database: DatabaseCleanResult
    workspace: WorkspaceCleanResult
    system_paths: SystemPaths
    timestamp: str
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CleaningProgress:
    step: CleanStep
    message: str
    progress: int
    result: Optional[FullCleanResult] = None


@dataclass
class SystemStatus:
    storage_file_valid: bool
    database_valid: bool
    workspace_exists: bool
    telemetry_ids: Optional[TelemetryIds]
    database_info: Optional[DatabaseInfo]
    workspace_info: WorkspaceInfo
    system_paths: SystemPaths

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OperationPreview:
    telemetry_ids: Optional[TelemetryIds]
    database_records: List[Dict[str, str]] = field(default_factory=list)
    workspace_contents: List[WorkspaceEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RiskAssessment:
    risk_level: RiskLevel
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
        }


def _at_least(current: RiskLevel, minimum: RiskLevel) -> RiskLevel:
    return max(current, minimum, key=_RISK_ORDER.index)


def assess_risk(status: SystemStatus, vscode_running: bool) -> RiskAssessment:
    """Classify how likely a full clean is to fail or be undone by a running editor."""
    assessment = RiskAssessment(risk_level=RiskLevel.LOW)

    if vscode_running:
        assessment.risk_level = RiskLevel.HIGH
        assessment.warnings.append("VS Code is running; changes may be overwritten when it exits")
        assessment.recommendations.append("Close VS Code completely before cleaning")

    if not status.storage_file_valid:
        assessment.risk_level = _at_least(assessment.risk_level, RiskLevel.MEDIUM)
        assessment.warnings.append("storage.json is missing or invalid")

    if not status.database_valid:
        assessment.risk_level = _at_least(assessment.risk_level, RiskLevel.MEDIUM)
        assessment.warnings.append("state.vscdb is missing or invalid")

    if not status.workspace_exists:
        assessment.warnings.append("Workspace storage directory does not exist")

    if status.database_info is not None and status.database_info.augment_records == 0:
        assessment.warnings.append("No augment records found in the database")

    assessment.recommendations.append("Backups of every modified file are created automatically")
    assessment.recommendations.append("Back up important VS Code configuration manually before cleaning")
    return assessment


class AugmentCleaner:
    """Runs the full clean and the advisory checks around it.

    Every component gets the same SystemPaths; nothing is resolved globally.
    """

    def __init__(self, paths: SystemPaths,
                 process_controller: Optional[VSCodeProcessController] = None,
                 handler: Optional[ErrorHandler] = None,
                 preview_limit: int = PREVIEW_LIMIT,
                 preview_max_items: int = 100):
        self.paths = paths
        self.telemetry_modifier = TelemetryModifier(paths)
        self.sqlite_modifier = SqliteModifier(paths)
        self.workspace_cleaner = WorkspaceCleaner(paths)
        self.process_controller = process_controller or VSCodeProcessController()
        self.error_handler = handler or default_error_handler
        self.preview_limit = preview_limit
        self.preview_max_items = preview_max_items

    def iter_full_clean(self) -> Iterator[CleaningProgress]:
        """Run telemetry, database and workspace cleaning in order, yielding progress.

        The last event (step COMPLETE) carries the FullCleanResult. The first
        failing step stops the run; earlier steps are not rolled back.

        Raises:
            CleanerError: "Clean operation failed: ..." chained to the step's error
        """
        try:
            yield CleaningProgress(CleanStep.TELEMETRY, "Modifying telemetry IDs...", 10)
            telemetry = self.telemetry_modifier.modify_telemetry_ids()
            yield CleaningProgress(CleanStep.TELEMETRY, "Telemetry IDs modified", 33)

            yield CleaningProgress(CleanStep.DATABASE, "Cleaning database...", 40)
            database = self.sqlite_modifier.clean_augment_data()
            yield CleaningProgress(CleanStep.DATABASE, f"Deleted {database.deleted_rows} database records", 66)

            yield CleaningProgress(CleanStep.WORKSPACE, "Cleaning workspace storage...", 70)
            workspace = self.workspace_cleaner.clean_workspace_storage()
        except Exception as e:
            logger.error(f"Clean operation failed: {e}")
            raise CleanerError(f"Clean operation failed: {e}") from e

        result = FullCleanResult(
            telemetry=telemetry,
            database=database,
            workspace=workspace,
            system_paths=self.paths,
            timestamp=datetime.now().isoformat()
        )
        logger.info("Full clean completed")
        yield CleaningProgress(CleanStep.COMPLETE, "Clean completed", 100, result)

    def perform_full_clean(self, on_progress: Optional[Callable[[CleaningProgress], None]] = None,
                           close_vscode: bool = False, reopen_vscode: bool = False) -> FullCleanResult:
        """Drive iter_full_clean, passing each event to on_progress.

        Args:
            on_progress: Called with every CleaningProgress event
            close_vscode: Terminate VS Code before the first step
            reopen_vscode: Start VS Code again after a successful clean

        Raises:
            ProcessError: VS Code could not be closed beforehand
            CleanerError: a cleaning step failed
        """
        print(f"{Fore.CYAN}{EMOJI['START']} Starting full clean...{Style.RESET_ALL}")

        with error_context(self.error_handler, {"operation": "full_clean"},
                           "Close VS Code and check file permissions"):
            if close_vscode and not self.process_controller.terminate():
                raise ProcessError("VS Code could not be closed before cleaning")

            result = None
            for event in self.iter_full_clean():
                if on_progress:
                    on_progress(event)
                if event.result is not None:
                    result = event.result

        if reopen_vscode and not self.process_controller.relaunch():
            logger.warning("Clean succeeded but VS Code could not be reopened")

        print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Full clean completed{Style.RESET_ALL}")
        return result

    def check_system_status(self) -> SystemStatus:
        """Run the six read-only checks concurrently"""
        with ThreadPoolExecutor(max_workers=6) as executor:
            storage_valid = executor.submit(self.telemetry_modifier.validate_storage_file)
            database_valid = executor.submit(self.sqlite_modifier.validate_database)
            workspace_exists = executor.submit(self.workspace_cleaner.validate_workspace_directory)
            telemetry_ids = executor.submit(self.telemetry_modifier.get_current_telemetry_ids)
            database_info = executor.submit(self.sqlite_modifier.get_database_info)
            workspace_info = executor.submit(self.workspace_cleaner.get_workspace_info)

            return SystemStatus(
                storage_file_valid=storage_valid.result(),
                database_valid=database_valid.result(),
                workspace_exists=workspace_exists.result(),
                telemetry_ids=telemetry_ids.result(),
                database_info=database_info.result(),
                workspace_info=workspace_info.result(),
                system_paths=self.paths
            )

    def preview_operations(self) -> OperationPreview:
        """What a full clean would touch, without changing anything"""
        with ThreadPoolExecutor(max_workers=3) as executor:
            telemetry_ids = executor.submit(self.telemetry_modifier.get_current_telemetry_ids)
            records = executor.submit(self.sqlite_modifier.preview_augment_records, None, self.preview_limit)
            contents = executor.submit(self.workspace_cleaner.preview_workspace_contents, None,
                                       self.preview_max_items)

            return OperationPreview(
                telemetry_ids=telemetry_ids.result(),
                database_records=records.result(),
                workspace_contents=contents.result()
            )

    def is_vscode_running(self) -> bool:
        return self.process_controller.is_running()

    def get_risk_assessment(self, status: Optional[SystemStatus] = None,
                            vscode_running: Optional[bool] = None) -> RiskAssessment:
        if status is None:
            status = self.check_system_status()
        if vscode_running is None:
            vscode_running = self.is_vscode_running()
        return assess_risk(status, vscode_running)
