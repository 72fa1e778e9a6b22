import os
import time
import zipfile
import logging
from dataclasses import dataclass, asdict, field
from typing import Optional, Dict, List, Tuple, Any

from colorama import Fore, Style

from error_handler import NotFoundError, ParseError, WriteFailureError
from utils import SystemPaths, format_size

logger = logging.getLogger(__name__)

EMOJI = {
    "FOLDER": "📁",
    "BACKUP": "💾",
    "DELETE": "🗑️",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "WARNING": "⚠️",
}


@dataclass
class WorkspaceInfo:
    exists: bool = False
    total_files: int = 0
    total_directories: int = 0
    total_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WorkspaceEntry:
    name: str
    type: str  # 'file' or 'directory'
    size: int
    path: str


@dataclass
class FailedOperation:
    type: str  # 'file' or 'directory'
    path: str
    error: str


@dataclass
class FailedCompression:
    file: str
    error: str


@dataclass
class WorkspaceCleanResult:
    backup_path: str
    deleted_files_count: int = 0
    failed_operations: List[FailedOperation] = field(default_factory=list)
    failed_compressions: List[FailedCompression] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def generate_archive_path(workspace_path: str, timestamp: Optional[int] = None) -> str:
    ts = timestamp if timestamp is not None else int(time.time())
    return f"{workspace_path.rstrip(os.sep)}_backup_{ts}.zip"


def _scan_directory(dir_path: str, info: WorkspaceInfo) -> None:
    with os.scandir(dir_path) as entries:
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                info.total_directories += 1
                _scan_directory(entry.path, info)
            elif entry.is_file(follow_symlinks=False):
                info.total_files += 1
                info.total_size += entry.stat(follow_symlinks=False).st_size


class WorkspaceCleaner:
    """Archives and clears the VS Code workspaceStorage directory"""

    def __init__(self, paths: SystemPaths):
        self.paths = paths

    def _resolve(self, workspace_path: Optional[str]) -> str:
        return workspace_path or self.paths.workspace_storage_path

    def get_workspace_info(self, workspace_path: Optional[str] = None) -> WorkspaceInfo:
        """Recursive file/directory counts and total size; a missing directory gives all zeros"""
        path = self._resolve(workspace_path)
        if not path or not os.path.isdir(path):
            return WorkspaceInfo()

        info = WorkspaceInfo(exists=True)
        try:
            _scan_directory(path, info)
        except OSError as e:
            logger.warning(f"Failed to scan workspace storage {path}: {e}")
            return WorkspaceInfo()
        return info

    def validate_workspace_directory(self, workspace_path: Optional[str] = None) -> bool:
        return self.get_workspace_info(workspace_path).exists

    def preview_workspace_contents(self, workspace_path: Optional[str] = None,
                                   max_items: int = 100) -> List[WorkspaceEntry]:
        """Immediate children of the directory, at most max_items of them"""
        path = self._resolve(workspace_path)
        if not path or not os.path.isdir(path):
            return []

        contents = []
        try:
            with os.scandir(path) as entries:
                for entry in entries:
                    if len(contents) >= max_items:
                        break
                    is_dir = entry.is_dir(follow_symlinks=False)
                    size = 0 if is_dir else entry.stat(follow_symlinks=False).st_size
                    contents.append(WorkspaceEntry(
                        name=entry.name,
                        type="directory" if is_dir else "file",
                        size=size,
                        path=entry.path
                    ))
        except OSError as e:
            logger.debug(f"Could not preview {path}: {e}")
            return []
        return contents

    def _open_archive(self, workspace_path: str) -> Tuple[str, zipfile.ZipFile]:
        """Create a new archive next to workspace_path; existing archives are never reused"""
        ts = int(time.time())
        while True:
            backup_path = generate_archive_path(workspace_path, ts)
            try:
                return backup_path, zipfile.ZipFile(backup_path, "x", compression=zipfile.ZIP_DEFLATED)
            except FileExistsError:
                logger.debug(f"Archive {backup_path} already exists, trying the next timestamp")
                ts += 1
            except OSError as e:
                raise WriteFailureError(f"Cannot create workspace backup {backup_path}: {e}") from e

    def _archive(self, workspace_path: str) -> Tuple[str, List[str], List[FailedCompression]]:
        """Write every file under workspace_path into a new zip archive.

        Returns the archive path, the files that made it into the archive and
        the ones that did not. Raises WriteFailureError if the archive itself
        cannot be written; a partially written archive is removed.
        """
        archived = []
        failed_compressions = []

        backup_path, archive = self._open_archive(workspace_path)
        try:
            with archive as zf:
                for dirpath, dirnames, filenames in os.walk(workspace_path):
                    rel_dir = os.path.relpath(dirpath, workspace_path)
                    if rel_dir != "." and not dirnames and not filenames:
                        # keep empty directories so a restore recreates them
                        zf.writestr(rel_dir.replace(os.sep, "/") + "/", b"")

                    for filename in filenames:
                        file_path = os.path.join(dirpath, filename)
                        arcname = os.path.relpath(file_path, workspace_path).replace(os.sep, "/")
                        try:
                            zf.write(file_path, arcname)
                            archived.append(file_path)
                        except (OSError, ValueError) as e:
                            logger.warning(f"Failed to archive {file_path}: {e}")
                            failed_compressions.append(FailedCompression(file=arcname, error=str(e)))
        except OSError as e:
            try:
                os.remove(backup_path)
            except OSError as remove_error:
                logger.warning(f"Failed to remove incomplete backup {backup_path}: {remove_error}")
            raise WriteFailureError(f"Cannot write workspace backup {backup_path}: {e}") from e

        return backup_path, archived, failed_compressions

    def create_workspace_backup(self, workspace_path: Optional[str] = None) -> str:
        """Archive the directory without deleting anything; returns the zip path"""
        path = self._resolve(workspace_path)
        if not path or not os.path.isdir(path):
            raise NotFoundError(f"Workspace storage directory not found: {path}")

        backup_path, _, failed = self._archive(path)
        if failed:
            logger.warning(f"{len(failed)} files could not be added to {backup_path}")
        print(f"{Fore.GREEN}{EMOJI['BACKUP']} Workspace backup created: {backup_path}{Style.RESET_ALL}")
        return backup_path

    def clean_workspace_storage(self, workspace_path: Optional[str] = None) -> WorkspaceCleanResult:
        """Archive workspaceStorage next to itself, then delete what was archived.

        Files that could not be archived are kept. Per-entry failures are reported
        in the result rather than raised; the directory itself is left in place.

        Raises:
            NotFoundError: the directory does not exist
            WriteFailureError: the archive could not be created (nothing is deleted)
        """
        path = self._resolve(workspace_path)
        if not path or not os.path.isdir(path):
            raise NotFoundError(f"Workspace storage directory not found: {path}")

        info = self.get_workspace_info(path)
        print(f"{Fore.CYAN}{EMOJI['FOLDER']} Cleaning workspace storage ({info.total_files} files, {format_size(info.total_size)})...{Style.RESET_ALL}")

        backup_path, archived, failed_compressions = self._archive(path)
        print(f"{Fore.GREEN}{EMOJI['BACKUP']} Backup created: {backup_path}{Style.RESET_ALL}")

        result = WorkspaceCleanResult(backup_path=backup_path, failed_compressions=failed_compressions)

        for file_path in archived:
            try:
                os.remove(file_path)
                result.deleted_files_count += 1
            except OSError as e:
                logger.warning(f"Failed to delete {file_path}: {e}")
                result.failed_operations.append(FailedOperation(type="file", path=file_path, error=str(e)))

        for dirpath, _, _ in os.walk(path, topdown=False):
            if os.path.samefile(dirpath, path):
                continue
            try:
                # directories still holding unarchived files are left alone
                if not os.listdir(dirpath):
                    os.rmdir(dirpath)
            except OSError as e:
                logger.warning(f"Failed to remove directory {dirpath}: {e}")
                result.failed_operations.append(FailedOperation(type="directory", path=dirpath, error=str(e)))

        failures = len(result.failed_operations) + len(result.failed_compressions)
        if failures:
            print(f"{Fore.YELLOW}{EMOJI['WARNING']} Workspace cleaned with {failures} failures{Style.RESET_ALL}")
        else:
            print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Workspace cleaned: {result.deleted_files_count} files deleted{Style.RESET_ALL}")
        logger.info(f"Workspace storage cleaned: {result.deleted_files_count} files deleted, {failures} failures")
        return result

    def restore_workspace_backup(self, backup_path: str, target_path: Optional[str] = None) -> str:
        """Extract a workspace archive into target_path (default: workspaceStorage)"""
        target = self._resolve(target_path)
        if not os.path.isfile(backup_path):
            raise NotFoundError(f"Workspace backup not found: {backup_path}")

        try:
            with zipfile.ZipFile(backup_path) as zf:
                root = os.path.realpath(target)
                for name in zf.namelist():
                    destination = os.path.realpath(os.path.join(root, name))
                    if destination != root and not destination.startswith(root + os.sep):
                        raise WriteFailureError(f"Archive entry escapes target directory: {name}")
                os.makedirs(target, exist_ok=True)
                zf.extractall(target)
        except zipfile.BadZipFile as e:
            raise ParseError(f"Not a valid workspace backup: {backup_path}") from e
        except OSError as e:
            raise WriteFailureError(f"Failed to restore workspace backup: {e}") from e

        logger.info(f"Workspace restored from {backup_path} into {target}")
        print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Workspace restored into {target}{Style.RESET_ALL}")
        return target
