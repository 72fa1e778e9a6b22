import os
import re
import glob
import time
import shutil
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, List, Iterable

from colorama import Fore, Style

from error_handler import NotFoundError, BackupError, ParseError, WriteFailureError

logger = logging.getLogger(__name__)

EMOJI = {
    "BACKUP": "💾",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "RESTORE": "🔄",
}

BACKUP_PATTERN = re.compile(r"^(.+)\.bak\.(\d+)$")


@dataclass
class BackupRecord:
    original_path: str
    backup_path: str
    timestamp: int

    def to_dict(self) -> Dict:
        return asdict(self)


def file_exists(file_path: str) -> bool:
    return bool(file_path) and os.path.exists(file_path)


def generate_backup_path(file_path: str, timestamp: Optional[int] = None) -> str:
    """Backup file name for file_path without creating anything: <path>.bak.<unix seconds>"""
    ts = timestamp if timestamp is not None else int(time.time())
    return f"{file_path}.bak.{ts}"


def parse_backup_path(backup_path: str) -> Optional[BackupRecord]:
    """Split a backup file name back into original path and timestamp, None if it is not one"""
    match = BACKUP_PATTERN.match(backup_path)
    if not match:
        return None
    return BackupRecord(
        original_path=match.group(1),
        backup_path=backup_path,
        timestamp=int(match.group(2))
    )


def create_backup(file_path: str) -> str:
    """Copy file_path to a timestamped sibling before it gets modified.

    Args:
        file_path: File to back up

    Returns:
        str: Path of the new backup file. An existing backup is never
        overwritten; if the name for this second is taken, the next free
        timestamp is used.

    Raises:
        NotFoundError: file_path does not exist
        BackupError: the copy failed
    """
    if not file_exists(file_path):
        raise NotFoundError(f"File not found: {file_path}")

    ts = int(time.time())
    while True:
        backup_path = generate_backup_path(file_path, ts)
        try:
            backup_file = open(backup_path, "xb")
            break
        except FileExistsError:
            ts += 1
        except OSError as e:
            raise BackupError(f"Failed to create backup of {file_path}: {e}") from e

    try:
        with backup_file, open(file_path, "rb") as source_file:
            shutil.copyfileobj(source_file, backup_file)
        shutil.copystat(file_path, backup_path)
    except OSError as e:
        try:
            os.remove(backup_path)
        except OSError as remove_error:
            logger.warning(f"Failed to remove incomplete backup {backup_path}: {remove_error}")
        raise BackupError(f"Failed to create backup of {file_path}: {e}") from e

    logger.info(f"Backup created: {backup_path}")
    print(f"{Fore.GREEN}{EMOJI['BACKUP']} Backup created: {backup_path}{Style.RESET_ALL}")
    return backup_path


def create_multiple_backups(file_paths: Iterable[str]) -> Dict[str, str]:
    """Back up every path, then fail with one error listing all the paths that could not be copied.

    Backups that did succeed are left on disk.
    """
    backups = {}
    errors = []

    for file_path in file_paths:
        try:
            backups[file_path] = create_backup(file_path)
        except (NotFoundError, BackupError) as e:
            errors.append(f"{file_path}: {e}")

    if errors:
        raise BackupError("Some backups failed:\n" + "\n".join(errors))

    return backups


def list_backups(file_path: str) -> List[BackupRecord]:
    """All backups of file_path found beside it, newest first"""
    candidates = glob.glob(glob.escape(file_path) + ".bak.*")
    records = []
    for candidate in candidates:
        record = parse_backup_path(candidate)
        if record and record.original_path == file_path:
            records.append(record)
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


def restore_backup(backup_path: str, target_path: Optional[str] = None) -> str:
    """Copy a backup over its original (or target_path) and return the restored path"""
    if not file_exists(backup_path):
        raise NotFoundError(f"Backup not found: {backup_path}")

    if target_path is None:
        record = parse_backup_path(backup_path)
        if record is None:
            raise ParseError(f"Not a backup file name: {backup_path}")
        target_path = record.original_path

    try:
        shutil.copy2(backup_path, target_path)
    except OSError as e:
        raise WriteFailureError(f"Failed to restore {target_path} from {backup_path}: {e}") from e

    logger.info(f"Restored {target_path} from {backup_path}")
    print(f"{Fore.GREEN}{EMOJI['RESTORE']} Restored {target_path}{Style.RESET_ALL}")
    return target_path
