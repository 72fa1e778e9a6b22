import shutil
import sqlite3
import logging
from pathlib import Path
from contextlib import closing
from dataclasses import dataclass, asdict, field
from typing import Optional, Dict, List, Any

from colorama import Fore, Style

from error_handler import NotFoundError, DatabaseError
from file_backup import create_backup, file_exists
from utils import SystemPaths

logger = logging.getLogger(__name__)

EMOJI = {
    "DB": "🗄️",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "INFO": "ℹ️",
}

AUGMENT_KEY_PATTERN = "%augment%"
PREVIEW_LIMIT = 50


@dataclass
class DatabaseCleanResult:
    db_backup_path: str
    deleted_rows: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DatabaseInfo:
    tables: List[str] = field(default_factory=list)
    total_records: int = 0
    augment_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _connect_read_only(db_path: str) -> sqlite3.Connection:
    uri = Path(db_path).resolve().as_uri() + "?mode=ro"
    return sqlite3.connect(uri, uri=True)


def _decode_value(value: Any) -> str:
    # state.vscdb stores values as BLOB or TEXT depending on the writer
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return "" if value is None else str(value)


class SqliteModifier:
    """Removes augment entries from the VS Code state database (ItemTable)"""

    def __init__(self, paths: SystemPaths):
        self.paths = paths

    def clean_augment_data(self) -> DatabaseCleanResult:
        """Back up state.vscdb, then delete every ItemTable row whose key contains 'augment'.

        Raises:
            NotFoundError: the database file does not exist
            DatabaseError: the database could not be opened or written; the file
                has been restored from its backup where possible
        """
        db_path = self.paths.db_path
        if not file_exists(db_path):
            raise NotFoundError(f"Database file not found: {db_path}")

        print(f"{Fore.CYAN}{EMOJI['DB']} Cleaning state.vscdb...{Style.RESET_ALL}")
        db_backup_path = create_backup(db_path)

        try:
            with closing(sqlite3.connect(db_path, timeout=10)) as conn:
                with conn:
                    cursor = conn.execute("DELETE FROM ItemTable WHERE key LIKE ?", (AUGMENT_KEY_PATTERN,))
                    deleted_rows = cursor.rowcount
        except sqlite3.Error as db_err:
            logger.error(f"SQLite database error: {db_err}")
            print(f"{Fore.RED}{EMOJI['ERROR']} SQLite database error: {db_err}{Style.RESET_ALL}")
            try:
                shutil.copy2(db_backup_path, db_path)
                print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Database restored from {db_backup_path}{Style.RESET_ALL}")
            except OSError as restore_err:
                logger.error(f"Failed to restore database backup: {restore_err}")
            raise DatabaseError(f"Failed to clean database: {db_err}") from db_err

        logger.info(f"Deleted {deleted_rows} augment rows from {db_path}")
        print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Deleted {deleted_rows} records from state.vscdb{Style.RESET_ALL}")
        return DatabaseCleanResult(db_backup_path=db_backup_path, deleted_rows=deleted_rows)

    def validate_database(self, file_path: Optional[str] = None) -> bool:
        """True when the file opens as SQLite and has at least one table"""
        path = file_path or self.paths.db_path
        if not file_exists(path):
            return False
        try:
            with closing(_connect_read_only(path)) as conn:
                tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            return len(tables) > 0
        except sqlite3.Error as e:
            logger.debug(f"Database {path} is not valid: {e}")
            return False

    def count_augment_records(self, file_path: Optional[str] = None) -> int:
        path = file_path or self.paths.db_path
        if not file_exists(path):
            return 0
        try:
            with closing(_connect_read_only(path)) as conn:
                (count,) = conn.execute(
                    "SELECT COUNT(*) FROM ItemTable WHERE key LIKE ?", (AUGMENT_KEY_PATTERN,)
                ).fetchone()
            return count
        except sqlite3.Error as e:
            logger.debug(f"Could not count augment records in {path}: {e}")
            return 0

    def get_database_info(self, file_path: Optional[str] = None) -> Optional[DatabaseInfo]:
        path = file_path or self.paths.db_path
        if not file_exists(path):
            return None
        try:
            with closing(_connect_read_only(path)) as conn:
                tables = [row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")]
                (total_records,) = conn.execute("SELECT COUNT(*) FROM ItemTable").fetchone()
                (augment_records,) = conn.execute(
                    "SELECT COUNT(*) FROM ItemTable WHERE key LIKE ?", (AUGMENT_KEY_PATTERN,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Failed to get database info for {path}: {e}")
            return None

        return DatabaseInfo(tables=tables, total_records=total_records, augment_records=augment_records)

    def preview_augment_records(self, file_path: Optional[str] = None,
                                limit: int = PREVIEW_LIMIT) -> List[Dict[str, str]]:
        """Rows clean_augment_data would delete (key and value only)"""
        path = file_path or self.paths.db_path
        if not file_exists(path):
            return []
        try:
            with closing(_connect_read_only(path)) as conn:
                rows = conn.execute(
                    "SELECT key, value FROM ItemTable WHERE key LIKE ? LIMIT ?", (AUGMENT_KEY_PATTERN, limit)
                ).fetchall()
        except sqlite3.Error as e:
            logger.debug(f"Could not preview augment records in {path}: {e}")
            return []

        return [{"key": key, "value": _decode_value(value)} for key, value in rows]
