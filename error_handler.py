import json
import logging
import os
import threading
import time
import traceback
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List


class CleanerError(Exception):
    """Base class for every error raised by the cleaner services"""


class NotFoundError(CleanerError):
    """A required file or directory does not exist"""


class ParseError(CleanerError):
    """A file exists but its content could not be parsed"""


class WriteFailureError(CleanerError):
    """The filesystem rejected a write"""


class DatabaseError(CleanerError):
    """Opening or querying the state database failed"""


class ProcessError(CleanerError):
    """An OS process command failed or returned unexpected output"""


class BackupError(CleanerError):
    """One or more backup copies could not be created"""


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    NOT_FOUND = "not_found"
    PARSE = "parse"
    WRITE = "write"
    DATABASE = "database"
    PROCESS = "process"
    BACKUP = "backup"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


_CATEGORY_BY_TYPE = [
    (NotFoundError, ErrorCategory.NOT_FOUND),
    (ParseError, ErrorCategory.PARSE),
    (WriteFailureError, ErrorCategory.WRITE),
    (DatabaseError, ErrorCategory.DATABASE),
    (ProcessError, ErrorCategory.PROCESS),
    (BackupError, ErrorCategory.BACKUP),
    (PermissionError, ErrorCategory.PERMISSION),
    (FileNotFoundError, ErrorCategory.NOT_FOUND),
    (json.JSONDecodeError, ErrorCategory.PARSE),
]


@dataclass
class ErrorInfo:
    timestamp: float
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception: Optional[Exception] = None
    traceback: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    user_action: Optional[str] = None


class ErrorHandler:
    """Categorizes, logs and records errors raised while cleaning"""

    def __init__(self, log_file: Optional[str] = None):
        self.log_file = log_file
        self.error_history: List[ErrorInfo] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger('VSCodeAugmentCleaner.ErrorHandler')
        if log_file:
            self._setup_file_logging(log_file)

    def _setup_file_logging(self, log_file: str) -> None:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        self.logger.addHandler(file_handler)

    def categorize_error(self, exception: Exception) -> ErrorCategory:
        """Map an exception (or the cause it wraps) to a category"""
        candidates = [exception]
        if exception.__cause__ is not None:
            candidates.append(exception.__cause__)

        for candidate in candidates:
            for exc_type, category in _CATEGORY_BY_TYPE:
                if isinstance(candidate, exc_type):
                    return category
        return ErrorCategory.UNKNOWN

    def determine_severity(self, category: ErrorCategory) -> ErrorSeverity:
        """Mutations that can leave the editor state half-written rank highest"""
        if category in (ErrorCategory.WRITE, ErrorCategory.DATABASE):
            return ErrorSeverity.HIGH
        if category in (ErrorCategory.PERMISSION, ErrorCategory.BACKUP):
            return ErrorSeverity.HIGH
        if category == ErrorCategory.UNKNOWN:
            return ErrorSeverity.LOW
        return ErrorSeverity.MEDIUM

    def handle_error(self, exception: Exception, context: Optional[Dict[str, Any]] = None,
                     user_action: Optional[str] = None) -> ErrorInfo:
        with self._lock:
            category = self.categorize_error(exception)
            error_info = ErrorInfo(
                timestamp=time.time(),
                category=category,
                severity=self.determine_severity(category),
                message=str(exception),
                exception=exception,
                traceback=''.join(traceback.format_exception(type(exception), exception, exception.__traceback__)),
                context=context or {},
                user_action=user_action
            )
            self._log_error(error_info)
            self.error_history.append(error_info)
            return error_info

    def _log_error(self, error_info: ErrorInfo) -> None:
        log_message = f"""
Error Details:
- Category: {error_info.category.value}
- Severity: {error_info.severity.value}
- Message: {error_info.message}
- Timestamp: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(error_info.timestamp))}
- User Action: {error_info.user_action or 'N/A'}
- Context: {json.dumps(error_info.context, indent=2, default=str)}
"""
        if error_info.traceback:
            log_message += f"\nTraceback:\n{error_info.traceback}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message)
        elif error_info.severity == ErrorSeverity.HIGH:
            self.logger.error(log_message)
        else:
            self.logger.warning(log_message)

    def get_error_summary(self, hours: int = 24) -> Dict[str, Any]:
        cutoff_time = time.time() - (hours * 3600)
        recent_errors = [e for e in self.error_history if e.timestamp >= cutoff_time]

        summary = {
            'total_errors': len(recent_errors),
            'by_category': {},
            'by_severity': {},
            'most_common': []
        }
        for error in recent_errors:
            category = error.category.value
            severity = error.severity.value
            summary['by_category'][category] = summary['by_category'].get(category, 0) + 1
            summary['by_severity'][severity] = summary['by_severity'].get(severity, 0) + 1

        summary['most_common'] = Counter(e.message for e in recent_errors).most_common(5)
        return summary

    def clear_history(self) -> None:
        with self._lock:
            self.error_history = []


@contextmanager
def error_context(handler: ErrorHandler, context: Optional[Dict[str, Any]] = None,
                  user_action: Optional[str] = None):
    try:
        yield
    except Exception as e:
        handler.handle_error(e, context, user_action)
        raise


error_handler = ErrorHandler()


def handle_error(exception: Exception, context: Optional[Dict[str, Any]] = None,
                 user_action: Optional[str] = None) -> ErrorInfo:
    return error_handler.handle_error(exception, context, user_action)
