"""
ExamDash - Centralized Logging Configuration
Plain text in development, JSON structured logs in production
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from examdash.config import settings


# Context variable for tracing a drain pass across log lines
sync_id_var: ContextVar[str] = ContextVar('sync_id', default='')

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'sync_id',
}


def get_sync_id() -> str:
    """Get current sync pass ID from context"""
    return sync_id_var.get() or ''


def set_sync_id(sync_id: str) -> None:
    """Set sync pass ID in context"""
    sync_id_var.set(sync_id)


def generate_sync_id() -> str:
    """Generate a short unique ID for a drain pass"""
    return str(uuid.uuid4())[:8]


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        sync_id = get_sync_id()
        if sync_id:
            log_data["sync_id"] = sync_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """
    Readable formatter that includes the current sync pass ID
    """

    def format(self, record: logging.LogRecord) -> str:
        record.sync_id = get_sync_id() or '-'
        return super().format(record)


class ExamDashLogger(logging.Logger):
    """
    Logger with convenience methods for the offline layer's events
    """

    def log_replay(self, method: str, url: str, status_code: Optional[int],
                   action_id: int, success: bool, **kwargs) -> None:
        """Log the outcome of replaying one queued action"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"Replay #{action_id} {method} {url} - "
            f"{status_code if status_code is not None else 'no response'}"
            f" ({'ok' if success else 'kept in queue'})",
            extra={
                "event_type": "replay",
                "action_id": action_id,
                "http_method": method,
                "http_url": url,
                "http_status": status_code,
                "replay_success": success,
                **kwargs
            }
        )

    def log_storage_event(self, operation: str, key: str, **kwargs) -> None:
        """Log offline store reads and writes"""
        self.debug(
            f"Store {operation}: {key}",
            extra={
                "event_type": "storage",
                "storage_operation": operation,
                "storage_key": key,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )


def setup_logging() -> ExamDashLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(ExamDashLogger)

    logger = logging.getLogger("examdash")
    logger.__class__ = ExamDashLogger
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()

    is_production = settings.ENVIRONMENT == "production"

    if is_production:
        formatter = JSONFormatter()
        console_formatter = formatter
    else:
        formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | [%(sync_id)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        console_formatter = ContextualFormatter("%(levelname)-8s | %(message)s")

    # stderr keeps CLI output on stdout clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING if not settings.DEBUG else logging.DEBUG)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    return logger


logger: ExamDashLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_sync_id',
    'set_sync_id',
    'generate_sync_id',
    'ExamDashLogger',
    'JSONFormatter',
    'ContextualFormatter',
]
