"""
Logging setup: JSON or text lines, request context, and masking of credentials
and collaborator emails
"""
import json
import logging
import re
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from adjudication.core.config import get_settings

# Per-request fields (request_id, method, path) merged into every JSON line
request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_PROJECT_ROOT = Path(__file__).resolve().parents[3]


class SensitiveDataFilter(logging.Filter):
    """Masks database passwords, tokens and collaborator emails in messages"""

    PATTERNS = [
        (re.compile(r"://([^:/\s]+):([^@/\s]+)@"), r"://\1:***@"),
        (re.compile(r"(password|token|secret|api[_-]?key)(\W{1,3})([^\"'\s&,]+)", re.IGNORECASE), r"\1\2***"),
        (re.compile(r"Bearer\s+\S+"), "Bearer ***"),
        (re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b"), r"\1***@\2"),
    ]

    def mask(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.mask(record.getMessage())
        record.args = None
        return True


class ContextualFormatter(logging.Formatter):
    """One JSON object per line: base fields, request context, then extra= fields"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(request_context.get())
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class LoggingConfig:
    """Process-wide logging configuration"""

    _configured = False

    @classmethod
    def configure(cls, module_levels: Optional[Dict[str, str]] = None):
        """Install handlers once; later calls are no-ops"""
        if cls._configured:
            return

        settings = get_settings()
        levels = {
            "sqlalchemy.engine": "INFO" if settings.log_sqlalchemy else "WARNING",
            "sqlalchemy.pool": "WARNING",
            "uvicorn.access": "WARNING",
            "adjudication": settings.log_level,
        }
        if settings.log_module_levels:
            try:
                levels.update(json.loads(settings.log_module_levels))
            except (json.JSONDecodeError, TypeError):
                print(f"Ignoring malformed LOG_MODULE_LEVELS: {settings.log_module_levels}", file=sys.stderr)
        levels.update(module_levels or {})

        if settings.log_format.lower() == "json":
            formatter: logging.Formatter = ContextualFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            )

        handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if settings.log_file_enabled:
            handlers.append(cls._file_handler(settings.log_file_path, settings.log_file_retention))

        for handler in handlers:
            handler.setFormatter(formatter)
            if not settings.log_sensitive_data:
                handler.addFilter(SensitiveDataFilter())

        logging.basicConfig(level=settings.log_level.upper(), handlers=handlers, force=True)
        for name, level in levels.items():
            logging.getLogger(name).setLevel(level.upper())

        cls._configured = True

    @staticmethod
    def _file_handler(path: str, retention_days: int) -> logging.Handler:
        log_path = Path(path)
        if not log_path.is_absolute():
            log_path = _PROJECT_ROOT / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return TimedRotatingFileHandler(
            filename=str(log_path),
            when="midnight",
            backupCount=retention_days,
            encoding="utf-8"
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        return logging.getLogger(name)

    @classmethod
    def set_context(cls, **fields):
        """Add fields to every log line emitted in the current request"""
        request_context.set({**request_context.get(), **fields})

    @classmethod
    def clear_context(cls):
        request_context.set({})
