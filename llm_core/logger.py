"""Structured logging for the model abstraction layer."""

import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from enum import Enum


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class StructuredLogger:
    """Structured logger that outputs JSON formatted logs.

    A logger can be bound to extra fields (a call id, a model name) with
    ``bind``; the bound copy shares the name and redaction rules but carries
    its own context, so concurrent calls never see each other's fields.
    """

    _redact_patterns = ("api_key", "token", "secret", "password")

    def __init__(self, name: str = "llm-core", context: Optional[Dict[str, Any]] = None):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            context: Fields attached to every entry written by this logger
        """
        self.name = name
        self.context: Dict[str, Any] = dict(context or {})

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a logger that adds ``fields`` to every entry."""
        return StructuredLogger(self.name, {**self.context, **fields})

    def _is_sensitive(self, key: str) -> bool:
        # "api_key" and "auth_token" are secrets, "tokens_generated" is not
        lowered = key.lower()
        return any(
            lowered == pattern or lowered.endswith(f"_{pattern}")
            for pattern in self._redact_patterns
        )

    def _format_log(
        self,
        level: LogLevel,
        message: str,
        **fields: Any
    ) -> str:
        """
        Format log entry as JSON.

        Args:
            level: Log level
            message: Log message
            **fields: Additional structured fields

        Returns:
            JSON formatted log string
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
            "level": level.value,
            "name": self.name,
            "message": message,
        }

        for key, value in {**self.context, **fields}.items():
            if self._is_sensitive(key):
                if isinstance(value, str) and len(value) > 4:
                    log_entry[key] = f"***{value[-4:]}"
                else:
                    log_entry[key] = "***"
            else:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)

    def debug(self, message: str, **fields: Any) -> None:
        """Log debug message."""
        print(self._format_log(LogLevel.DEBUG, message, **fields), file=sys.stdout)

    def info(self, message: str, **fields: Any) -> None:
        """Log info message."""
        print(self._format_log(LogLevel.INFO, message, **fields), file=sys.stdout)

    def warn(self, message: str, **fields: Any) -> None:
        """Log warning message."""
        print(self._format_log(LogLevel.WARN, message, **fields), file=sys.stderr)

    def error(self, message: str, **fields: Any) -> None:
        """Log error message."""
        print(self._format_log(LogLevel.ERROR, message, **fields), file=sys.stderr)


# Global logger instance
_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "llm-core") -> StructuredLogger:
    """
    Get or create global logger instance.

    Args:
        name: Logger name

    Returns:
        StructuredLogger instance
    """
    global _logger
    if _logger is None:
        _logger = StructuredLogger(name)
    return _logger
