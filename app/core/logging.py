"""
Structured Logging Configuration
"""

import logging
import sys
from typing import Any, Optional
import json
from datetime import datetime
from .config import settings

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging() -> logging.Logger:
    """Setup application logging"""

    logger = logging.getLogger("adsops")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)

    if settings.LOG_FORMAT == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        )

    logger.addHandler(handler)

    return logger


# Create logger instance
logger = setup_logging()


def mask_token(token: Optional[str], visible: int = 10) -> str:
    """Return a token prefix safe for log output"""
    if not token:
        return "<none>"
    return f"{token[:visible]}..."


def log_error(error: Exception, context: str = "", **kwargs: Any) -> None:
    """Log error with context"""
    logger.error(
        f"{context}: {str(error)}",
        exc_info=True,
        extra={"type": "error", "error_type": type(error).__name__, **kwargs},
    )


def log_service_call(service: str, method: str, **kwargs: Any) -> None:
    """Log service method call"""
    logger.debug(
        f"[{service}] {method}",
        extra={"type": "service_call", "service": service, "method": method, **kwargs},
    )


def log_sync_progress(platform: str, phase: str, percentage: int, **kwargs: Any) -> None:
    """Log a sync progress step"""
    logger.info(
        f"[{platform.upper()}_SYNC] {phase} ({percentage}%)",
        extra={"type": "sync_progress", "platform": platform, "phase": phase, "percentage": percentage, **kwargs},
    )
