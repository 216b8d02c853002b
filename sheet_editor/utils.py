"""
Utility functions for Sheet Editor.
Includes logging, date/time helpers and cell value formatting.
"""

import sys
import time
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

from config import TRUNCATE_LENGTH, LOGGER_NAME, EditorSettings


# ============================================================================
# Date/Time Helpers
# ============================================================================

def utc_now() -> datetime:
    """Return current UTC datetime with timezone info."""
    return datetime.now(timezone.utc)


# ============================================================================
# Logging
# ============================================================================

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utc_now().isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        # Add extra fields if present
        for key in ['document', 'sheet', 'operation', 'url', 'duration_ms', 'error_type']:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


class DailyRotatingFileHandler(logging.FileHandler):
    """
    A file handler that rotates to a new file at midnight UTC.
    Uses YYYYMMDD.log naming format.
    """

    def __init__(self, log_dir: Path, encoding: str = 'utf-8'):
        self.log_dir = log_dir
        self._current_date = utc_now().strftime('%Y%m%d')
        log_file = log_dir / f'{self._current_date}.log'
        super().__init__(log_file, encoding=encoding)

    def emit(self, record):
        """Emit a record, rotating file if date has changed."""
        today = utc_now().strftime('%Y%m%d')
        if today != self._current_date:
            self._rotate_to_new_day(today)
        super().emit(record)

    def _rotate_to_new_day(self, new_date: str):
        """Close current file and open new one for the new date."""
        self._current_date = new_date
        if self.stream:
            self.stream.close()
            self.stream = None
        self.baseFilename = str(self.log_dir / f'{new_date}.log')
        self.stream = self._open()


def setup_logging(settings: EditorSettings, verbose: bool = False) -> logging.Logger:
    """
    Configure the application logger with YYYYMMDD.log files and retention.

    Safe to call more than once; handlers are only added the first time.

    Args:
        settings: Loaded editor settings (log dir, format, level, retention)
        verbose: Force DEBUG level regardless of settings

    Returns:
        The application logger
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    if settings.log_format == 'json':
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s UTC - %(levelname)s - %(message)s')
        formatter.converter = time.gmtime  # Use UTC for log timestamps

    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO)

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level)

    has_rotating_handler = any(
        isinstance(h, DailyRotatingFileHandler) for h in app_logger.handlers
    )
    if not has_rotating_handler:
        file_handler = DailyRotatingFileHandler(log_dir, encoding='utf-8')
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    has_console_handler = any(
        isinstance(h, logging.StreamHandler) and getattr(h, 'stream', None) == sys.stdout
        for h in app_logger.handlers
    )
    if not has_console_handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        app_logger.addHandler(console_handler)

    for handler in app_logger.handlers:
        handler.setLevel(level)

    cleanup_old_logs(log_dir, keep_days=settings.log_retention_days)

    return app_logger


def cleanup_old_logs(log_dir: Path, keep_days: int = 7) -> int:
    """Remove log files older than keep_days. Returns the number removed."""
    cutoff_date = utc_now() - timedelta(days=keep_days)
    removed = 0

    for log_file in log_dir.glob('*.log'):
        try:
            file_date = datetime.strptime(log_file.stem, '%Y%m%d').replace(tzinfo=timezone.utc)
        except ValueError:
            # Skip files that don't match YYYYMMDD format
            continue
        if file_date < cutoff_date:
            log_file.unlink()
            removed += 1
            logger.debug(f"Removed old log file: {log_file.name}")

    return removed


# Application logger; handlers are attached by setup_logging() at startup
logger = logging.getLogger(LOGGER_NAME)


# ============================================================================
# Cell Formatting
# ============================================================================

def stringify_value(value: Any) -> Optional[str]:
    """
    Render a cell value the way it is displayed and searched.

    Returns None for null cells. Booleans render lowercase and integral
    floats drop the trailing ".0" so numbers look the same as in the sheet.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_url(value: Any) -> bool:
    """Check if a cell value is an http(s) URL."""
    if not isinstance(value, str):
        return False
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def truncate_cell(value: Any, limit: int = TRUNCATE_LENGTH) -> str:
    """
    Shorten long text cells for table display.

    URLs and non-string values are never truncated.
    """
    text = stringify_value(value)
    if text is None:
        return ''
    if isinstance(value, str) and not is_url(value) and len(value) > limit:
        return value[:limit] + '...'
    return text


def format_response_body(body: Any) -> str:
    """Render a webhook response body for error display (strings as-is, others as JSON)."""
    if body is None or body == '':
        return ''
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return str(body)


def get_api_headers() -> dict:
    """
    Get minimal headers for webhook requests.

    Content-Type is NOT set here because requests.post(json=...) sets it.
    """
    return {
        "Accept": "application/json",
    }
