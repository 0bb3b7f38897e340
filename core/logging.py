import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# --- Constants ---
LOGGER_NAME = 'restheal'
LOG_FILE_NAME = 'llm.log'
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

class JsonFormatter(logging.Formatter):
    """
    Formats log records as a JSON string.

    Structured fields passed as ``extra={"context": {...}}`` are emitted under
    the ``context`` key.
    """
    def format(self, record):
        log_object = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            log_object["context"] = context
        if record.exc_info:
            log_object['exc_info'] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)

def setup_logging(log_level: Union[int, str] = logging.INFO, log_dir: Optional[Path] = None):
    """
    Configures the package logger.
    - Console: Human-readable plain text.
    - File (only when log_dir is given): Machine-readable JSON, with rotation.
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())

    pkg_logger = logging.getLogger(LOGGER_NAME)
    pkg_logger.setLevel(log_level)

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    # Clear existing handlers to avoid duplicates
    if pkg_logger.hasHandlers():
        pkg_logger.handlers.clear()
    pkg_logger.addHandler(console_handler)

    # --- Rotating File Handler (JSON) ---
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(JsonFormatter())
        pkg_logger.addHandler(file_handler)

    return pkg_logger

def snippet(text: Optional[str], limit: int = 80) -> str:
    """Single-line, truncated rendering of a prompt for log output."""
    if not text:
        return ""
    flat = text.replace("\n", " ")
    return flat if len(flat) <= limit else flat[:limit] + "..."

# Shared logger; handlers are installed by setup_logging() at the entry point.
logger = logging.getLogger(LOGGER_NAME)
