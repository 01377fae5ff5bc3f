"""
Logging configuration for fix-plan stream events.

This module provides structured logging of every event the fix-plan
aggregator processes, so a generation run can be reconstructed from the log.
"""

import json
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Any

STREAM_LOGGER_NAME = "gitdepsec.stream_events"


class StreamEventFormatter(logging.Formatter):
    """Custom formatter for stream event logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log records with structured data."""
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in ["event", "repo_key", "scope", "step", "status"]:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if hasattr(record, "sections"):
            log_entry["sections"] = record.sections

        if hasattr(record, "error"):
            log_entry["error"] = record.error

        return json.dumps(log_entry)


def configure_stream_logging(
    log_file: str | None = None,
    log_level: str = "INFO",
    enable_console: bool = True,
) -> None:
    """
    Configure logging for fix-plan stream events.

    Args:
        log_file: Path to log file for stream events (optional)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_console: Whether to also log to console
    """
    logger = logging.getLogger(STREAM_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.propagate = False

    logger.handlers.clear()

    formatter = StreamEventFormatter()

    if log_file:
        file_handler = TimedRotatingFileHandler(
            log_file,
            when='D',
            interval=1,
            backupCount=7,
            encoding='utf-8',
            utc=False
        )
        file_handler.suffix = "%Y%m%d.log"
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)


def get_stream_logger() -> logging.Logger:
    """Get the configured stream event logger."""
    return logging.getLogger(STREAM_LOGGER_NAME)


def summarize_stream_log(log_file: str) -> dict[str, Any]:
    """
    Summarize a stream event log.

    Args:
        log_file: Path to the log file

    Returns:
        Dictionary with event counts, error counts and the repositories seen
    """
    stats: dict[str, Any] = {
        "total_events": 0,
        "events": {},
        "errors": 0,
        "ignored": 0,
        "repositories": {},
    }

    try:
        with open(log_file) as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue

                event = entry.get("event")
                if not event:
                    continue

                stats["total_events"] += 1
                stats["events"][event] = stats["events"].get(event, 0) + 1

                if entry.get("status") == "ignored":
                    stats["ignored"] += 1
                if event == "error":
                    stats["errors"] += 1

                repo_key = entry.get("repo_key", "unknown")
                stats["repositories"][repo_key] = stats["repositories"].get(repo_key, 0) + 1

    except FileNotFoundError:
        pass

    return stats
