"""Utility modules for the story worker."""

from bedtime.utils.logging import (
    get_logger,
    get_log_buffer,
    configure_logging,
    LogLevel,
    LogEntry,
    AppLogger,
    job_logger,
    queue_logger,
    provider_logger,
    storage_logger,
)

__all__ = [
    "get_logger",
    "get_log_buffer",
    "configure_logging",
    "LogLevel",
    "LogEntry",
    "AppLogger",
    "job_logger",
    "queue_logger",
    "provider_logger",
    "storage_logger",
]
