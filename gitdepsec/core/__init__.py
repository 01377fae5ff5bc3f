"""Core utilities for errors and stream event logging."""

from .exceptions import (
    APIError,
    ClientError,
    CriticalStreamError,
    GitDepSecError,
    InvalidRepositoryError,
    NetworkError,
    PlanParseError,
    StreamError,
    ValidationError,
)
from .logging_config import configure_stream_logging, get_stream_logger

__all__ = [
    # Logging
    "configure_stream_logging",
    "get_stream_logger",
    # Exceptions
    "GitDepSecError",
    "ValidationError",
    "InvalidRepositoryError",
    "ClientError",
    "NetworkError",
    "APIError",
    "PlanParseError",
    "StreamError",
    "CriticalStreamError",
]
