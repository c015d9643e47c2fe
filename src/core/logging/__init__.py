"""
Structured logging module.

Provides JSON logging with request correlation and context propagation.
"""

from core.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from core.logging.filters import ComponentFilter, LogContextFilter
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import (
    generate_request_id,
    get_log_file_path,
    get_logger,
    setup_logging,
)
from core.logging.utilities import log_exception, log_with_context

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    "generate_request_id",
    "get_log_file_path",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Filters
    "LogContextFilter",
    "ComponentFilter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Utilities
    "log_with_context",
    "log_exception",
]
