"""
Rallypoint logging infrastructure.

Exports the structured logging subsystem, log context helpers and the
health snapshot used by readiness probes.
"""

from rallypoint.core.logging.logger import (
    JSONFormatter,
    LogContext,
    LoggerConfig,
    clear_log_context,
    get_log_context,
    get_logger,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LogContext",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LoggerConfig",
    "JSONFormatter",
]
