"""
Core infrastructure layer.

Purpose
-------
Single import surface for the infrastructure subsystems:

- Configuration management (Config, ConfigManager)
- Database subsystem (DatabaseService, DatabaseRetryPolicy)
- Logging (structured logging, logger factory)
- Infrastructure exceptions

Design Decisions
----------------
- Thin: no logic, no configuration, no I/O beyond what submodules do at import.
- Feature modules import from their own domains; validation and the event
  bus are imported from their packages directly.
"""

from __future__ import annotations

from rallypoint.core.config import Config, ConfigManager
from rallypoint.core.database import DatabaseRetryPolicy, DatabaseService
from rallypoint.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    RallyInfrastructureException,
)
from rallypoint.core.logging import get_logger, setup_logging

__all__ = [
    # Configuration
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    "DatabaseRetryPolicy",
    # Logging
    "setup_logging",
    "get_logger",
    # Infrastructure Exceptions
    "RallyInfrastructureException",
    "ConfigurationError",
    "ErrorSeverity",
]
