"""
Core infrastructure package for the cold case backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- Domain error types and their HTTP mapping
- UTC time helpers

FastAPI dependencies live in coldcase.core.dependencies and are not
re-exported here, since they depend on the services package.

Usage Examples:
    from coldcase.core import get_settings, ValidationError
    settings = get_settings()
"""

from coldcase.core.config import Settings, get_settings
from coldcase.core.database import close_db, get_db_pool, init_db
from coldcase.core.errors import (
    ColdCaseError,
    ConflictError,
    NotFoundError,
    TransientDependencyError,
    ValidationError,
    to_http_exception,
)
from coldcase.core.timeutil import utc_now

__all__ = [
    "Settings",
    "get_settings",
    "init_db",
    "close_db",
    "get_db_pool",
    "ColdCaseError",
    "ConflictError",
    "NotFoundError",
    "TransientDependencyError",
    "ValidationError",
    "to_http_exception",
    "utc_now",
]
