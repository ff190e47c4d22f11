"""
Database Package Initialization.

============================================================
DECISION EVIDENCE PERSISTENCE
============================================================

Shared SQLAlchemy plumbing for the packages that persist
decision records:

- readiness.models: immutable readiness evaluation evidence
- entitlement_engine.models: entitlement audit entries

All writes go through transaction_scope() with explicit
commit/rollback. Failures raise DatabasePersistenceError; the
store adapters above decide whether to log-and-swallow.

============================================================
"""

from .engine import (
    # Declarative base
    Base,

    # Engine creation
    get_database_url,
    create_database_engine,
    get_engine,

    # Session management
    get_session_factory,
    transaction_scope,

    # Database initialization
    initialize_database,
    verify_database_connection,
    create_all_tables,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)


__all__ = [
    "Base",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "get_session_factory",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "create_all_tables",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
