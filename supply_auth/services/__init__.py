"""Services layer - business logic and external integrations.

This module is organized into domain-based subpackages:
- auth/: Authentication engine (sessions, second factor, OAuth2, API keys)
- repositories/: Account Store interface and SQL implementation
- shared/: Shared utilities

Common imports for convenience:
    from supply_auth.services import AccountStore, SqlAccountStore
"""

# Re-export commonly used components for convenience
from supply_auth.services.repositories import (
    AccountStore,
    CooldownActiveError,
    DuplicateError,
    NotFoundError,
    RepositoryError,
    SqlAccountStore,
)

__all__ = [
    # Repositories
    "AccountStore",
    "CooldownActiveError",
    "DuplicateError",
    "NotFoundError",
    "RepositoryError",
    "SqlAccountStore",
]
