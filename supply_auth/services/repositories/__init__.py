"""Repository layer - data access abstraction.

The authentication core depends only on the ``AccountStore`` interface.
``SqlAccountStore`` is the SQLAlchemy implementation used by the API; tests
substitute an in-memory implementation of the same interface.

Dependency direction: Services -> AccountStore -> Models
"""

from .account_store import AccountStore
from .exceptions import CooldownActiveError, DuplicateError, NotFoundError, RepositoryError
from .sql_account_store import SqlAccountStore

__all__ = [
    "AccountStore",
    "CooldownActiveError",
    "DuplicateError",
    "NotFoundError",
    "RepositoryError",
    "SqlAccountStore",
]
