"""Database module for the API.

Provides the SQLAlchemy user model, async engine/session setup, and the
user store used by the account service.
"""

from account_api.db.database import (
    Base,
    create_engine,
    create_session_factory,
    init_db,
)
from account_api.db.models import User
from account_api.db.store import (
    CreateUserResult,
    EmailTaken,
    UserCreated,
    UserRecord,
    UserStore,
)

__all__ = [
    "Base",
    "CreateUserResult",
    "EmailTaken",
    "User",
    "UserCreated",
    "UserRecord",
    "UserStore",
    "create_engine",
    "create_session_factory",
    "init_db",
]
