"""Authentication module.

Provides password hashing, JWT issuance/verification, bearer-token
authentication, the account service, and auth routes.
"""

from account_api.auth.deps import authenticate, get_current_user_id
from account_api.auth.jwt import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenClaims,
    TokenError,
    TokenIssuer,
    TokenSecretMissingError,
)
from account_api.auth.password import (
    HashingError,
    PasswordHasher,
    UnsupportedPasswordError,
)
from account_api.auth.routes import profile_router
from account_api.auth.routes import router as auth_router
from account_api.auth.service import (
    AccountError,
    AccountService,
    AuthResult,
    PublicUser,
)

__all__ = [
    "AccountError",
    "AccountService",
    "AuthResult",
    "ExpiredTokenError",
    "HashingError",
    "InvalidTokenError",
    "PasswordHasher",
    "PublicUser",
    "TokenClaims",
    "TokenError",
    "TokenIssuer",
    "TokenSecretMissingError",
    "UnsupportedPasswordError",
    "auth_router",
    "authenticate",
    "get_current_user_id",
    "profile_router",
]
