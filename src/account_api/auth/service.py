"""Account signup, login, and profile lookup.

The service is stateless between calls. It validates input, hashes and
verifies passwords, talks to the user store, and issues tokens. Failures are
raised as :class:`AccountError` subclasses that carry the HTTP status and the
message shown to the client.
"""

import logging
import re

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from account_api.auth.jwt import TokenError, TokenIssuer
from account_api.auth.password import (
    HashingError,
    PasswordHasher,
    UnsupportedPasswordError,
)
from account_api.db.store import EmailTaken, UserRecord, UserStore

logger = logging.getLogger("account-api-auth")

EMAIL_REGEX = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# TODO: raise to 8 (NIST SP 800-63B minimum)
MIN_PASSWORD_LENGTH = 6


# =============================================================================
# Errors
# =============================================================================


class AccountError(Exception):
    """Base class for account failures that map to a client response."""

    status_code = 500
    message = "Server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingFieldsError(AccountError):
    status_code = 400
    message = "Missing required fields"


class InvalidEmailError(AccountError):
    status_code = 400
    message = "Invalid email"


class WeakPasswordError(AccountError):
    status_code = 400
    message = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"


class InvalidPasswordError(AccountError):
    status_code = 400
    message = "Password contains unsupported characters"


class EmailExistsError(AccountError):
    status_code = 409
    message = "Email already exists"


class MissingCredentialsError(AccountError):
    status_code = 400
    message = "Missing email or password"


class InvalidCredentialsError(AccountError):
    """Unknown email and wrong password both raise this, with the same message."""

    status_code = 401
    message = "Invalid credentials"


class ProfileNotFoundError(AccountError):
    status_code = 404
    message = "Not found"


class AccountInternalError(AccountError):
    status_code = 500
    message = "Server error"


# =============================================================================
# Results
# =============================================================================


class PublicUser(BaseModel):
    """User fields that are safe to return to clients."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    email: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    phone: str | None = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "PublicUser":
        return cls(
            id=record.id,
            email=record.email,
            first_name=record.first_name,
            last_name=record.last_name,
            phone=record.phone,
        )


class AuthResult(BaseModel):
    """A user together with a freshly issued token."""

    user: PublicUser
    token: str


# =============================================================================
# Service
# =============================================================================


class AccountService:
    def __init__(self, store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer):
        self._store = store
        self._hasher = hasher
        self._issuer = issuer

    async def signup(
        self,
        first_name: str | None,
        last_name: str | None,
        email: str | None,
        password: str | None,
        phone: str | None = None,
    ) -> AuthResult:
        """Register a new user and issue a token.

        Raises:
            MissingFieldsError, InvalidEmailError, WeakPasswordError,
            InvalidPasswordError: Bad input.
            EmailExistsError: The email (case-insensitive) is taken.
            AccountInternalError: Hashing, storage, or token issuance failed.
        """
        if not first_name or not last_name or not email or not password:
            raise MissingFieldsError()
        if not EMAIL_REGEX.fullmatch(email):
            raise InvalidEmailError()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPasswordError()
        if "\x00" in password:
            raise InvalidPasswordError()

        # Refuse before writing anything if no token could be issued afterwards
        if not self._issuer.enabled:
            logger.error("Signup refused: token signing secret is not configured")
            raise AccountInternalError()

        try:
            password_hash = await self._hasher.hash_async(password)
        except UnsupportedPasswordError as e:
            raise InvalidPasswordError() from e
        except HashingError as e:
            logger.exception("Signup failed: %s", type(e).__name__)
            raise AccountInternalError() from e

        try:
            result = await self._store.create_user(
                email=email.lower(),
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone or None,
            )
        except SQLAlchemyError as e:
            logger.exception("Signup failed: %s", type(e).__name__)
            raise AccountInternalError() from e

        if isinstance(result, EmailTaken):
            raise EmailExistsError()

        user = result.user
        token = self._issue(user)
        logger.info("Registered user %s", user.id)
        return AuthResult(user=PublicUser.from_record(user), token=token)

    async def login(self, email: str | None, password: str | None) -> AuthResult:
        """Check credentials and issue a token.

        Raises:
            MissingCredentialsError: Email or password missing.
            InvalidCredentialsError: Unknown email or wrong password.
            AccountInternalError: Token issuance failed.
        """
        if not email or not password:
            raise MissingCredentialsError()

        user = await self._store.find_by_email(email.lower())
        if user is None:
            await self._hasher.verify_dummy_async(password)
            raise InvalidCredentialsError()

        if not await self._hasher.verify_async(password, user.password_hash):
            raise InvalidCredentialsError()

        token = self._issue(user)
        logger.info("Login: %s", user.id)
        return AuthResult(user=PublicUser.from_record(user), token=token)

    async def get_profile(self, user_id: str) -> PublicUser:
        """Return the public profile of an authenticated user.

        Raises:
            ProfileNotFoundError: The account no longer exists.
        """
        user = await self._store.find_by_id(user_id)
        if user is None:
            raise ProfileNotFoundError()
        return PublicUser.from_record(user)

    def _issue(self, user: UserRecord) -> str:
        try:
            return self._issuer.issue(user.id, user.email)
        except TokenError as e:
            logger.exception("Token issuance failed for user %s", user.id)
            raise AccountInternalError() from e
