"""Password hashing utilities using bcrypt.

Uses passlib with bcrypt for secure password hashing. Hashing is CPU-bound,
so the async helpers run it in the thread pool.
"""

import logging
import secrets
from functools import cached_property

from fastapi.concurrency import run_in_threadpool
from passlib.context import CryptContext
from passlib.exc import PasswordValueError

from account_api.config import DEFAULT_BCRYPT_ROUNDS

logger = logging.getLogger("account-api-auth")


class HashingError(Exception):
    """Raised when the hashing backend fails to produce a hash."""

    pass


class UnsupportedPasswordError(ValueError):
    """Raised for passwords bcrypt cannot represent, such as ones containing NUL."""

    pass


class PasswordHasher:
    """Salted bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )

    def hash(self, password: str) -> str:
        """Generate a bcrypt hash of a password.

        A fresh random salt is used on every call, so hashing the same
        password twice yields different strings.

        Raises:
            UnsupportedPasswordError: If the password contains a NUL byte.
            HashingError: If the bcrypt backend fails.
        """
        try:
            return self._context.hash(password)
        except PasswordValueError as e:
            raise UnsupportedPasswordError(str(e)) from e
        except Exception as e:
            raise HashingError("Password hashing failed") from e

    def verify(self, password: str, hashed_password: str) -> bool:
        """Verify a password against its hash.

        Returns:
            True if the password matches, False on mismatch or if the stored
            hash is malformed.
        """
        if not hashed_password:
            return False
        try:
            return self._context.verify(password, hashed_password)
        except PasswordValueError:
            return False
        except (ValueError, TypeError):
            logger.warning("Stored password hash could not be verified")
            return False

    @cached_property
    def dummy_hash(self) -> str:
        """Hash of a random string at the configured cost, never matched by any password."""
        return self._context.hash(secrets.token_urlsafe(32))

    async def hash_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, password: str, hashed_password: str) -> bool:
        return await run_in_threadpool(self.verify, password, hashed_password)

    async def verify_dummy_async(self, password: str) -> bool:
        """Spend one verification on :attr:`dummy_hash` and return False.

        Used when there is no stored hash to check, so the caller takes as
        long as a real mismatch.
        """
        await run_in_threadpool(lambda: self.verify(password, self.dummy_hash))
        return False
