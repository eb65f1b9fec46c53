"""JWT token creation and validation.

Tokens are HS256-signed JWTs carrying the user id (``sub``), the user's
email, and issued-at/expiry timestamps. They are stateless: nothing is
stored server-side and expiry is the only way a token stops working.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from account_api.config import Settings

logger = logging.getLogger("account-api-auth")

ALGORITHM = "HS256"
DEFAULT_EXPIRES_IN = timedelta(days=7)


class TokenError(Exception):
    """Base class for token failures."""

    pass


class InvalidTokenError(TokenError):
    """Token is malformed, unsigned, tampered with, or signed with another secret."""

    pass


class ExpiredTokenError(TokenError):
    """Token signature is valid but its expiry has passed."""

    pass


class TokenSecretMissingError(TokenError):
    """No signing secret is configured, so no token can be issued."""

    pass


class TokenClaims(BaseModel):
    """Verified identity carried by a token."""

    subject: str
    email: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Issues and verifies signed bearer tokens.

    An issuer without a secret can be constructed so the service still
    starts, but it fails closed: ``issue`` always raises and ``verify``
    rejects every token.
    """

    def __init__(
        self,
        secret: str,
        expires_in: timedelta = DEFAULT_EXPIRES_IN,
        algorithm: str = ALGORITHM,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._secret = secret
        self.expires_in = expires_in
        self.algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        if not settings.jwt_secret:
            logger.warning("JWT_SECRET is not set. Auth will fail.")
        return cls(settings.jwt_secret, expires_in=settings.jwt_expires_in)

    @property
    def enabled(self) -> bool:
        """Whether a signing secret is configured."""
        return bool(self._secret)

    def issue(self, subject: str, email: str) -> str:
        """Create a signed token for a user.

        Args:
            subject: The user's id.
            email: The user's (lowercased) email.

        Returns:
            Encoded JWT.

        Raises:
            TokenSecretMissingError: If no signing secret is configured.
        """
        if not self.enabled:
            raise TokenSecretMissingError("JWT secret is not configured")

        now = self._clock()
        to_encode: dict[str, Any] = {
            "sub": str(subject),
            "email": email,
            "iat": now,
            "exp": now + self.expires_in,
        }
        return jwt.encode(to_encode, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            ExpiredTokenError: If the token is past its expiry.
            InvalidTokenError: For any other failure, including when no
                secret is configured.
        """
        if not self.enabled:
            raise InvalidTokenError("JWT secret is not configured")
        if not token:
            raise InvalidTokenError("Empty token")

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise ExpiredTokenError("Token has expired") from e
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e!s}") from e

        subject = payload.get("sub")
        email = payload.get("email")
        if not isinstance(subject, str) or not subject or not isinstance(email, str):
            raise InvalidTokenError("Token is missing required claims")
        if "exp" not in payload:
            raise InvalidTokenError("Token has no expiry")

        return TokenClaims(subject=subject, email=email)
