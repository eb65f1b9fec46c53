"""User persistence.

The store hands plain :class:`UserRecord` values to callers so nothing
outside this module holds on to ORM objects or sessions. Every call runs in
its own session and commits (or rolls back) before returning.
"""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from account_api.db.models import User

logger = logging.getLogger("account-api-store")


@dataclass(frozen=True)
class UserRecord:
    """Detached snapshot of a stored user, including the password hash."""

    id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None
    password_hash: str = field(repr=False)

    @classmethod
    def from_model(cls, user: User) -> "UserRecord":
        return cls(
            id=str(user.id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            password_hash=user.password_hash,
        )


@dataclass(frozen=True)
class UserCreated:
    """The user was inserted."""

    user: UserRecord


@dataclass(frozen=True)
class EmailTaken:
    """Another user already owns this email."""

    email: str


CreateUserResult = UserCreated | EmailTaken


def _is_email_conflict(error: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: users.email"
    # PostgreSQL: 'duplicate key value violates unique constraint "users_email_key"'
    message = str(error.orig).lower()
    return "email" in message and ("unique" in message or "duplicate" in message)


class UserStore:
    """Create and look up users."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_user(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
    ) -> CreateUserResult:
        """Insert a user.

        Returns:
            ``UserCreated`` on success, ``EmailTaken`` if the unique email
            constraint rejected the row.

        Raises:
            SQLAlchemyError: For any other database failure.
        """
        async with self._session_factory() as session:
            user = User(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_email_conflict(e):
                    logger.info("Signup rejected, email already registered")
                    return EmailTaken(email=email)
                raise

            return UserCreated(user=UserRecord.from_model(user))

    async def find_by_email(self, email: str) -> UserRecord | None:
        """Find a user by (already lowercased) email."""
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            return UserRecord.from_model(user) if user is not None else None

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        """Find a user by id. Ids that are not valid UUIDs match nothing."""
        try:
            key = UUID(user_id)
        except (ValueError, TypeError, AttributeError):
            return None

        async with self._session_factory() as session:
            user = await session.get(User, key)
            return UserRecord.from_model(user) if user is not None else None

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user by id. Returns whether a row was removed."""
        try:
            key = UUID(user_id)
        except (ValueError, TypeError, AttributeError):
            return False

        async with self._session_factory() as session:
            user = await session.get(User, key)
            if user is None:
                return False
            await session.delete(user)
            await session.commit()
            return True
