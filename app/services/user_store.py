"""User-record store: lookups and creation over the users table."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import ROLE_USER
from app.models.user import User

logger = logging.getLogger(__name__)


class EmailAlreadyRegisteredError(Exception):
    """Raised when the unique index on users.email rejects a new account."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """Thin data-access wrapper; callers own the session lifecycle."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_email(self, email: str) -> User | None:
        return (
            self.db.query(User)
            .filter(User.email == normalize_email(email))
            .first()
        )

    def find_by_id(self, user_id: str) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def create(
        self,
        email: str,
        password_hash: str,
        name: str | None = None,
        role: str = ROLE_USER,
    ) -> User:
        """Persist a new account. Raises EmailAlreadyRegisteredError on a duplicate email."""
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            name=name or None,
            role=role,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise EmailAlreadyRegisteredError(user.email) from e
        self.db.refresh(user)
        logger.info("Created user id=%s role=%s", user.id, user.role)
        return user
