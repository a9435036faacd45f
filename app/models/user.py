"""ORM model for storefront accounts (auth and RBAC)."""

import uuid

from sqlalchemy import Column, DateTime, String, func

from app.models.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Account used for login/registration and role-based access control.

    role: 'USER' or 'ADMIN'. email is stored normalized (trimmed, lower-case).
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(16), nullable=False, default="USER")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
