"""ORM model for catalog products."""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, func

from app.models.base import Base
from app.models.user import _new_id


class Product(Base):
    """
    Catalog entry. Deleting a product only clears is_active so that
    historical references keep resolving.
    """

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    category = Column(String(255), nullable=False, index=True)
    image_url = Column(String(2048), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
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
