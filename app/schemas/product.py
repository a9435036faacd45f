"""Request/response schemas for the product resource."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProductCreate(BaseModel):
    """Fields for a new product."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: float = Field(..., gt=0, description="Unit price, greater than zero")
    category: str = Field(..., min_length=1, max_length=255)
    image_url: str | None = Field(default=None, max_length=2048)
    stock: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    """Partial update; only fields present in the body are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price: float | None = Field(default=None, gt=0)
    category: str | None = Field(default=None, min_length=1, max_length=255)
    image_url: str | None = Field(default=None, max_length=2048)
    stock: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    price: float
    category: str
    image_url: str | None = None
    stock: int
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
