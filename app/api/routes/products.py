"""Product resource: public reads, admin-only create/update/soft-delete."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.core.security import TokenClaims
from app.models.product import Product
from app.schemas.common import ApiResponse
from app.schemas.product import ProductCreate, ProductOut, ProductUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

# Columns that cannot be cleared; an explicit null in an update is ignored.
NON_NULLABLE_FIELDS = frozenset({"name", "price", "category", "stock", "is_active"})


def _get_or_404(db: Session, product_id: str) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("", response_model=ApiResponse[list[ProductOut]])
def list_products(
    db: Annotated[Session, Depends(get_db)],
    category: str | None = None,
    search: str | None = None,
) -> ApiResponse[list[ProductOut]]:
    """Active products, newest first; optional category and case-insensitive name/description search."""
    query = db.query(Product).filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        )
    products = query.order_by(Product.created_at.desc()).all()
    return ApiResponse[list[ProductOut]](
        message=f"Fetched {len(products)} products",
        data=[ProductOut.model_validate(p) for p in products],
    )


@router.get("/{product_id}", response_model=ApiResponse[ProductOut])
def get_product(
    product_id: str,
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[ProductOut]:
    product = _get_or_404(db, product_id)
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


@router.post("", response_model=ApiResponse[ProductOut], status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    admin: Annotated[TokenClaims, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[ProductOut]:
    product = Product(**body.model_dump(), is_active=True)
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product created id=%s by user id=%s", product.id, admin.user_id)
    return ApiResponse[ProductOut](
        message="Product created successfully",
        data=ProductOut.model_validate(product),
    )


@router.put("/{product_id}", response_model=ApiResponse[ProductOut])
def update_product(
    product_id: str,
    body: ProductUpdate,
    admin: Annotated[TokenClaims, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[ProductOut]:
    product = _get_or_404(db, product_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    logger.info("Product updated id=%s by user id=%s", product.id, admin.user_id)
    return ApiResponse[ProductOut](
        message="Product updated successfully",
        data=ProductOut.model_validate(product),
    )


@router.delete("/{product_id}", response_model=ApiResponse[ProductOut])
def delete_product(
    product_id: str,
    admin: Annotated[TokenClaims, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[ProductOut]:
    """Soft delete: the row stays, is_active becomes false."""
    product = _get_or_404(db, product_id)
    product.is_active = False
    db.commit()
    db.refresh(product)
    logger.info("Product deactivated id=%s by user id=%s", product.id, admin.user_id)
    return ApiResponse[ProductOut](
        message="Product deleted successfully",
        data=ProductOut.model_validate(product),
    )
