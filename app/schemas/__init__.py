"""Pydantic request/response schemas."""

from app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserPublic
from app.schemas.common import ApiResponse, ErrorResponse, HealthResponse
from app.schemas.product import ProductCreate, ProductOut, ProductUpdate

__all__ = [
    "ApiResponse",
    "AuthResponse",
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "ProductCreate",
    "ProductOut",
    "ProductUpdate",
    "RegisterRequest",
    "UserPublic",
]
