"""HTTP routes. Auth and admin pages live at the site root; the product API under API_PREFIX."""

from fastapi import APIRouter

from app.api.routes import admin, auth, health, products

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(products.router, prefix="/products", tags=["products"])

site_router = APIRouter()
site_router.include_router(auth.router, prefix="/auth", tags=["auth"])
site_router.include_router(admin.router, prefix="/admin", tags=["admin"])
