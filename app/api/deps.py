"""Shared FastAPI dependencies: settings, token service, user store and auth guards."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import get_db
from app.core.security import TokenClaims, TokenService, extract_cookie_token
from app.services.user_store import UserStore

security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_user_store(db: Annotated[Session, Depends(get_db)]) -> UserStore:
    return UserStore(db)


async def get_current_claims(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> TokenClaims:
    """
    Dependency: claims of the authenticated caller. Raises 401 if missing or invalid.

    Reuses the claims the access guard already verified; otherwise verifies
    the bearer header (or the auth cookie) itself.
    """
    claims = getattr(request.state, "auth_claims", None)
    if claims is None:
        token = credentials.credentials if credentials is not None else None
        if not token:
            token = extract_cookie_token(
                request.cookies, get_app_settings(request).AUTH_COOKIE_NAME
            )
        claims = await get_token_service(request).verify(token)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def require_admin(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
) -> TokenClaims:
    """Dependency: require role 'ADMIN'. Raises 403 for other roles."""
    if not claims.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return claims
