"""
Request-level authorization, evaluated before any protected handler runs.

Every HTTP request is classified by method and path:

- PUBLIC: storefront pages, read-only product API, auth endpoints, docs.
- ADMIN_PAGE: browser routes under /admin; token read from the auth cookie,
  failures redirect (login page when unauthenticated, home when not admin).
- ADMIN_API: mutating requests on the product resource; token read from the
  Authorization header, failures return 401/403 JSON.
- PROTECTED_API: everything else; bearer header with cookie fallback, any role.

The wrapped app is only called once the awaited token verification has
resolved, so a handler never starts before the decision is made.
"""

import logging
from enum import Enum

from fastapi import status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core.security import (
    TokenClaims,
    TokenService,
    extract_bearer_token,
    extract_cookie_token,
)

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = "Authentication required"
ADMIN_REQUIRED_MESSAGE = "Admin access required"

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

PUBLIC_ROUTES = frozenset(
    {
        "/",
        "/login",
        "/register",
        "/products",
        "/favicon.ico",
        "/auth/login",
        "/auth/register",
        "/auth/logout",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/openapi.json",
    }
)
PUBLIC_PREFIXES = ("/products/", "/static/")


class RouteClass(str, Enum):
    PUBLIC = "public"
    ADMIN_PAGE = "admin_page"
    ADMIN_API = "admin_api"
    PROTECTED_API = "protected_api"


def _under(path: str, root: str) -> bool:
    return path == root or path.startswith(root + "/")


def classify_route(method: str, path: str, api_prefix: str = "/api") -> RouteClass:
    """Map a request to the checks it needs. Pure; the tables above are read-only."""
    method = method.upper()
    if len(path) > 1:
        path = path.rstrip("/")
    if method == "OPTIONS":
        # CORS preflight never carries credentials.
        return RouteClass.PUBLIC
    if _under(path, "/admin"):
        return RouteClass.ADMIN_PAGE
    if _under(path, f"{api_prefix}/products"):
        return RouteClass.PUBLIC if method in SAFE_METHODS else RouteClass.ADMIN_API
    if _under(path, f"{api_prefix}/health"):
        return RouteClass.PUBLIC
    if path in PUBLIC_ROUTES or path.startswith(PUBLIC_PREFIXES):
        return RouteClass.PUBLIC
    return RouteClass.PROTECTED_API


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "message": AUTH_REQUIRED_MESSAGE},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"success": False, "message": ADMIN_REQUIRED_MESSAGE},
    )


class AccessGuardMiddleware:
    """Raw ASGI middleware; avoids BaseHTTPMiddleware wrapping the request stream."""

    def __init__(
        self,
        app: ASGIApp,
        token_service: TokenService,
        cookie_name: str = "auth-token",
        login_path: str = "/login",
        home_path: str = "/",
        api_prefix: str = "/api",
    ) -> None:
        self.app = app
        self.token_service = token_service
        self.cookie_name = cookie_name
        self.login_path = login_path
        self.home_path = home_path
        self.api_prefix = api_prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        path = scope.get("path") or "/"
        route_class = classify_route(request.method, path, self.api_prefix)
        if route_class is RouteClass.PUBLIC:
            await self.app(scope, receive, send)
            return

        if route_class is RouteClass.ADMIN_PAGE:
            token = extract_cookie_token(request.cookies, self.cookie_name)
        elif route_class is RouteClass.ADMIN_API:
            token = extract_bearer_token(request.headers.get("authorization"))
        else:
            token = extract_bearer_token(
                request.headers.get("authorization")
            ) or extract_cookie_token(request.cookies, self.cookie_name)

        claims = await self.token_service.verify(token)
        denial = self._deny(route_class, claims, path, has_token=token is not None)
        if denial is not None:
            await denial(scope, receive, send)
            return

        scope.setdefault("state", {})["auth_claims"] = claims
        await self.app(scope, receive, send)

    def _deny(
        self,
        route_class: RouteClass,
        claims: TokenClaims | None,
        path: str,
        has_token: bool,
    ) -> JSONResponse | RedirectResponse | None:
        """Return the short-circuit response for a failed check, or None to allow."""
        needs_admin = route_class in (RouteClass.ADMIN_PAGE, RouteClass.ADMIN_API)
        if claims is None:
            logger.info(
                "Access denied: unauthenticated route_class=%s path=%s token_present=%s",
                route_class.value,
                path,
                has_token,
            )
            if route_class is RouteClass.ADMIN_PAGE:
                return RedirectResponse(url=self.login_path, status_code=status.HTTP_302_FOUND)
            return _unauthorized()
        if needs_admin and not claims.is_admin:
            logger.info(
                "Access denied: role=%s route_class=%s path=%s",
                claims.role,
                route_class.value,
                path,
            )
            if route_class is RouteClass.ADMIN_PAGE:
                return RedirectResponse(url=self.home_path, status_code=status.HTTP_302_FOUND)
            return _forbidden()
        return None
