"""Login, registration, current-user and logout endpoints."""

import logging
from collections.abc import Callable
from typing import Annotated, Any, TypeVar

import anyio
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import (
    get_app_settings,
    get_current_claims,
    get_token_service,
    get_user_store,
)
from app.core.config import Settings
from app.core.security import (
    BCRYPT_MAX_BYTES,
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    ROLE_USER,
    TokenClaims,
    exceeds_bcrypt_limit,
    hash_password_async,
    verify_password_async,
)
from app.models.user import User
from app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserPublic
from app.schemas.common import ApiResponse
from app.services.user_store import EmailAlreadyRegisteredError, UserStore

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")

INVALID_CREDENTIALS = "Invalid credentials"
MISSING_CREDENTIALS = "Email and password are required."
EMAIL_TAKEN = "User with this email already exists."


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


def _require_credentials(body: LoginRequest) -> tuple[str, str]:
    email = (body.email or "").strip()
    password = body.password or ""
    if not email or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=MISSING_CREDENTIALS,
        )
    if len(email) > EMAIL_MAX_LEN or "@" not in email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email address.",
        )
    return email, password


def _validate_password(password: str) -> None:
    if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
        )
    if exceeds_bcrypt_limit(password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at most {BCRYPT_MAX_BYTES} bytes.",
        )


async def _hash(settings: Settings, password: str) -> str:
    with anyio.fail_after(settings.AUTH_OPERATION_TIMEOUT_SEC):
        return await hash_password_async(password, settings.BCRYPT_ROUNDS)


async def _verify(settings: Settings, password: str, hashed: str) -> bool:
    with anyio.fail_after(settings.AUTH_OPERATION_TIMEOUT_SEC):
        return await verify_password_async(password, hashed)


async def _run_store(func: Callable[..., T], *args: Any) -> T:
    """
    Run a user-store call in a worker thread and wait for it to finish.
    The request's Session must not outlive the thread using it, so store
    calls are never abandoned; the database's statement timeout bounds them.
    """
    return await anyio.to_thread.run_sync(func, *args)


def _start_session(
    request: Request,
    response: Response,
    user: User,
    message: str,
) -> AuthResponse:
    """Issue a token for user and set it as the auth cookie; both share one expiry."""
    settings = get_app_settings(request)
    token_service = get_token_service(request)
    token = token_service.issue(
        TokenClaims(user_id=user.id, email=user.email, role=user.role)
    )
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=token_service.config.max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return AuthResponse(
        message=message,
        token=token,
        user=UserPublic.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    store: Annotated[UserStore, Depends(get_user_store)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns a JWT and sets it as an HttpOnly cookie.
    Unknown email and wrong password are indistinguishable to the caller.
    """
    email, password = _require_credentials(body)
    settings = get_app_settings(request)

    try:
        user = await _run_store(store.find_by_email, email)
        if user is not None:
            stored_hash = user.password_hash
        else:
            stored_hash = request.app.state.dummy_password_hash
        password_ok = await _verify(settings, password, stored_hash)
    except (TimeoutError, SQLAlchemyError):
        logger.exception("Login aborted: user store or hashing failed")
        raise _internal_error()

    if user is None or not password_ok:
        logger.info("Login rejected: invalid credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )
    logger.info("Login succeeded for user id=%s", user.id)
    return _start_session(request, response, user, "Login successful")


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    store: Annotated[UserStore, Depends(get_user_store)],
) -> AuthResponse:
    """Create a USER account and log it in immediately (token in body and cookie)."""
    email, password = _require_credentials(body)
    _validate_password(password)
    name = (body.name or "").strip() or None
    settings = get_app_settings(request)

    try:
        existing = await _run_store(store.find_by_email, email)
    except SQLAlchemyError:
        logger.exception("Registration aborted: user lookup failed")
        raise _internal_error()
    if existing is not None:
        logger.info("Registration rejected: email already registered")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    try:
        password_hash = await _hash(settings, password)
        user = await _run_store(store.create, email, password_hash, name, ROLE_USER)
    except EmailAlreadyRegisteredError:
        # Lost a race with a concurrent registration; the unique index decided.
        logger.info("Registration rejected: email registered concurrently")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)
    except (TimeoutError, SQLAlchemyError):
        logger.exception("Registration aborted: hashing or user store failed")
        raise _internal_error()
    return _start_session(request, response, user, "User registered successfully.")


@router.get("/me", response_model=ApiResponse[UserPublic])
async def me(
    request: Request,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    store: Annotated[UserStore, Depends(get_user_store)],
) -> ApiResponse[UserPublic]:
    """Return the account behind the presented token (bearer header or auth cookie)."""
    try:
        user = await _run_store(store.find_by_id, claims.user_id)
    except SQLAlchemyError:
        logger.exception("Current-user lookup failed")
        raise _internal_error()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ApiResponse[UserPublic](message="Current user", data=UserPublic.model_validate(user))


@router.post("/logout", response_model=ApiResponse[None])
def logout(request: Request, response: Response) -> ApiResponse[None]:
    """
    Clear the auth cookie. Tokens are stateless, so a copy held elsewhere
    stays valid until it expires.
    """
    settings = get_app_settings(request)
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return ApiResponse[None](message="Logged out")
