"""Password hashing, JWT issuance/verification and bearer-token extraction."""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import anyio
import bcrypt
import jwt
from fastapi.security.utils import get_authorization_scheme_param
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

logger = logging.getLogger(__name__)

# Bcrypt cost (rounds); matches the cost used for existing stored hashes.
BCRYPT_ROUNDS = 10
# bcrypt only reads the first 72 bytes; longer passwords are refused rather than truncated.
BCRYPT_MAX_BYTES = 72

# Min/max lengths for email and password validation.
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"
Role = Literal["USER", "ADMIN"]


def exceeds_bcrypt_limit(plain_password: str) -> bool:
    return len(plain_password.encode("utf-8")) > BCRYPT_MAX_BYTES


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    if exceeds_bcrypt_limit(plain_password):
        raise ValueError(f"Password exceeds {BCRYPT_MAX_BYTES} bytes")
    pw_bytes = plain_password.encode("utf-8")
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str | None) -> bool:
    """
    Verify a plain password against a stored hash. Malformed hashes never
    match, and neither does a password longer than bcrypt can read.
    """
    if not hashed or exceeds_bcrypt_limit(plain_password):
        return False
    pw_bytes = plain_password.encode("utf-8")
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# bcrypt work touches no shared state, so a cancelled caller may leave the thread behind.
async def hash_password_async(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return await anyio.to_thread.run_sync(hash_password, plain_password, rounds, abandon_on_cancel=True)


async def verify_password_async(plain_password: str, hashed: str | None) -> bool:
    return await anyio.to_thread.run_sync(verify_password, plain_password, hashed, abandon_on_cancel=True)


class TokenConfig(BaseModel):
    """Signing configuration for TokenService; built once at startup."""

    model_config = ConfigDict(frozen=True)

    secret: SecretStr
    algorithm: str = "HS256"
    expire_minutes: int = Field(default=1440, ge=1)
    leeway_seconds: int = Field(default=0, ge=0)

    @property
    def max_age_seconds(self) -> int:
        """Lifetime in seconds; used for the cookie Max-Age so it matches exp."""
        return self.expire_minutes * 60


class TokenClaims(BaseModel):
    """Identity and role carried by an access token."""

    user_id: str = Field(..., min_length=1)
    email: str
    role: Role
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class TokenService:
    """
    Issues and verifies HMAC-signed JWT access tokens.

    Tokens are self-contained: nothing is stored server-side, so expiry is the
    only way a token stops being valid.
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @classmethod
    def from_settings(cls, settings: Any) -> "TokenService":
        return cls(settings.token_config())

    @property
    def config(self) -> TokenConfig:
        return self._config

    def issue(self, claims: TokenClaims, expires_delta: timedelta | None = None) -> str:
        """Create a signed token for claims; iat/exp are always set here, never taken from claims."""
        now = datetime.now(UTC)
        if expires_delta is None:
            expires_delta = timedelta(minutes=self._config.expire_minutes)
        payload: dict[str, Any] = {
            "sub": claims.user_id,
            "userId": claims.user_id,
            "email": claims.email,
            "role": claims.role,
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(
            payload,
            self._config.secret.get_secret_value(),
            algorithm=self._config.algorithm,
        )

    def _decode(self, token: str) -> dict[str, Any]:
        """Raises jwt.PyJWTError on a bad signature, expired or malformed token."""
        return jwt.decode(
            token,
            self._config.secret.get_secret_value(),
            algorithms=[self._config.algorithm],
            leeway=self._config.leeway_seconds,
            options={"require": ["exp", "iat", "sub"]},
        )

    async def verify(self, token: str | None) -> TokenClaims | None:
        """
        Return the token's claims if the signature and expiry check out, else None.

        This is the only verification entry point; callers always await it.
        """
        if not token:
            return None
        try:
            payload = self._decode(token)
        except jwt.ExpiredSignatureError:
            logger.debug("Token rejected: expired")
            return None
        except jwt.PyJWTError as e:
            logger.debug("Token rejected: %s", type(e).__name__)
            return None
        try:
            return TokenClaims(
                user_id=str(payload["sub"]),
                email=payload.get("email"),
                role=payload.get("role"),
                issued_at=datetime.fromtimestamp(payload["iat"], UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], UTC),
            )
        except (ValidationError, TypeError, ValueError, OverflowError):
            logger.debug("Token rejected: invalid claims")
            return None


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the credentials of an 'Authorization: Bearer <token>' header, else None."""
    scheme, param = get_authorization_scheme_param(header_value)
    if scheme.lower() != "bearer":
        return None
    param = param.strip()
    return param or None


def extract_cookie_token(cookies: Mapping[str, str], cookie_name: str) -> str | None:
    """Return the token stored in the named cookie, else None."""
    value = cookies.get(cookie_name)
    if value is None:
        return None
    value = value.strip()
    return value or None
