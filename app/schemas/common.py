"""Uniform response envelope shared by all JSON endpoints."""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """{success, message, data?} envelope."""

    success: bool = True
    message: str = "Success"
    data: T | None = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx JSON response."""

    success: bool = False
    message: str
    errors: list[dict[str, Any]] | None = None


class HealthResponse(BaseModel):
    """Liveness payload; database is None when the check was not run."""

    status: Literal["ok"] = "ok"
    environment: str
    database: Literal["connected", "disconnected"] | None = None
