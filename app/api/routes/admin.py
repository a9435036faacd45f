"""Browser-side admin entry point; the access guard has already checked the cookie and role."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import require_admin
from app.core.security import TokenClaims
from app.schemas.common import ApiResponse

router = APIRouter()


@router.get("", response_model=ApiResponse[TokenClaims], include_in_schema=False)
def admin_home(
    admin: Annotated[TokenClaims, Depends(require_admin)],
) -> ApiResponse[TokenClaims]:
    return ApiResponse[TokenClaims](message="Admin dashboard", data=admin)
