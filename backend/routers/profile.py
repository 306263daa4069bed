"""Player profile endpoint (requires an access token)."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from auth.dependencies import require_access_token
from schemas import ErrorResponse, ProfileResponse
from services.profile import (
    ProfileLookupError,
    ProfileNotFound,
    ProfileProvider,
    ProfileService,
)
from utils.errors import APIError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/profile", tags=["profile"])


def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileProvider:
    return ProfileService(
        db=db,
        api_key=settings.STEAM_API_KEY,
        api_url=settings.STEAM_API_URL,
        timeout=settings.STEAM_API_TIMEOUT_SECONDS,
    )


@router.get(
    "",
    response_model=ProfileResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def get_profile(
    identity: str = Depends(require_access_token),
    service: ProfileProvider = Depends(get_profile_service),
):
    """Retrieve the authenticated player's Steam persona and match stats."""
    try:
        return await service.get_profile(identity)
    except ProfileNotFound as exc:
        logger.warning(str(exc))
        raise APIError(status.HTTP_404_NOT_FOUND, "profile not found")
    except ProfileLookupError as exc:
        logger.error(f"Profile lookup failed for {identity}: {exc}")
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
