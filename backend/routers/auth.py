"""
Steam OpenID login and token endpoints.

Public endpoints:
    GET  /api/auth/login              - redirect to the Steam login page
    GET  /api/auth/process            - validate the Steam callback, issue tokens

Protected endpoints:
    POST /api/auth/refresh            - exchange a refresh token for a new pair
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse

from config import settings
from auth.dependencies import (
    get_openid_validator,
    get_token_issuer,
    require_refresh_token,
)
from auth.jwt_service import SigningError, TokenGenerator
from auth.openid_service import (
    AssertionInvalid,
    CallbackMalformed,
    CallbackValidator,
    MalformedResponse,
    TransportError,
)
from schemas import ErrorResponse, TokenResponse
from utils.audit import audit
from utils.errors import APIError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

ERR_INVALID_AUTH = "invalid auth"
ERR_PARAM_NOT_SET = "param is not set"
ERR_IDENTITY_MISMATCH = "id does not match the authenticated user"


@router.get(
    "/login",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    responses={405: {"model": ErrorResponse}},
)
async def login(validator: CallbackValidator = Depends(get_openid_validator)):
    """Redirect the client to the Steam authentication page."""
    return RedirectResponse(
        validator.build_redirect(settings.OPENID_RETURN_URL),
        status_code=status.HTTP_302_FOUND,
    )


@router.get(
    "/process",
    response_model=TokenResponse,
    responses={
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def process_login(
    request: Request,
    validator: CallbackValidator = Depends(get_openid_validator),
    issuer: TokenGenerator = Depends(get_token_issuer),
):
    """Process the Steam authentication response and issue JWT tokens."""
    params = dict(request.query_params)

    try:
        steam_id = await validator.validate_callback(params)
    except (CallbackMalformed, AssertionInvalid) as exc:
        logger.error(f"OpenID callback rejected: {exc}")
        audit.log_login(None, "failure", error=str(exc))
        raise APIError(status.HTTP_400_BAD_REQUEST, ERR_INVALID_AUTH)
    except (TransportError, MalformedResponse) as exc:
        logger.error(f"OpenID verification failed: {exc}")
        audit.log_login(None, "failure", error=str(exc))
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    try:
        tokens = issuer.generate_tokens(steam_id)
    except SigningError as exc:
        logger.error(f"Token generation failed for {steam_id}: {exc}")
        audit.log_login(steam_id, "failure", error="signing failed")
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, ERR_INVALID_AUTH)

    audit.log_login(steam_id, "success")
    return TokenResponse.model_validate(tokens)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def refresh_token(
    user_id: Optional[str] = Form(None, alias="id", description="Steam ID"),
    identity: str = Depends(require_refresh_token),
    issuer: TokenGenerator = Depends(get_token_issuer),
):
    """Issue a brand-new token pair for the holder of a valid refresh token."""
    if not user_id:
        logger.error(ERR_PARAM_NOT_SET)
        raise APIError(status.HTTP_400_BAD_REQUEST, ERR_PARAM_NOT_SET)

    if user_id != identity:
        logger.warning(f"Refresh for {user_id} attempted with token of {identity}")
        audit.log_refresh(identity, "failure", error="identity mismatch")
        raise APIError(status.HTTP_403_FORBIDDEN, ERR_IDENTITY_MISMATCH)

    try:
        tokens = issuer.generate_tokens(identity)
    except SigningError as exc:
        logger.error(f"Token refresh failed for {identity}: {exc}")
        audit.log_refresh(identity, "failure", error="signing failed")
        raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    audit.log_refresh(identity, "success")
    return TokenResponse.model_validate(tokens)
