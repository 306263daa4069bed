"""
FastAPI dependencies for bearer-token authentication.

Usage in routers::

    from auth.dependencies import require_access_token

    @router.get("/profile")
    async def profile(identity: str = Depends(require_access_token)):
        ...

The token services are built once at startup (see ``main.py``) and live on
``app.state``; the providers below hand them to endpoints so tests can swap
them through ``app.dependency_overrides``.
"""

import logging
from typing import Optional

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from utils.audit import audit
from utils.errors import EXPIRED_TOKEN_CODE, APIError

from .jwt_service import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    AuthStatus,
    TokenIssuer,
    TokenVerifier,
)
from .openid_service import OpenIDValidator

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

MISSING_CREDENTIAL = "missing credential"
TOKEN_EXPIRED = "token has expired"
INVALID_TOKEN = "invalid token"


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_openid_validator(request: Request) -> OpenIDValidator:
    return request.app.state.openid_validator


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Return the token only for a well-formed ``Bearer <token>`` header."""
    if credentials is None or credentials.scheme != "Bearer":
        return None
    token = credentials.credentials
    if not token or " " in token:
        return None
    return token


def _unauthorized(message: str, code: Optional[int] = None) -> APIError:
    return APIError(
        status_code=status.HTTP_401_UNAUTHORIZED,
        message=message,
        code=code,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthGate:
    """
    Per-request bearer token gate.

    Missing or badly shaped ``Authorization`` headers are rejected with
    "missing credential" before the verifier runs. Expired tokens carry
    :data:`EXPIRED_TOKEN_CODE` so clients know to refresh; every other
    failure is a generic "invalid token". On success the identity is stored
    on ``request.state.identity`` and returned to the endpoint.
    """

    def __init__(self, token_type: str = ACCESS_TOKEN):
        self.token_type = token_type

    async def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
        verifier: TokenVerifier = Depends(get_token_verifier),
    ) -> str:
        token = _bearer_token(credentials)
        if token is None:
            logger.warning(f"{request.method} {request.url.path}: {MISSING_CREDENTIAL}")
            audit.log_rejection(
                request.url.path, AuthStatus.MISSING_CREDENTIAL.value, MISSING_CREDENTIAL,
            )
            raise _unauthorized(MISSING_CREDENTIAL)

        outcome = verifier.verify_token(token, token_type=self.token_type)

        if outcome.status is AuthStatus.VERIFIED:
            request.state.identity = outcome.identity
            audit.set_actor(f"steam:{outcome.identity}")
            return outcome.identity

        logger.warning(
            f"{request.method} {request.url.path}: {outcome.status.value} ({outcome.reason})"
        )
        audit.log_rejection(request.url.path, outcome.status.value, outcome.reason)
        if outcome.status is AuthStatus.EXPIRED:
            raise _unauthorized(TOKEN_EXPIRED, code=EXPIRED_TOKEN_CODE)
        raise _unauthorized(INVALID_TOKEN)


# ── Convenience shortcuts ──────────────────────────────────────────────
require_access_token = AuthGate(ACCESS_TOKEN)
require_refresh_token = AuthGate(REFRESH_TOKEN)
