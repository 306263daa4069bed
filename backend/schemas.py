"""
Pydantic v2 schemas for API responses.

Auth and profile payloads keep the field names existing clients already
parse (``id``, ``access_token``, ``refresh_token``, ``headshot_rate``).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """Issued access/refresh token pair."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    access_token: str
    refresh_token: str


class ProfileResponse(BaseModel):
    id: str
    name: str
    url: str
    avatar: str
    kills: int
    deaths: int
    headshot_rate: int = Field(..., ge=0, description="Headshots per kill, in percent")


class ErrorResponse(BaseModel):
    message: str
    code: Optional[int] = Field(
        None,
        description="Set to 1 only when a bearer token has expired",
    )
