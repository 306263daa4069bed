"""
Player profile aggregation.

Combines the public Steam persona (``ISteamUser/GetPlayerSummaries``) with
the kill/death counters stored in ``player_stats``.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import PlayerStats
from schemas import ProfileResponse

logger = logging.getLogger(__name__)


class ProfileLookupError(Exception):
    """Raised when the Steam Web API call fails or returns an unusable body."""


class ProfileNotFound(Exception):
    """Raised when Steam knows no player with the requested id."""


class ProfileProvider(Protocol):
    """Capability needed by the profile endpoint."""

    async def get_profile(self, identity: str) -> ProfileResponse: ...


def headshot_rate(kills: int, headshots: int) -> int:
    """
    Headshot percentage rounded half up, or 0 when there are no kills.

    >>> headshot_rate(3, 1)
    33
    >>> headshot_rate(8, 1)
    13
    """
    if kills <= 0:
        return 0
    rate = Decimal(headshots) * 100 / Decimal(kills)
    return int(rate.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class ProfileService:
    """Look up a player's Steam persona and match statistics."""

    def __init__(
        self,
        db: AsyncSession,
        api_key: str,
        api_url: str = "https://api.steampowered.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_profile(self, identity: str) -> ProfileResponse:
        player = await self._fetch_player_summary(identity)

        result = await self.db.execute(
            select(PlayerStats).where(PlayerStats.steam_id == identity)
        )
        stats = result.scalar_one_or_none()

        # Players who never finished a match have no stats row yet
        kills = stats.kills if stats else 0
        deaths = stats.deaths if stats else 0
        headshots = stats.headshots if stats else 0

        return ProfileResponse(
            id=player.get("steamid", identity),
            name=player.get("personaname", ""),
            url=player.get("profileurl", ""),
            avatar=player.get("avatarfull", ""),
            kills=kills,
            deaths=deaths,
            headshot_rate=headshot_rate(kills, headshots),
        )

    async def _fetch_player_summary(self, identity: str) -> dict:
        url = f"{self.api_url}/ISteamUser/GetPlayerSummaries/v0002/"
        params = {"key": self.api_key, "steamids": identity}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as exc:
            # exc may embed the request URL, which carries the API key
            logger.error(f"Steam player summary request failed: {type(exc).__name__}")
            raise ProfileLookupError("Steam API request failed") from exc
        except ValueError as exc:
            raise ProfileLookupError("Steam API returned invalid JSON") from exc

        response = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(response, dict):
            raise ProfileLookupError("Steam API returned an unexpected body")

        players = response.get("players") or []
        if not isinstance(players, list):
            raise ProfileLookupError("Steam API returned an unexpected body")
        if not players:
            raise ProfileNotFound(f"No Steam player with id {identity}")
        if not isinstance(players[0], dict):
            raise ProfileLookupError("Steam API returned an unexpected body")
        return players[0]
