"""
Tests for player profile aggregation.

Covers:
- Headshot rate rounding
- ProfileService against a mocked Steam Web API and the test database
- /api/profile error mapping
"""

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from main import app
from models import PlayerStats
from routers.profile import get_profile_service
from services.profile import (
    ProfileLookupError,
    ProfileNotFound,
    ProfileService,
    headshot_rate,
)

STEAM_ID = "76561198000000000"

PLAYER_SUMMARY = {
    "response": {
        "players": [
            {
                "steamid": STEAM_ID,
                "personaname": "s1mple",
                "profileurl": f"https://steamcommunity.com/profiles/{STEAM_ID}/",
                "avatarfull": "https://avatars.steamstatic.com/abc_full.jpg",
            }
        ]
    }
}


def _steam_api(payload=None, status_code: int = 200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=payload if payload is not None else PLAYER_SUMMARY)

    return httpx.MockTransport(handler), requests


class TestHeadshotRate:

    def test_zero_kills(self):
        assert headshot_rate(0, 0) == 0
        assert headshot_rate(0, 5) == 0

    def test_negative_kills(self):
        assert headshot_rate(-3, 1) == 0

    def test_rounds_half_up(self):
        # 12.5% must not be banker's-rounded down to 12
        assert headshot_rate(8, 1) == 13
        assert headshot_rate(200, 1) == 1

    def test_regular_values(self):
        assert headshot_rate(3, 1) == 33
        assert headshot_rate(3, 2) == 67
        assert headshot_rate(10, 10) == 100


class TestProfileService:

    @pytest.mark.asyncio
    async def test_profile_combines_summary_and_stats(self, db_session: AsyncSession):
        db_session.add(PlayerStats(steam_id=STEAM_ID, kills=120, deaths=80, headshots=54))
        await db_session.commit()

        transport, requests = _steam_api()
        service = ProfileService(db_session, api_key="key", transport=transport)

        profile = await service.get_profile(STEAM_ID)

        assert profile.id == STEAM_ID
        assert profile.name == "s1mple"
        assert profile.avatar.endswith("_full.jpg")
        assert profile.kills == 120
        assert profile.deaths == 80
        assert profile.headshot_rate == 45
        assert requests[0].url.params["steamids"] == STEAM_ID
        assert requests[0].url.path == "/ISteamUser/GetPlayerSummaries/v0002/"

    @pytest.mark.asyncio
    async def test_missing_stats_row_means_zeros(self, db_session: AsyncSession):
        transport, _ = _steam_api()
        service = ProfileService(db_session, api_key="key", transport=transport)

        profile = await service.get_profile(STEAM_ID)

        assert profile.kills == 0
        assert profile.deaths == 0
        assert profile.headshot_rate == 0

    @pytest.mark.asyncio
    async def test_unknown_player(self, db_session: AsyncSession):
        transport, _ = _steam_api(payload={"response": {"players": []}})
        service = ProfileService(db_session, api_key="key", transport=transport)

        with pytest.raises(ProfileNotFound):
            await service.get_profile(STEAM_ID)

    @pytest.mark.asyncio
    async def test_steam_api_error(self, db_session: AsyncSession):
        transport, _ = _steam_api(payload={}, status_code=500)
        service = ProfileService(db_session, api_key="key", transport=transport)

        with pytest.raises(ProfileLookupError):
            await service.get_profile(STEAM_ID)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        ["not", "an", "object"],
        {"response": "oops"},
        {"response": {"players": "nobody"}},
        {"response": {"players": ["76561198000000000"]}},
        {},
    ])
    async def test_unexpected_body_shape(self, db_session: AsyncSession, payload):
        transport, _ = _steam_api(payload=payload)
        service = ProfileService(db_session, api_key="key", transport=transport)

        with pytest.raises(ProfileLookupError):
            await service.get_profile(STEAM_ID)


class FailingProfileService:
    def __init__(self, error: Exception):
        self.error = error

    async def get_profile(self, identity: str):
        raise self.error


class TestProfileEndpoint:

    @pytest.mark.asyncio
    async def test_not_found_is_404(self, async_client: AsyncClient, issuer):
        app.dependency_overrides[get_profile_service] = lambda: FailingProfileService(
            ProfileNotFound("no such player"),
        )
        token = issuer.generate_tokens(STEAM_ID).access_token

        response = await async_client.get(
            "/api/profile",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 404
        assert response.json() == {"message": "profile not found"}

    @pytest.mark.asyncio
    async def test_lookup_error_is_500(self, async_client: AsyncClient, issuer):
        app.dependency_overrides[get_profile_service] = lambda: FailingProfileService(
            ProfileLookupError("Steam API request failed"),
        )
        token = issuer.generate_tokens(STEAM_ID).access_token

        response = await async_client.get(
            "/api/profile",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Steam API request failed"
