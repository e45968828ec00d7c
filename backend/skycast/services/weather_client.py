from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from skycast.config import Settings


@dataclass
class WeatherClient:
    """Thin async wrapper over the weather provider's REST endpoints.

    Every method returns the decoded JSON body untouched. Transport errors,
    non-2xx statuses and undecodable bodies propagate to the caller; there is
    no caching and no retry.
    """

    settings: Settings
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(transport=self.transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def geocode(self, query: str) -> list[dict]:
        query = query.strip()
        if not query:
            return []

        payload = await self._get_json(
            url=f"{self.settings.openweather_geo_url}/direct",
            params={"q": query, "limit": 1},
        )
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    async def reverse_geocode(self, latitude: float, longitude: float) -> list[dict]:
        payload = await self._get_json(
            url=f"{self.settings.openweather_geo_url}/reverse",
            params={"lat": round(latitude, 6), "lon": round(longitude, 6), "limit": 1},
        )
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    async def fetch_current(self, latitude: float, longitude: float) -> Any:
        return await self._get_json(
            url=f"{self.settings.openweather_data_url}/weather",
            params={"lat": latitude, "lon": longitude},
        )

    async def fetch_forecast(self, latitude: float, longitude: float) -> Any:
        return await self._get_json(
            url=f"{self.settings.openweather_data_url}/forecast",
            params={"lat": latitude, "lon": longitude},
        )

    async def fetch_air_pollution(self, latitude: float, longitude: float) -> Any:
        return await self._get_json(
            url=f"{self.settings.openweather_data_url}/air_pollution",
            params={"lat": latitude, "lon": longitude},
        )

    async def _get_json(self, *, url: str, params: dict[str, Any] | None = None) -> Any:
        query = dict(params or {})
        query["appid"] = self.settings.openweather_api_key
        response = await self._client.get(url, params=query)
        response.raise_for_status()
        return response.json()
