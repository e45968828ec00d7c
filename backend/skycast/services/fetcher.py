from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from skycast.errors import WeatherFetchFailed
from skycast.schemas import Coordinate
from skycast.services.weather_client import WeatherClient


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawWeatherBundle:
    """Raw payloads of one fetch; all three come from the same request round."""

    current: dict
    forecast: dict
    air_pollution: dict


async def fetch_weather_bundle(client: WeatherClient, coordinate: Coordinate) -> RawWeatherBundle:
    try:
        current, forecast, air_pollution = await asyncio.gather(
            client.fetch_current(latitude=coordinate.latitude, longitude=coordinate.longitude),
            client.fetch_forecast(latitude=coordinate.latitude, longitude=coordinate.longitude),
            client.fetch_air_pollution(latitude=coordinate.latitude, longitude=coordinate.longitude),
        )
    except (httpx.HTTPError, ValueError) as exc:
        # ValueError covers bodies that are not valid JSON.
        logger.warning("Weather fetch failed for (%.4f, %.4f): %s", coordinate.latitude, coordinate.longitude, exc)
        raise WeatherFetchFailed() from exc

    for name, payload in (("current", current), ("forecast", forecast), ("air_pollution", air_pollution)):
        if not isinstance(payload, dict):
            logger.warning("Weather fetch returned a malformed %s payload", name)
            raise WeatherFetchFailed()

    return RawWeatherBundle(current=current, forecast=forecast, air_pollution=air_pollution)
