from __future__ import annotations

import logging
from typing import Protocol

import httpx

from skycast.errors import CityNotFound, CityUndetermined, PermissionDenied, WeatherFetchFailed
from skycast.schemas import Coordinate
from skycast.services.weather_client import WeatherClient


logger = logging.getLogger(__name__)


class DevicePosition(Protocol):
    async def request_permission(self) -> bool: ...

    async def current_position(self) -> Coordinate: ...


class ReportedPosition:
    """Position reported by the mobile client along with its permission outcome."""

    def __init__(self, permission_granted: bool, latitude: float | None, longitude: float | None) -> None:
        self.permission_granted = permission_granted
        self.latitude = latitude
        self.longitude = longitude

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def current_position(self) -> Coordinate:
        if self.latitude is None or self.longitude is None:
            raise PermissionDenied("Device did not report a position.")
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


async def locate_city(client: WeatherClient, city: str) -> tuple[Coordinate, str]:
    try:
        results = await client.geocode(city)
    except (httpx.HTTPError, ValueError) as exc:
        raise WeatherFetchFailed() from exc

    if not results:
        logger.info("No geocoding result for %r", city)
        raise CityNotFound()

    # Only one result is requested; ties between same-named cities are not broken.
    first = results[0]
    try:
        coordinate = Coordinate(latitude=first.get("lat"), longitude=first.get("lon"))
    except ValueError as exc:
        raise WeatherFetchFailed() from exc

    name = first.get("name") or city.strip()
    logger.info("Resolved %r to %s (%.4f, %.4f)", city, name, coordinate.latitude, coordinate.longitude)
    return coordinate, name


async def locate_device(client: WeatherClient, device: DevicePosition) -> tuple[Coordinate, str]:
    if not await device.request_permission():
        raise PermissionDenied()

    coordinate = await device.current_position()
    try:
        results = await client.reverse_geocode(coordinate.latitude, coordinate.longitude)
    except (httpx.HTTPError, ValueError) as exc:
        raise WeatherFetchFailed() from exc

    name = results[0].get("name") if results else None
    if not name:
        logger.info("Reverse geocoding gave no city for (%.4f, %.4f)", coordinate.latitude, coordinate.longitude)
        raise CityUndetermined()
    return coordinate, name
