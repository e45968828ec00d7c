from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from skycast.errors import WeatherFetchFailed
from skycast.schemas import Coordinate, CurrentConditions, ForecastPoint, WeatherSnapshot
from skycast.services.fetcher import RawWeatherBundle


HOURLY_POINTS = 8
DAILY_SLOT = "12:00:00"
AQI_RANGE = range(1, 6)
# Offsets beyond +-18h are treated as malformed provider data.
MAX_TIMEZONE_OFFSET = 18 * 3600


def build_snapshot(*, city_name: str, coordinate: Coordinate, bundle: RawWeatherBundle) -> WeatherSnapshot:
    forecast_list = _forecast_list(bundle.forecast)
    return WeatherSnapshot(
        city_name=city_name,
        coordinate=coordinate,
        current=_build_current(bundle.current),
        hourly=select_hourly(forecast_list),
        daily=select_daily(forecast_list),
        aqi=extract_aqi(bundle.air_pollution),
        uv_index=extract_uv(bundle.current),
        timezone_offset_seconds=_timezone_offset(bundle.current, bundle.forecast),
    )


def select_hourly(forecast_list: list[dict]) -> tuple[ForecastPoint, ...]:
    """First eight 3-hour entries as delivered; no alignment to the current hour."""
    return tuple(_parse_point(item) for item in forecast_list[:HOURLY_POINTS])


def select_daily(forecast_list: list[dict]) -> tuple[ForecastPoint, ...]:
    """One entry per day: the 12:00:00 slot. Days without that slot are left out."""
    return tuple(
        _parse_point(item)
        for item in forecast_list
        if isinstance(item, dict) and str(item.get("dt_txt") or "").endswith(DAILY_SLOT)
    )


def extract_aqi(air_payload: dict) -> int | None:
    entries = air_payload.get("list")
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return None
    main = entries[0].get("main")
    if not isinstance(main, dict):
        return None
    aqi = _as_float(main.get("aqi"))
    if aqi is None or not aqi.is_integer() or int(aqi) not in AQI_RANGE:
        return None
    return int(aqi)


def extract_uv(current_payload: dict) -> float | None:
    # The current-weather endpoint rarely carries UV data, so None is the usual result.
    current = current_payload.get("current")
    if not isinstance(current, dict):
        return None
    return _as_float(current.get("uvi"))


def _build_current(payload: dict) -> CurrentConditions:
    main = _as_dict(payload.get("main"))
    weather = _first_weather(payload)
    wind = _as_dict(payload.get("wind"))
    sys = _as_dict(payload.get("sys"))

    temp = _as_float(main.get("temp"))
    condition_id = _as_int(weather.get("id"))
    if temp is None or condition_id is None:
        raise WeatherFetchFailed("Weather provider returned incomplete current conditions.")

    return CurrentConditions(
        temp_kelvin=temp,
        condition_id=condition_id,
        description=str(weather.get("description") or ""),
        humidity_pct=_as_int(main.get("humidity")) or 0,
        wind_speed_mps=_as_float(wind.get("speed")) or 0.0,
        sunrise_epoch=_optional_epoch(sys.get("sunrise")),
        sunset_epoch=_optional_epoch(sys.get("sunset")),
    )


def _parse_point(item: Any) -> ForecastPoint:
    if not isinstance(item, dict):
        raise WeatherFetchFailed("Weather provider returned a malformed forecast entry.")

    weather = _first_weather(item)
    epoch = _as_epoch(item.get("dt"))
    temp = _as_float(_as_dict(item.get("main")).get("temp"))
    condition_id = _as_int(weather.get("id"))
    if epoch is None or temp is None or condition_id is None:
        raise WeatherFetchFailed("Weather provider returned a malformed forecast entry.")

    return ForecastPoint(
        epoch=epoch,
        temp_kelvin=temp,
        condition_id=condition_id,
        description=str(weather.get("description") or ""),
    )


def _forecast_list(forecast_payload: dict) -> list:
    entries = forecast_payload.get("list")
    if not isinstance(entries, list):
        raise WeatherFetchFailed("Weather provider returned a forecast without entries.")
    return entries


def _timezone_offset(current_payload: dict, forecast_payload: dict) -> int:
    offset = _as_int(current_payload.get("timezone"))
    if offset is None:
        offset = _as_int(_as_dict(forecast_payload.get("city")).get("timezone"))
    if offset is None:
        return 0
    if abs(offset) > MAX_TIMEZONE_OFFSET:
        raise WeatherFetchFailed("Weather provider returned an invalid timezone offset.")
    return offset


def _optional_epoch(value: object) -> int:
    if value is None:
        return 0
    epoch = _as_epoch(value)
    if epoch is None:
        raise WeatherFetchFailed("Weather provider returned an invalid timestamp.")
    return epoch


def _as_epoch(value: object) -> int | None:
    """Unix timestamp that can still be shown as a local date after any timezone offset."""
    epoch = _as_int(value)
    if epoch is None:
        return None
    try:
        stamp = datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None
    if not 1 < stamp.year < 9999:
        return None
    return epoch


def _first_weather(payload: dict) -> dict:
    weather = payload.get("weather")
    if isinstance(weather, list) and weather and isinstance(weather[0], dict):
        return weather[0]
    return {}


def _as_dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _as_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _as_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None
