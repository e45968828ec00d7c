from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from skycast.schemas import ForecastPoint, UnitPreference, WeatherSnapshot


KELVIN_OFFSET = Decimal("273.15")

AQI_LABELS = {
    1: "Good",
    2: "Fair",
    3: "Moderate",
    4: "Poor",
    5: "Very Poor",
}

UNIT_SYMBOLS = {
    UnitPreference.CELSIUS: "°C",
    UnitPreference.FAHRENHEIT: "°F",
}


@dataclass(frozen=True)
class ConditionStyle:
    category: str
    icon: str
    color: str


THUNDERSTORM = ConditionStyle("thunderstorm", "thunderstorm", "#4a4e69")
DRIZZLE = ConditionStyle("drizzle", "drizzle", "#90a4ae")
RAIN = ConditionStyle("rain", "rain", "#5c7ea8")
SNOW = ConditionStyle("snow", "snow", "#dceff5")
ATMOSPHERE = ConditionStyle("atmosphere", "haze", "#b5ab9a")
CLEAR = ConditionStyle("clear", "sun", "#f9c74f")
CLOUDS = ConditionStyle("clouds", "cloud", "#a0aec0")
UNKNOWN = ConditionStyle("unknown", "unknown", "#9e9e9e")

# Half-open [low, high) ranges, checked in order.
CONDITION_RANGES: tuple[tuple[int, int, ConditionStyle], ...] = (
    (200, 300, THUNDERSTORM),
    (300, 500, DRIZZLE),
    (500, 600, RAIN),
    (600, 700, SNOW),
    (700, 800, ATMOSPHERE),
    (800, 801, CLEAR),
    (801, 900, CLOUDS),
)


def condition_style(code: int | None) -> ConditionStyle:
    if code is None:
        return UNKNOWN
    for low, high, style in CONDITION_RANGES:
        if low <= code < high:
            return style
    return UNKNOWN


def aqi_label(aqi: int | None) -> str:
    return AQI_LABELS.get(aqi, "N/A") if aqi is not None else "N/A"


def kelvin_to_celsius(kelvin: float) -> int:
    return _round_half_away(Decimal(str(kelvin)) - KELVIN_OFFSET)


def kelvin_to_fahrenheit(kelvin: float) -> int:
    return _round_half_away((Decimal(str(kelvin)) - KELVIN_OFFSET) * Decimal("1.8") + 32)


def convert_temperature(kelvin: float, unit: UnitPreference) -> int:
    if unit is UnitPreference.FAHRENHEIT:
        return kelvin_to_fahrenheit(kelvin)
    return kelvin_to_celsius(kelvin)


def format_temperature(kelvin: float, unit: UnitPreference) -> str:
    return f"{convert_temperature(kelvin, unit)}{UNIT_SYMBOLS[unit]}"


def format_clock(epoch: int, offset_seconds: int = 0) -> str:
    return _local_datetime(epoch, offset_seconds).strftime("%H:%M")


def format_day(epoch: int, offset_seconds: int = 0) -> str:
    return _local_datetime(epoch, offset_seconds).strftime("%a")


def format_date(epoch: int, offset_seconds: int = 0) -> str:
    return _local_datetime(epoch, offset_seconds).strftime("%a, %b %d")


def format_uv(uv_index: float | None) -> str:
    if uv_index is None:
        return "N/A"
    return f"{uv_index:.1f}"


def render_snapshot(snapshot: WeatherSnapshot, unit: UnitPreference) -> dict:
    """Turn a stored snapshot into display values for the requested unit."""
    offset = snapshot.timezone_offset_seconds
    current = snapshot.current
    style = condition_style(current.condition_id)

    air_quality = None
    if snapshot.aqi is not None:
        air_quality = {"aqi": snapshot.aqi, "label": aqi_label(snapshot.aqi)}

    return {
        "city": snapshot.city_name,
        "unit": unit.value,
        "current": {
            "temperature": format_temperature(current.temp_kelvin, unit),
            "description": current.description,
            "condition": style.category,
            "icon": style.icon,
            "color": style.color,
            "humidity": f"{current.humidity_pct}%",
            "wind": f"{current.wind_speed_mps:.1f} m/s",
            "sunrise": format_clock(current.sunrise_epoch, offset) if current.sunrise_epoch else None,
            "sunset": format_clock(current.sunset_epoch, offset) if current.sunset_epoch else None,
        },
        "hourly": [_render_hourly(point, unit, offset) for point in snapshot.hourly],
        "daily": [_render_daily(point, unit, offset) for point in snapshot.daily],
        "air_quality": air_quality,
        "uv_index": format_uv(snapshot.uv_index),
    }


def _render_hourly(point: ForecastPoint, unit: UnitPreference, offset: int) -> dict:
    style = condition_style(point.condition_id)
    return {
        "time": format_clock(point.epoch, offset),
        "temperature": format_temperature(point.temp_kelvin, unit),
        "icon": style.icon,
    }


def _render_daily(point: ForecastPoint, unit: UnitPreference, offset: int) -> dict:
    style = condition_style(point.condition_id)
    return {
        "day": format_day(point.epoch, offset),
        "date": format_date(point.epoch, offset),
        "temperature": format_temperature(point.temp_kelvin, unit),
        "icon": style.icon,
        "description": point.description,
    }


def _local_datetime(epoch: int, offset_seconds: int) -> datetime:
    return datetime.fromtimestamp(epoch + offset_seconds, tz=timezone.utc)


def _round_half_away(value: Decimal) -> int:
    # Decimal's ROUND_HALF_UP rounds ties away from zero, unlike built-in round().
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
