from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class UnitPreference(str, Enum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class CurrentConditions(BaseModel):
    model_config = ConfigDict(frozen=True)

    temp_kelvin: float
    condition_id: int
    description: str = ""
    humidity_pct: int = 0
    wind_speed_mps: float = 0.0
    sunrise_epoch: int = 0
    sunset_epoch: int = 0


class ForecastPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    epoch: int
    temp_kelvin: float
    condition_id: int
    description: str = ""


class WeatherSnapshot(BaseModel):
    """Display-ready weather for one resolved location.

    Temperatures are kept in Kelvin; unit conversion happens when rendering.
    """

    model_config = ConfigDict(frozen=True)

    city_name: str
    coordinate: Coordinate
    current: CurrentConditions
    hourly: tuple[ForecastPoint, ...] = ()
    daily: tuple[ForecastPoint, ...] = ()
    aqi: int | None = None
    uv_index: float | None = None
    timezone_offset_seconds: int = 0


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    text: str


class CityWeatherRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    city: str = Field(min_length=1, max_length=80, description="City name typed by the user.")

    @field_validator("city", mode="before")
    @classmethod
    def strip_city(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class DeviceWeatherRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    permission_granted: bool
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def validate_position(self) -> "DeviceWeatherRequest":
        if self.permission_granted and (self.latitude is None or self.longitude is None):
            raise ValueError("Provide latitude and longitude when location permission is granted.")
        return self


class UnitRequest(BaseModel):
    unit: UnitPreference


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str = Field(min_length=1, max_length=1000)

    @field_validator("question", mode="before")
    @classmethod
    def strip_question(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value
