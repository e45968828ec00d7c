from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_name: str = "SkyCast Weather API"
    app_version: str = "1.0.0"
    openweather_api_key: str = ""
    openweather_data_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_geo_url: str = "https://api.openweathermap.org/geo/1.0"
    gemini_api_key: str = ""
    gemini_url: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
    )
    default_unit: str = "celsius"
    log_level: int = logging.INFO
    frontend_origins: tuple[str, ...] = ("http://localhost:8081", "http://127.0.0.1:8081")


def get_settings() -> Settings:
    origins_raw = os.getenv("FRONTEND_ORIGINS", "").strip()
    unit_raw = os.getenv("DEFAULT_UNIT", "").strip().lower()
    log_level_raw = os.getenv("LOG_LEVEL", "").strip().upper()

    parsed_origins = tuple(item.strip() for item in origins_raw.split(",") if item.strip())

    log_level = logging.getLevelName(log_level_raw) if log_level_raw else Settings.log_level
    if not isinstance(log_level, int):
        log_level = Settings.log_level

    return Settings(
        openweather_api_key=os.getenv("OPENWEATHER_API_KEY", "").strip(),
        openweather_data_url=os.getenv("OPENWEATHER_DATA_URL", "").strip() or Settings.openweather_data_url,
        openweather_geo_url=os.getenv("OPENWEATHER_GEO_URL", "").strip() or Settings.openweather_geo_url,
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_url=os.getenv("GEMINI_URL", "").strip() or Settings.gemini_url,
        default_unit=unit_raw if unit_raw in {"celsius", "fahrenheit"} else Settings.default_unit,
        log_level=log_level,
        frontend_origins=parsed_origins or Settings.frontend_origins,
    )
