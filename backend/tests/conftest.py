from datetime import datetime, timedelta, timezone

import pytest


FORECAST_START = datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc)


def build_forecast_entries(count: int = 40, start: datetime = FORECAST_START) -> list[dict]:
    entries = []
    for idx in range(count):
        stamp = start + timedelta(hours=3 * idx)
        entries.append(
            {
                "dt": int(stamp.timestamp()),
                "dt_txt": stamp.strftime("%Y-%m-%d %H:%M:%S"),
                "main": {"temp": 280.15 + idx * 0.1},
                "weather": [{"id": 500 if idx % 2 else 803, "description": "light rain" if idx % 2 else "broken clouds"}],
            }
        )
    return entries


@pytest.fixture
def current_payload() -> dict:
    return {
        "name": "London",
        "timezone": 0,
        "main": {"temp": 283.15, "humidity": 81},
        "weather": [{"id": 800, "description": "clear sky"}],
        "wind": {"speed": 4.1},
        "sys": {"sunrise": 1771571160, "sunset": 1771608840},
    }


@pytest.fixture
def forecast_payload() -> dict:
    return {"list": build_forecast_entries(), "city": {"name": "London", "timezone": 0}}


@pytest.fixture
def air_payload() -> dict:
    return {"list": [{"main": {"aqi": 2}}]}
