import asyncio

import httpx
import pytest

from skycast.config import Settings
from skycast.errors import CityNotFound, CityUndetermined, PermissionDenied, WeatherFetchFailed
from skycast.schemas import Coordinate
from skycast.services.fetcher import fetch_weather_bundle
from skycast.services.locator import ReportedPosition, locate_city
from skycast.services.presentation import render_snapshot
from skycast.services.session import SessionState, WeatherPipeline
from skycast.services.weather_client import WeatherClient


SETTINGS = Settings(openweather_api_key="test-key")


def _provider(current: dict, forecast: dict, air: dict, *, geocode=None, reverse=None, fail_path=None):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if fail_path and path.endswith(fail_path):
            return httpx.Response(500, json={"message": "upstream error"})
        if path.endswith("/geo/1.0/direct"):
            return httpx.Response(200, json=geocode if geocode is not None else [])
        if path.endswith("/geo/1.0/reverse"):
            return httpx.Response(200, json=reverse if reverse is not None else [])
        if path.endswith("/weather"):
            return httpx.Response(200, json=current)
        if path.endswith("/forecast"):
            return httpx.Response(200, json=forecast)
        if path.endswith("/air_pollution"):
            return httpx.Response(200, json=air)
        return httpx.Response(404)

    client = WeatherClient(settings=SETTINGS, transport=httpx.MockTransport(handler))
    return client, requests


def test_load_city_builds_snapshot_for_london(current_payload, forecast_payload, air_payload) -> None:
    client, requests = _provider(
        current_payload,
        forecast_payload,
        air_payload,
        geocode=[{"name": "London", "lat": 51.5, "lon": -0.13}],
    )
    session = SessionState()

    snapshot = asyncio.run(WeatherPipeline(weather_client=client).load_city(session, "London"))

    assert snapshot is session.snapshot
    assert snapshot.city_name == "London"
    assert snapshot.coordinate == Coordinate(latitude=51.5, longitude=-0.13)
    view = render_snapshot(snapshot, session.unit)
    assert view["current"]["temperature"] == "10°C"
    assert view["current"]["icon"] == "sun"
    assert session.error is None
    assert session.loading is False

    geocode_request = requests[0]
    assert geocode_request.url.params["q"] == "London"
    assert geocode_request.url.params["limit"] == "1"
    assert all(request.url.params["appid"] == "test-key" for request in requests)
    assert {request.url.path.rsplit("/", 1)[-1] for request in requests[1:]} == {"weather", "forecast", "air_pollution"}


def test_unknown_city_clears_weather_state(current_payload, forecast_payload, air_payload) -> None:
    london_client, _ = _provider(
        current_payload,
        forecast_payload,
        air_payload,
        geocode=[{"name": "London", "lat": 51.5, "lon": -0.13}],
    )
    empty_client, _ = _provider(current_payload, forecast_payload, air_payload, geocode=[])
    session = SessionState()
    asyncio.run(WeatherPipeline(weather_client=london_client).load_city(session, "London"))
    assert session.snapshot is not None

    with pytest.raises(CityNotFound):
        asyncio.run(WeatherPipeline(weather_client=empty_client).load_city(session, "Nowhere123"))

    assert session.snapshot is None
    assert isinstance(session.error, CityNotFound)


@pytest.mark.parametrize("fail_path", ["/weather", "/forecast", "/air_pollution"])
def test_any_failed_request_fails_the_whole_fetch(current_payload, forecast_payload, air_payload, fail_path) -> None:
    client, _ = _provider(current_payload, forecast_payload, air_payload, fail_path=fail_path)

    with pytest.raises(WeatherFetchFailed) as excinfo:
        asyncio.run(fetch_weather_bundle(client, Coordinate(latitude=51.5, longitude=-0.13)))

    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_failed_fetch_installs_nothing(current_payload, forecast_payload, air_payload) -> None:
    client, _ = _provider(
        current_payload,
        forecast_payload,
        air_payload,
        geocode=[{"name": "London", "lat": 51.5, "lon": -0.13}],
        fail_path="/air_pollution",
    )
    session = SessionState()

    with pytest.raises(WeatherFetchFailed):
        asyncio.run(WeatherPipeline(weather_client=client).load_city(session, "London"))

    assert session.snapshot is None
    assert isinstance(session.error, WeatherFetchFailed)
    assert session.loading is False


def test_non_json_body_fails_fetch(forecast_payload, air_payload) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, text="<html>maintenance</html>")
        if request.url.path.endswith("/forecast"):
            return httpx.Response(200, json=forecast_payload)
        return httpx.Response(200, json=air_payload)

    client = WeatherClient(settings=SETTINGS, transport=httpx.MockTransport(handler))

    with pytest.raises(WeatherFetchFailed):
        asyncio.run(fetch_weather_bundle(client, Coordinate(latitude=51.5, longitude=-0.13)))


def test_empty_air_pollution_list_leaves_aqi_absent(current_payload, forecast_payload) -> None:
    client, _ = _provider(
        current_payload,
        forecast_payload,
        {"list": []},
        geocode=[{"name": "London", "lat": 51.5, "lon": -0.13}],
    )
    session = SessionState()

    snapshot = asyncio.run(WeatherPipeline(weather_client=client).load_city(session, "London"))

    assert snapshot.aqi is None
    assert render_snapshot(snapshot, session.unit)["air_quality"] is None
    assert session.error is None


def test_locate_city_uses_query_when_result_has_no_name() -> None:
    client, _ = _provider({}, {}, {}, geocode=[{"lat": 40.0, "lon": -3.7}])

    coordinate, name = asyncio.run(locate_city(client, "  Madrid "))

    assert name == "Madrid"
    assert coordinate.latitude == 40.0


def test_device_location_without_permission_is_rejected(current_payload, forecast_payload, air_payload) -> None:
    client, requests = _provider(current_payload, forecast_payload, air_payload)
    session = SessionState()

    with pytest.raises(PermissionDenied):
        asyncio.run(
            WeatherPipeline(weather_client=client).load_device(
                session, ReportedPosition(permission_granted=False, latitude=None, longitude=None)
            )
        )

    assert requests == []
    assert isinstance(session.error, PermissionDenied)


def test_device_location_without_reverse_city_is_undetermined(current_payload, forecast_payload, air_payload) -> None:
    client, _ = _provider(current_payload, forecast_payload, air_payload, reverse=[{"lat": 0.0, "lon": 0.0}])

    with pytest.raises(CityUndetermined):
        asyncio.run(
            WeatherPipeline(weather_client=client).load_device(
                SessionState(), ReportedPosition(permission_granted=True, latitude=0.0, longitude=0.0)
            )
        )


def test_device_location_resolves_city_by_reverse_geocoding(current_payload, forecast_payload, air_payload) -> None:
    client, requests = _provider(
        current_payload, forecast_payload, air_payload, reverse=[{"name": "Camden Town", "lat": 51.54, "lon": -0.14}]
    )
    session = SessionState()

    snapshot = asyncio.run(
        WeatherPipeline(weather_client=client).load_device(
            session, ReportedPosition(permission_granted=True, latitude=51.539, longitude=-0.1426)
        )
    )

    assert snapshot.city_name == "Camden Town"
    assert snapshot.coordinate == Coordinate(latitude=51.539, longitude=-0.1426)
    assert requests[0].url.path.endswith("/geo/1.0/reverse")


def test_stale_fetch_result_is_discarded(current_payload, forecast_payload, air_payload) -> None:
    client, _ = _provider(
        current_payload,
        forecast_payload,
        air_payload,
        geocode=[{"name": "London", "lat": 51.5, "lon": -0.13}],
    )
    london = asyncio.run(WeatherPipeline(weather_client=client).load_city(SessionState(), "London"))
    paris = london.model_copy(update={"city_name": "Paris"})
    session = SessionState()

    first = session.begin_fetch()
    second = session.begin_fetch()

    assert session.install_snapshot(second, paris) is True
    assert session.install_snapshot(first, london) is False
    assert session.fail_fetch(first, WeatherFetchFailed()) is False
    assert session.snapshot.city_name == "Paris"
    assert session.error is None


class _SlowGeocodeClient:
    """Provider whose lookup for one city stays pending until released."""

    def __init__(self, current: dict, forecast: dict, air: dict, slow_city: str) -> None:
        self.current = current
        self.forecast = forecast
        self.air = air
        self.slow_city = slow_city
        self.release = asyncio.Event()
        self.slow_started = asyncio.Event()

    async def geocode(self, query: str) -> list[dict]:
        if query == self.slow_city:
            self.slow_started.set()
            await self.release.wait()
            return []
        return [{"name": query, "lat": 51.5, "lon": -0.13}]

    async def fetch_current(self, **kwargs):  # noqa: ANN003
        return self.current

    async def fetch_forecast(self, **kwargs):  # noqa: ANN003
        return self.forecast

    async def fetch_air_pollution(self, **kwargs):  # noqa: ANN003
        return self.air


def test_superseded_failing_load_returns_latest_view(current_payload, forecast_payload, air_payload) -> None:
    async def scenario():
        client = _SlowGeocodeClient(current_payload, forecast_payload, air_payload, slow_city="Nowhere123")
        pipeline = WeatherPipeline(weather_client=client)
        session = SessionState()

        slow = asyncio.create_task(pipeline.load_city(session, "Nowhere123"))
        await client.slow_started.wait()
        fast = await pipeline.load_city(session, "London")
        client.release.set()
        return session, fast, await slow

    session, fast, slow = asyncio.run(scenario())

    assert fast.city_name == "London"
    assert slow is session.snapshot
    assert session.snapshot.city_name == "London"
    assert session.error is None
    assert session.loading is False


def test_latest_failing_load_still_raises(current_payload, forecast_payload, air_payload) -> None:
    async def scenario():
        client = _SlowGeocodeClient(current_payload, forecast_payload, air_payload, slow_city="Nowhere123")
        client.release.set()
        session = SessionState()
        with pytest.raises(CityNotFound):
            await WeatherPipeline(weather_client=client).load_city(session, "Nowhere123")
        return session

    session = asyncio.run(scenario())

    assert session.snapshot is None
    assert isinstance(session.error, CityNotFound)
