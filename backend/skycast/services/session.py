from __future__ import annotations

import logging
from dataclasses import dataclass, field

from skycast.errors import SkyCastError
from skycast.schemas import ChatTurn, Coordinate, UnitPreference, WeatherSnapshot
from skycast.services.aggregator import build_snapshot
from skycast.services.fetcher import fetch_weather_bundle
from skycast.services.locator import DevicePosition, locate_city, locate_device
from skycast.services.weather_client import WeatherClient


logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Everything one app session shows: unit, latest snapshot, chat and status flags."""

    unit: UnitPreference = UnitPreference.CELSIUS
    snapshot: WeatherSnapshot | None = None
    error: SkyCastError | None = None
    loading: bool = False
    chat_sending: bool = False
    _transcript: list[ChatTurn] = field(default_factory=list, init=False, repr=False)
    _fetch_seq: int = field(default=0, init=False, repr=False)

    @property
    def transcript(self) -> tuple[ChatTurn, ...]:
        return tuple(self._transcript)

    def append_turn(self, turn: ChatTurn) -> None:
        self._transcript.append(turn)

    def set_unit(self, unit: UnitPreference) -> None:
        self.unit = unit

    def begin_fetch(self) -> int:
        self._fetch_seq += 1
        self.loading = True
        return self._fetch_seq

    def is_latest(self, seq: int) -> bool:
        return seq == self._fetch_seq

    def install_snapshot(self, seq: int, snapshot: WeatherSnapshot) -> bool:
        if not self.is_latest(seq):
            logger.debug("Discarding stale snapshot for fetch #%s (latest #%s)", seq, self._fetch_seq)
            return False
        self.snapshot = snapshot
        self.error = None
        self.loading = False
        return True

    def fail_fetch(self, seq: int, error: SkyCastError) -> bool:
        if not self.is_latest(seq):
            logger.debug("Discarding stale failure for fetch #%s (latest #%s)", seq, self._fetch_seq)
            return False
        self.snapshot = None
        self.error = error
        self.loading = False
        return True


@dataclass
class SessionStore:
    default_unit: UnitPreference = UnitPreference.CELSIUS
    _sessions: dict[str, SessionState] = field(default_factory=dict, init=False, repr=False)

    def get(self, session_id: str) -> SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(unit=self.default_unit)
            self._sessions[session_id] = session
        return session


@dataclass
class WeatherPipeline:
    """Locate, fetch and aggregate, then install the result on the session.

    Only the most recently started fetch of a session may change it; results
    of superseded fetches are dropped when they arrive.
    """

    weather_client: WeatherClient

    async def load_city(self, session: SessionState, city: str) -> WeatherSnapshot | None:
        seq = session.begin_fetch()
        try:
            coordinate, city_name = await locate_city(self.weather_client, city)
            snapshot = await self._build(coordinate, city_name)
        except SkyCastError as exc:
            logger.info("Weather load for %r failed: %s", city, exc.kind)
            if session.fail_fetch(seq, exc):
                raise
            return session.snapshot
        session.install_snapshot(seq, snapshot)
        return session.snapshot

    async def load_device(self, session: SessionState, device: DevicePosition) -> WeatherSnapshot | None:
        seq = session.begin_fetch()
        try:
            coordinate, city_name = await locate_device(self.weather_client, device)
            snapshot = await self._build(coordinate, city_name)
        except SkyCastError as exc:
            logger.info("Weather load for device position failed: %s", exc.kind)
            if session.fail_fetch(seq, exc):
                raise
            return session.snapshot
        session.install_snapshot(seq, snapshot)
        return session.snapshot

    async def _build(self, coordinate: Coordinate, city_name: str) -> WeatherSnapshot:
        bundle = await fetch_weather_bundle(self.weather_client, coordinate)
        return build_snapshot(city_name=city_name, coordinate=coordinate, bundle=bundle)
