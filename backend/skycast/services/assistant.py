from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from skycast.config import Settings
from skycast.errors import ChatRequestFailed, SkyCastError
from skycast.schemas import ChatTurn, UnitPreference, WeatherSnapshot
from skycast.services.presentation import aqi_label, format_date, format_temperature, format_uv

if TYPE_CHECKING:
    from skycast.services.session import SessionState


logger = logging.getLogger(__name__)

EMPTY_ANSWER_TEXT = "No response"

WEATHER_CHAT_PROMPT_TEMPLATE = (
    "You are a friendly weather assistant.\n\n"
    "Current weather in {city}:\n"
    "Temperature: {temp}\n"
    "Conditions: {description}\n"
    "Humidity: {humidity}%\n"
    "Wind Speed: {wind} m/s\n"
    "Air Quality: {aqi}\n"
    "UV Index: {uv}\n\n"
    "Forecast:\n"
    "{forecast}\n\n"
    "Answer the user's question using this weather data.\n"
    "Question: {question}"
)

NO_WEATHER_PROMPT_TEMPLATE = (
    "You are a friendly weather assistant.\n\n"
    "No weather data is currently loaded for the user.\n\n"
    "Question: {question}"
)


def build_prompt(snapshot: WeatherSnapshot | None, question: str, unit: UnitPreference) -> str:
    if snapshot is None:
        return NO_WEATHER_PROMPT_TEMPLATE.format(question=question)

    offset = snapshot.timezone_offset_seconds
    forecast_lines = [
        f"- {format_date(point.epoch, offset)}: {format_temperature(point.temp_kelvin, unit)}, {point.description}"
        for point in snapshot.daily
    ]
    return WEATHER_CHAT_PROMPT_TEMPLATE.format(
        city=snapshot.city_name,
        temp=format_temperature(snapshot.current.temp_kelvin, unit),
        description=snapshot.current.description,
        humidity=snapshot.current.humidity_pct,
        wind=snapshot.current.wind_speed_mps,
        aqi=aqi_label(snapshot.aqi),
        uv=format_uv(snapshot.uv_index),
        forecast="\n".join(forecast_lines) or "- not available",
        question=question,
    )


@dataclass
class GenerativeTextClient:
    settings: Settings
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(transport=self.transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def generate(self, prompt: str) -> str | None:
        try:
            response = await self._client.post(
                self.settings.gemini_url,
                params={"key": self.settings.gemini_api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ChatRequestFailed() from exc
        return _extract_answer(payload)


@dataclass
class AssistantBridge:
    """Relays chat questions, with the session's weather as context, to the text model.

    Failures never leave this class: they are written to the transcript as an
    assistant turn.
    """

    text_client: GenerativeTextClient

    async def ask(self, session: SessionState, question: str) -> bool:
        if session.chat_sending:
            return False

        session.chat_sending = True
        session.append_turn(ChatTurn(role="user", text=question))
        try:
            try:
                answer = await self.text_client.generate(self._prompt_for(session, question))
            except ChatRequestFailed as exc:
                logger.warning("Chat request failed: %s", exc.__cause__ or exc)
                session.append_turn(ChatTurn(role="assistant", text=exc.message))
            else:
                session.append_turn(ChatTurn(role="assistant", text=answer or EMPTY_ANSWER_TEXT))
        finally:
            session.chat_sending = False
        return True

    @staticmethod
    def _prompt_for(session: SessionState, question: str) -> str:
        try:
            return build_prompt(session.snapshot, question, session.unit)
        except (SkyCastError, ValueError, OverflowError, OSError) as exc:
            raise ChatRequestFailed() from exc


def _extract_answer(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text.strip() if isinstance(text, str) and text.strip() else None
