from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from skycast.config import get_settings
from skycast.errors import CityNotFound, CityUndetermined, PermissionDenied, SkyCastError, WeatherFetchFailed
from skycast.schemas import ChatRequest, CityWeatherRequest, DeviceWeatherRequest, UnitPreference, UnitRequest
from skycast.services.assistant import AssistantBridge, GenerativeTextClient
from skycast.services.locator import ReportedPosition
from skycast.services.presentation import render_snapshot
from skycast.services.session import SessionState, SessionStore, WeatherPipeline
from skycast.services.weather_client import WeatherClient


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

weather_client = WeatherClient(settings=settings)
text_client = GenerativeTextClient(settings=settings)
pipeline = WeatherPipeline(weather_client=weather_client)
assistant = AssistantBridge(text_client=text_client)
session_store = SessionStore(default_unit=UnitPreference(settings.default_unit))

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES = {
    CityNotFound: 404,
    PermissionDenied: 403,
    CityUndetermined: 422,
    WeatherFetchFailed: 502,
}


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await weather_client.close()
    await text_client.close()


@app.get("/api/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp_utc": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.post("/api/sessions/{session_id}/weather")
async def load_city_weather(session_id: str, payload: CityWeatherRequest) -> dict:
    session = session_store.get(session_id)
    try:
        await pipeline.load_city(session, payload.city)
    except SkyCastError as exc:
        raise _to_http_error(exc) from exc
    return _serialize_session(session_id, session)


@app.post("/api/sessions/{session_id}/weather/device")
async def load_device_weather(session_id: str, payload: DeviceWeatherRequest) -> dict:
    session = session_store.get(session_id)
    device = ReportedPosition(
        permission_granted=payload.permission_granted,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    try:
        await pipeline.load_device(session, device)
    except SkyCastError as exc:
        raise _to_http_error(exc) from exc
    return _serialize_session(session_id, session)


@app.get("/api/sessions/{session_id}/weather")
async def current_weather(session_id: str) -> dict:
    return _serialize_session(session_id, session_store.get(session_id))


@app.put("/api/sessions/{session_id}/unit")
async def change_unit(session_id: str, payload: UnitRequest) -> dict:
    session = session_store.get(session_id)
    session.set_unit(payload.unit)
    return _serialize_session(session_id, session)


@app.post("/api/sessions/{session_id}/chat")
async def ask_assistant(session_id: str, payload: ChatRequest) -> dict:
    session = session_store.get(session_id)
    accepted = await assistant.ask(session, payload.question)
    if not accepted:
        raise HTTPException(status_code=409, detail="A chat request is already in progress.")
    return _serialize_transcript(session_id, session)


@app.get("/api/sessions/{session_id}/chat")
async def chat_transcript(session_id: str) -> dict:
    return _serialize_transcript(session_id, session_store.get(session_id))


def _to_http_error(exc: SkyCastError) -> HTTPException:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return HTTPException(status_code=status_code, detail=exc.message, headers={"X-SkyCast-Error": exc.kind})


def _serialize_session(session_id: str, session: SessionState) -> dict:
    error = None
    if session.error is not None:
        error = {"kind": session.error.kind, "message": session.error.message}
    return {
        "session_id": session_id,
        "unit": session.unit.value,
        "loading": session.loading,
        "error": error,
        "weather": render_snapshot(session.snapshot, session.unit) if session.snapshot is not None else None,
    }


def _serialize_transcript(session_id: str, session: SessionState) -> dict:
    return {
        "session_id": session_id,
        "sending": session.chat_sending,
        "turns": [turn.model_dump() for turn in session.transcript],
    }
