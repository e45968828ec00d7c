from __future__ import annotations


class SkyCastError(Exception):
    """Base class for failures that end up in front of the user as one message."""

    kind = "error"
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class CityNotFound(SkyCastError):
    kind = "city_not_found"
    default_message = "Could not find weather for that city."


class PermissionDenied(SkyCastError):
    kind = "permission_denied"
    default_message = "Location permission was denied."


class CityUndetermined(SkyCastError):
    kind = "city_undetermined"
    default_message = "Could not determine a city for your location."


class WeatherFetchFailed(SkyCastError):
    kind = "weather_fetch_failed"
    default_message = "Could not load weather data. Please try again."


class ChatRequestFailed(SkyCastError):
    kind = "chat_request_failed"
    default_message = "Sorry, I couldn't reach the weather assistant. Please try again."
