"""Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The redirect interceptor only ever
lets ConfigurationMissingError escape a short-link lookup; every other failure
there becomes a diagnostic redirect. Routes raise the upstream errors below
and the registered handlers turn them into responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

__all__ = [
    "AppError",
    "CONFIGURATION_MISSING_MESSAGE",
    "ConfigurationMissingError",
    "UpstreamTimeoutError",
    "UpstreamUnavailableError",
    "configuration_missing_response",
    "register_error_handlers",
]

CONFIGURATION_MISSING_MESSAGE = "Internal Server Error: Configuration missing."


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.error_code}


class ConfigurationMissingError(AppError):
    status_code = 500
    error_code = "configuration_missing"


class UpstreamUnavailableError(AppError):
    status_code = 502
    error_code = "upstream_unavailable"


class UpstreamTimeoutError(AppError):
    status_code = 504
    error_code = "upstream_timeout"


def configuration_missing_response() -> Response:
    return PlainTextResponse(CONFIGURATION_MISSING_MESSAGE, status_code=500)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(ConfigurationMissingError)
    async def configuration_missing_handler(
        request: Request, exc: ConfigurationMissingError
    ) -> Response:
        return configuration_missing_response()

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
