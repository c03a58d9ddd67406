# Cirrus/backend/errors/handlers.py
"""JSON error handling for the Cirrus backend.

Validators and blueprints raise :class:`ApiError` subclasses; the
handlers registered here turn them, werkzeug HTTP errors and anything
unexpected into ``{"error": ..., "detail": ...}`` responses.
"""


from __future__ import annotations

from typing import Any

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from log_config import get_logger


logger = get_logger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status.

    Attributes:
        detail: Human-readable description returned to the caller.
    """

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    @property
    def error(self) -> str:
        return type(self).__name__


class BadRequest(ApiError):
    """Invalid payload, config or override (HTTP 400)."""

    status_code = 400


class NotFound(ApiError):
    """Unknown config (HTTP 404)."""

    status_code = 404


def _payload(error: str, detail: Any) -> Any:
    return jsonify({"error": error, "detail": detail})


def register_error_handlers(app: Flask) -> None:
    """Attach the JSON error handlers to ``app``."""

    @app.errorhandler(ApiError)
    def _on_api_error(err: ApiError) -> tuple[Any, int]:
        if err.status_code < 500:
            logger.info(
                "request_rejected",
                path=request.path,
                status=err.status_code,
                detail=err.detail,
            )
        return _payload(err.error, err.detail), err.status_code

    @app.errorhandler(HTTPException)
    def _on_http_exception(err: HTTPException) -> tuple[Any, int]:
        # Routing errors such as 405 or an unknown URL
        code = err.code or 500
        return _payload(err.name or "HTTPException", err.description), code

    @app.errorhandler(Exception)
    def _on_unexpected(err: Exception) -> tuple[Any, int]:
        logger.exception("unhandled_error", path=request.path, error=str(err))
        return _payload("InternalServerError", "An unexpected error occurred."), 500
