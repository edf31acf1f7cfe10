from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional

from flask import jsonify, request
from flask.json.provider import DefaultJSONProvider

from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (RateLimitExceeded, 429),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 400),
)


class ApiJSONProvider(DefaultJSONProvider):
    """Serialise MySQL row values (DATE, DECIMAL, TIME) the way the UI expects."""

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, (datetime, date, time)):
            return o.isoformat()
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, timedelta):
            return int(o.total_seconds())
        if isinstance(o, (bytes, bytearray)):
            return o.decode("utf-8", errors="replace")
        return DefaultJSONProvider.default(o)


def ok(data: Any = None, *, status: int = 200, **extra: Any):
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int, **extra: Any):
    body = {"success": False, "error": message}
    body.update(extra)
    return jsonify(body), status


def status_for(error: DomainError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(error, cls):
            return status
    return 400


def error_response(error: DomainError):
    status = status_for(error)
    if isinstance(error, RateLimitExceeded):
        resp = jsonify({"success": False, "error": str(error), "retryAfter": error.retry_after})
        resp.status_code = status
        resp.headers["Retry-After"] = str(error.retry_after)
        return resp
    return fail(str(error), status)


def server_error(message: str, context: Optional[str] = None):
    logger.exception("%s", context or message)
    return fail(message, 500)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
