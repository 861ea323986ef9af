"""HTTP helper utilities shared across Flask blueprints."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flask import Request, current_app, jsonify
from werkzeug.exceptions import BadRequest

from crossledger.backend.app.services.audit_service import RequestOrigin
from crossledger.backend.app.services.repositories import RecordStore

STORE_EXTENSION_KEY = "crossledger.store"


@dataclass(frozen=True)
class ProblemResponse:
    """Lightweight representation of an RFC 7807-style error payload."""

    error: str
    status: int
    message: str | None = None
    extra: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return the serialisable payload for this problem response."""

        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        if self.extra:
            payload.update(self.extra)
        return payload

    def to_response(self) -> tuple[Any, int]:
        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    """Convenience factory mirroring Flask's ``jsonify`` interface."""

    additional: Mapping[str, Any] | None = extra or None
    return ProblemResponse(error=error, status=status, message=message, extra=additional)


def parse_json_payload(req: Request) -> dict[str, Any]:
    """Extract a JSON object from ``req`` or raise :class:`BadRequest`."""

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(data, Mapping):
        raise BadRequest("Request JSON must be an object")
    return dict(data)


def get_record_store() -> RecordStore:
    """Return the repositories bound to the running application."""

    return current_app.extensions[STORE_EXTENSION_KEY]


def request_origin(req: Request) -> RequestOrigin:
    return RequestOrigin(
        ip_address=req.remote_addr,
        user_agent=req.headers.get("User-Agent") or None,
    )


__all__ = [
    "ProblemResponse",
    "STORE_EXTENSION_KEY",
    "get_record_store",
    "parse_json_payload",
    "problem_response",
    "request_origin",
]
