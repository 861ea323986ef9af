"""Read-only access to the audit trail."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request

from crossledger.backend.app.http import get_record_store
from crossledger.backend.app.services import list_logs

blueprint = Blueprint("audit", __name__, url_prefix="/api/v1/audit")


@blueprint.get("/logs")
def index_audit_logs() -> tuple[Any, int]:
    """Return audit records newest first, filtered by ``action`` when given."""

    logs = list_logs(request.args.to_dict(), get_record_store().audit)
    return jsonify({"logs": [entry.as_dict() for entry in logs]}), HTTPStatus.OK


__all__ = ["blueprint"]
