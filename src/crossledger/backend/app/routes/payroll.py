"""REST endpoints for payroll withholding calculations."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request

from crossledger.backend.app.http import (
    get_record_store,
    parse_json_payload,
    problem_response,
    request_origin,
)
from crossledger.backend.app.services import (
    calculate_and_store,
    get_calculation,
    list_calculations,
)

blueprint = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Calculate withholding for the submitted pay period and store it."""

    payload = parse_json_payload(request)
    store = get_record_store()
    result = calculate_and_store(
        payload, store.payroll, store.audit, origin=request_origin(request)
    )
    return jsonify(result), HTTPStatus.CREATED


@blueprint.get("/calculations")
def index_calculations() -> tuple[Any, int]:
    raw_limit = request.args.get("limit")
    try:
        limit = int(raw_limit) if raw_limit not in (None, "") else None
    except ValueError as error:
        raise ValueError("limit must be a positive integer") from error
    results = list_calculations(get_record_store().payroll, limit)
    return jsonify({"calculations": results}), HTTPStatus.OK


@blueprint.get("/calculations/<int:record_id>")
def show_calculation(record_id: int) -> tuple[Any, int]:
    try:
        result = get_calculation(get_record_store().payroll, record_id)
    except KeyError:
        return problem_response(
            "not_found", status=HTTPStatus.NOT_FOUND, message="Calculation not found"
        ).to_response()
    return jsonify(result), HTTPStatus.OK


__all__ = ["blueprint"]
