"""Endpoints for booking and listing ledger entries."""

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
from crossledger.backend.app.services import create_entry, list_entries

blueprint = Blueprint("ledger", __name__, url_prefix="/api/v1/ledger")


@blueprint.post("/entries")
def create_ledger_entry() -> tuple[Any, int]:
    payload = parse_json_payload(request)
    store = get_record_store()
    entry = create_entry(
        payload, store.ledger, store.audit, origin=request_origin(request)
    )
    return jsonify(entry.as_dict()), HTTPStatus.CREATED


@blueprint.get("/entries")
def index_ledger_entries() -> tuple[Any, int]:
    entries = list_entries(request.args.to_dict(), get_record_store().ledger)
    return jsonify({"entries": [entry.as_dict() for entry in entries]}), HTTPStatus.OK


@blueprint.get("/entries/<int:entry_id>")
def show_ledger_entry(entry_id: int) -> tuple[Any, int]:
    try:
        entry = get_record_store().ledger.get(entry_id)
    except KeyError:
        return problem_response(
            "not_found", status=HTTPStatus.NOT_FOUND, message="Ledger entry not found"
        ).to_response()
    return jsonify(entry.as_dict()), HTTPStatus.OK


__all__ = ["blueprint"]
