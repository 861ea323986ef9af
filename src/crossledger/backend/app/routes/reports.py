"""Endpoints for period summaries and their downloadable exports."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, Response, jsonify, request

from crossledger.backend.app.http import get_record_store
from crossledger.backend.app.services import (
    build_summary,
    present_summary,
    render_csv,
    render_pdf,
)
from crossledger.backend.app.services.report_service import export_filename

blueprint = Blueprint("reports", __name__, url_prefix="/api/v1/reports")


@blueprint.get("/summary")
def get_summary() -> tuple[Any, int]:
    """Return totals for ``start_date``..``end_date`` in the base currency."""

    summary = build_summary(request.args.to_dict(), get_record_store().ledger)
    return jsonify(present_summary(summary)), HTTPStatus.OK


@blueprint.get("/summary/csv")
def download_summary_csv() -> Response:
    summary = build_summary(request.args.to_dict(), get_record_store().ledger)
    response = Response(render_csv(summary), mimetype="text/csv; charset=utf-8")
    response.headers["Content-Disposition"] = (
        f"attachment; filename={export_filename(summary, 'csv')}"
    )
    return response


@blueprint.get("/summary/pdf")
def download_summary_pdf() -> Response:
    summary = build_summary(request.args.to_dict(), get_record_store().ledger)
    response = Response(render_pdf(summary), mimetype="application/pdf")
    response.headers["Content-Disposition"] = (
        f"attachment; filename={export_filename(summary, 'pdf')}"
    )
    return response


__all__ = ["blueprint"]
