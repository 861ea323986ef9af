"""Expose jurisdiction metadata and the versioned rule book.

Clients use these endpoints to show which tax authority and currency apply to
a country and which rule versions were in force on a given day.
"""

from __future__ import annotations

from datetime import date
from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from crossledger.backend.app.http import problem_response
from crossledger.backend.app.models import ActiveRulesQuery, format_validation_error
from crossledger.backend.app.services.rule_lookup import (
    active_rules_for,
    list_rules,
    resolve_rule_book,
    serialise_rule,
)
from crossledger.backend.config.rule_config import (
    Jurisdiction,
    RuleType,
    available_jurisdictions,
    base_currency,
    load_jurisdictions,
)
from crossledger.backend.version import get_project_version

blueprint = Blueprint("jurisdictions", __name__, url_prefix="/api/v1/jurisdictions")


def _serialise_jurisdiction(jurisdiction: Jurisdiction) -> dict[str, Any]:
    return {
        "code": jurisdiction.code,
        "name": jurisdiction.name,
        "currency": jurisdiction.currency,
        "tax_authority": jurisdiction.tax_authority,
        "tax_authority_url": jurisdiction.tax_authority_url,
        "payroll_rules": [rule_type.value for rule_type in jurisdiction.payroll_rules],
    }


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the rule manifest."""

    return {
        "version": get_project_version(),
        "base_currency": base_currency(),
        "jurisdictions": [jurisdiction.code for jurisdiction in load_jurisdictions()],
    }


def _unknown_jurisdiction(code: str) -> tuple[Any, int] | None:
    normalised = code.strip().upper()
    if normalised in available_jurisdictions():
        return None
    return problem_response(
        "not_found",
        status=HTTPStatus.NOT_FOUND,
        message=f"Unknown jurisdiction '{normalised}'",
        supported=list(available_jurisdictions()),
    ).to_response()


def _parse_rule_type(raw: str | None) -> RuleType | None:
    if raw is None or not raw.strip():
        return None
    try:
        return RuleType(raw.strip().lower())
    except ValueError as error:
        allowed = ", ".join(rule_type.value for rule_type in RuleType)
        raise ValueError(f"Unknown rule type '{raw}' (allowed: {allowed})") from error


@blueprint.get("")
def index_jurisdictions() -> tuple[Any, int]:
    jurisdictions = [_serialise_jurisdiction(item) for item in load_jurisdictions()]
    return (
        jsonify({"base_currency": base_currency(), "jurisdictions": jurisdictions}),
        HTTPStatus.OK,
    )


@blueprint.get("/<string:code>")
def show_jurisdiction(code: str) -> tuple[Any, int]:
    missing = _unknown_jurisdiction(code)
    if missing is not None:
        return missing
    book = resolve_rule_book(code)
    return jsonify(_serialise_jurisdiction(book.jurisdiction)), HTTPStatus.OK


@blueprint.get("/<string:code>/rules")
def index_rules(code: str) -> tuple[Any, int]:
    missing = _unknown_jurisdiction(code)
    if missing is not None:
        return missing
    rule_type = _parse_rule_type(request.args.get("type"))
    rules = [serialise_rule(rule) for rule in list_rules(code, rule_type)]
    return jsonify({"jurisdiction": code.upper(), "rules": rules}), HTTPStatus.OK


@blueprint.get("/<string:code>/rules/active")
def index_active_rules(code: str) -> tuple[Any, int]:
    """Return the rule versions active on ``date`` (today when omitted)."""

    missing = _unknown_jurisdiction(code)
    if missing is not None:
        return missing
    try:
        query = ActiveRulesQuery.model_validate(request.args.to_dict())
    except ValidationError as error:
        raise ValueError(format_validation_error(error, "query")) from error

    reference = query.reference_date or date.today()
    active = active_rules_for(code, reference)
    return (
        jsonify(
            {
                "jurisdiction": code.upper(),
                "date": reference.isoformat(),
                "rules": [serialise_rule(rule) for rule in active.values()],
            }
        ),
        HTTPStatus.OK,
    )


__all__ = ["blueprint", "get_configuration_metadata"]
