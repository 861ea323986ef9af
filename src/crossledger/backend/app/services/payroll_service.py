"""Orchestrate payroll request validation, rule lookup and persistence.

The calculator itself is a pure function of its inputs. This module resolves
the jurisdiction's rule book, picks the rule versions in force at the start of
the pay period, runs the calculation, and stores the immutable record that the
API hands back to clients in major currency units.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from crossledger.backend.app.models import (
    PayrollCalculationRecord,
    PayrollCalculationRequest,
    PayrollCalculationResponse,
    format_validation_error,
)
from crossledger.backend.config.rule_config import ConfigurationError

from .audit_service import PAYROLL_CALCULATION_CREATE, RequestOrigin, record_event
from .calculators import PayrollBreakdown, calculate_payroll, to_major_units
from .profiling import log_timings, new_timings, profile_section
from .repositories import AuditRepository, PayrollRepository
from .rule_lookup import active_rules_for, resolve_rule_book

_LOGGER = logging.getLogger(__name__)

_SLICE_AMOUNT_FIELDS = ("threshold", "upper", "amount", "tax")
_BREAKDOWN_AMOUNT_FIELDS = ("taxable_income", "tax_free_allowance", "social_security_base")


def _validate_request(payload: Mapping[str, Any]) -> PayrollCalculationRequest:
    if not isinstance(payload, Mapping):
        raise ValueError("Payroll request body must be a JSON object")
    try:
        return PayrollCalculationRequest.model_validate(payload)
    except ValidationError as error:
        raise ValueError(format_validation_error(error, "payroll request")) from error


def _ensure_consistent(breakdown: PayrollBreakdown) -> None:
    if breakdown.net_salary < 0:
        _LOGGER.error(
            "Rules for %s produced a negative net salary (%s) for gross %s",
            breakdown.jurisdiction,
            breakdown.net_salary,
            breakdown.gross_salary,
        )
        raise ConfigurationError(
            f"Rules for {breakdown.jurisdiction} withhold more than the gross salary"
        )


def _present_breakdown(details: Mapping[str, Any]) -> dict[str, Any]:
    presented: dict[str, Any] = {
        key: to_major_units(details[key])
        for key in _BREAKDOWN_AMOUNT_FIELDS
        if details.get(key) is not None
    }
    presented["wage_tax_slices"] = [
        {
            **entry,
            **{
                key: to_major_units(entry[key])
                for key in _SLICE_AMOUNT_FIELDS
                if entry.get(key) is not None
            },
        }
        for entry in details.get("wage_tax_slices", [])
    ]
    presented["applied_rules"] = list(details.get("applied_rules", []))
    return presented


def present_record(record: PayrollCalculationRecord) -> dict[str, Any]:
    """Return the JSON payload for a stored calculation."""

    details = record.details
    response = PayrollCalculationResponse.model_validate(
        {
            "id": record.id,
            "employee_name": record.employee_name,
            "jurisdiction": record.jurisdiction,
            "currency": record.currency,
            "gross_salary": to_major_units(record.gross_salary),
            "wage_tax": to_major_units(record.wage_tax),
            "social_security": to_major_units(record.social_security),
            "net_salary": to_major_units(record.net_salary),
            "thirty_percent_ruling": record.thirty_percent_ruling,
            "period_start": record.period_start,
            "period_end": record.period_end,
            "status": record.status,
            "missing_rules": list(details.get("missing_rules", [])),
            "notices": list(details.get("notices", [])),
            "breakdown": _present_breakdown(details),
            "created_at": record.created_at,
        }
    )
    return response.model_dump(mode="json")


def calculate_payroll_record(
    payload: Mapping[str, Any],
    repository: PayrollRepository,
    audit: AuditRepository | None = None,
    *,
    origin: RequestOrigin | None = None,
) -> PayrollCalculationRecord:
    """Validate ``payload``, compute withholding and persist the result."""

    request = _validate_request(payload)
    book = resolve_rule_book(request.jurisdiction)
    jurisdiction = book.jurisdiction

    currency = request.currency or jurisdiction.currency
    if currency != jurisdiction.currency:
        raise ValueError(
            f"Payroll for {jurisdiction.code} must be calculated in {jurisdiction.currency}"
        )

    timings = new_timings()
    with profile_section("rule_lookup", timings):
        active_rules = active_rules_for(
            jurisdiction.code, request.period_start, jurisdiction.payroll_rules
        )

    with profile_section("calculate", timings):
        breakdown = calculate_payroll(
            request.gross_salary,
            jurisdiction=jurisdiction.code,
            thirty_percent_ruling=request.thirty_percent_ruling,
            active_rules=active_rules,
            plan=jurisdiction.payroll_rules,
        )
    _ensure_consistent(breakdown)

    record = PayrollCalculationRecord(
        employee_name=request.employee_name,
        jurisdiction=jurisdiction.code,
        currency=currency,
        gross_salary=breakdown.gross_salary,
        wage_tax=breakdown.wage_tax,
        social_security=breakdown.social_security,
        net_salary=breakdown.net_salary,
        thirty_percent_ruling=request.thirty_percent_ruling,
        period_start=request.period_start,
        period_end=request.period_end,
        status=breakdown.status.value,
        details=breakdown.as_dict(),
    )

    with profile_section("persist", timings):
        stored = repository.add(record)
        record_event(
            audit,
            PAYROLL_CALCULATION_CREATE,
            "payroll_calculation",
            stored.id,
            {
                "employee_name": stored.employee_name,
                "jurisdiction": stored.jurisdiction,
                "gross_salary": stored.gross_salary,
                "status": stored.status,
            },
            origin=origin,
        )

    log_timings(_LOGGER, "calculate_payroll", timings)
    return stored


def calculate_and_store(
    payload: Mapping[str, Any],
    repository: PayrollRepository,
    audit: AuditRepository | None = None,
    *,
    origin: RequestOrigin | None = None,
) -> dict[str, Any]:
    """Run a payroll calculation and return the serialised stored record."""

    return present_record(
        calculate_payroll_record(payload, repository, audit, origin=origin)
    )


def get_calculation(repository: PayrollRepository, record_id: int) -> dict[str, Any]:
    return present_record(repository.get(record_id))


def list_calculations(
    repository: PayrollRepository, limit: int | None = None
) -> list[dict[str, Any]]:
    if limit is not None and limit <= 0:
        raise ValueError("limit must be a positive integer")
    return [present_record(record) for record in repository.list(limit)]


__all__ = [
    "calculate_and_store",
    "calculate_payroll_record",
    "get_calculation",
    "list_calculations",
    "present_record",
]
