"""Booking and querying ledger entries."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from crossledger.backend.app.models import (
    LedgerEntry,
    LedgerEntryRequest,
    LedgerListQuery,
    PeriodQuery,
    format_validation_error,
)
from crossledger.backend.config.rule_config import available_jurisdictions, base_currency

from .audit_service import LEDGER_ENTRY_CREATE, RequestOrigin, record_event
from .calculators import normalize_amount, parse_exchange_rate
from .repositories import AuditRepository, LedgerRepository

_LOGGER = logging.getLogger(__name__)


def _ensure_known_jurisdiction(code: str) -> None:
    if code not in available_jurisdictions():
        supported = ", ".join(available_jurisdictions())
        raise ValueError(f"Unsupported jurisdiction '{code}' (supported: {supported})")


def parse_period(params: Mapping[str, Any]) -> PeriodQuery:
    """Validate the ``start_date``/``end_date``/``jurisdiction`` parameters."""

    try:
        query = PeriodQuery.model_validate(dict(params))
    except ValidationError as error:
        raise ValueError(format_validation_error(error, "period")) from error
    if query.jurisdiction is not None:
        _ensure_known_jurisdiction(query.jurisdiction)
    return query


def create_entry(
    payload: Mapping[str, Any],
    repository: LedgerRepository,
    audit: AuditRepository | None = None,
    *,
    origin: RequestOrigin | None = None,
) -> LedgerEntry:
    """Validate ``payload``, convert it into the base currency and store it.

    Foreign-currency entries need an exchange rate; without one the entry is
    rejected so reports never sum mixed currencies. Each stored entry is
    recorded in ``audit`` when one is given.
    """

    if not isinstance(payload, Mapping):
        raise ValueError("Ledger entry body must be a JSON object")
    try:
        request = LedgerEntryRequest.model_validate(payload)
    except ValidationError as error:
        raise ValueError(format_validation_error(error, "ledger entry")) from error

    _ensure_known_jurisdiction(request.jurisdiction)

    reporting_currency = base_currency()
    amount_base = normalize_amount(
        request.amount,
        request.currency,
        request.exchange_rate,
        base_currency=reporting_currency,
    )

    exchange_rate = None
    if request.currency != reporting_currency and request.exchange_rate is not None:
        exchange_rate = str(parse_exchange_rate(request.exchange_rate))
    elif request.exchange_rate is not None:
        _LOGGER.info(
            "Ignoring exchange rate for %s entry already in the base currency",
            request.currency,
        )

    entry = LedgerEntry(
        entry_type=request.entry_type,
        entry_date=request.entry_date,
        amount=request.amount,
        currency=request.currency,
        amount_base=amount_base,
        exchange_rate=exchange_rate,
        jurisdiction=request.jurisdiction,
        category=request.category,
        description=request.description,
        document_id=request.document_id,
    )
    stored = repository.add(entry)
    record_event(
        audit,
        LEDGER_ENTRY_CREATE,
        "ledger_entry",
        stored.id,
        {
            "entry_type": stored.entry_type.value,
            "amount": stored.amount,
            "currency": stored.currency,
            "amount_base": stored.amount_base,
            "jurisdiction": stored.jurisdiction,
        },
        origin=origin,
    )
    return stored


def list_entries(params: Mapping[str, Any], repository: LedgerRepository) -> list[LedgerEntry]:
    """Return entries in the requested window, or every entry without one."""

    try:
        query = LedgerListQuery.model_validate(dict(params))
    except ValidationError as error:
        raise ValueError(format_validation_error(error, "period")) from error
    if query.jurisdiction is not None:
        _ensure_known_jurisdiction(query.jurisdiction)
    if query.start_date is None or query.end_date is None:
        return repository.list_all(query.jurisdiction)
    return repository.list_between(query.start_date, query.end_date, query.jurisdiction)


__all__ = ["create_entry", "list_entries", "parse_period"]
