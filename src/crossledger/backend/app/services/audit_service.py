"""Append-only audit trail for bookkeeping and payroll actions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from crossledger.backend.app.models import (
    AuditLogEntry,
    AuditLogQuery,
    format_validation_error,
)

from .repositories import AuditRepository

_LOGGER = logging.getLogger(__name__)

LEDGER_ENTRY_CREATE = "ledger_entry_create"
PAYROLL_CALCULATION_CREATE = "payroll_calculation_create"


@dataclass(frozen=True)
class RequestOrigin:
    """Client details captured alongside an audit record."""

    ip_address: str | None = None
    user_agent: str | None = None


def record_event(
    repository: AuditRepository | None,
    action: str,
    entity_type: str,
    entity_id: int | None,
    changes: Mapping[str, Any] | None = None,
    *,
    origin: RequestOrigin | None = None,
) -> AuditLogEntry | None:
    """Append an audit record; a missing repository disables auditing."""

    if repository is None:
        return None

    origin = origin or RequestOrigin()
    entry = repository.add(
        AuditLogEntry(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            ip_address=origin.ip_address,
            user_agent=origin.user_agent,
        )
    )
    _LOGGER.debug("Audit %s recorded for %s #%s", action, entity_type, entity_id)
    return entry


def list_logs(params: Mapping[str, Any], repository: AuditRepository) -> list[AuditLogEntry]:
    """Return audit records newest first, optionally filtered by ``action``."""

    try:
        query = AuditLogQuery.model_validate(dict(params))
    except ValidationError as error:
        raise ValueError(format_validation_error(error, "audit query")) from error
    return repository.list(query.limit, query.action)


__all__ = [
    "LEDGER_ENTRY_CREATE",
    "PAYROLL_CALCULATION_CREATE",
    "RequestOrigin",
    "list_logs",
    "record_event",
]
