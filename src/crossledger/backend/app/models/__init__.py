"""Typed request/response models and persisted records.

Request payloads are validated with Pydantic; derived and stored records are
frozen dataclasses so services can hand them around without copying.
"""

from __future__ import annotations

from .api import (
    ActiveRulesQuery,
    AuditLogQuery,
    JurisdictionTotalsModel,
    LedgerEntryRequest,
    LedgerListQuery,
    NoticeModel,
    PayrollCalculationRequest,
    PayrollCalculationResponse,
    PeriodQuery,
    ReportSummaryResponse,
    format_validation_error,
)
from .records import (
    MAX_AMOUNT,
    AuditLogEntry,
    EntryType,
    LedgerEntry,
    PayrollCalculationRecord,
)

__all__ = [
    "ActiveRulesQuery",
    "AuditLogEntry",
    "AuditLogQuery",
    "EntryType",
    "JurisdictionTotalsModel",
    "LedgerEntry",
    "LedgerEntryRequest",
    "LedgerListQuery",
    "MAX_AMOUNT",
    "NoticeModel",
    "PayrollCalculationRecord",
    "PayrollCalculationRequest",
    "PayrollCalculationResponse",
    "PeriodQuery",
    "ReportSummaryResponse",
    "format_validation_error",
]
