"""Pydantic models describing the public API surface."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .records import MAX_AMOUNT, EntryType

__all__ = [
    "ActiveRulesQuery",
    "AuditLogQuery",
    "JurisdictionTotalsModel",
    "LedgerEntryRequest",
    "LedgerListQuery",
    "NoticeModel",
    "PayrollCalculationRequest",
    "PayrollCalculationResponse",
    "PeriodQuery",
    "ReportSummaryResponse",
    "format_validation_error",
]


def _normalise_code(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _ensure_period(start: date, end: date) -> None:
    if end < start:
        raise ValueError("end date must not be before start date")


class PayrollCalculationRequest(BaseModel):
    """Inputs for a single payroll withholding calculation."""

    model_config = ConfigDict(extra="forbid")

    employee_name: str = Field(..., min_length=1, max_length=200)
    jurisdiction: str = Field(..., min_length=2, max_length=8)
    gross_salary: int = Field(..., ge=0, le=MAX_AMOUNT, strict=True)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    thirty_percent_ruling: bool = Field(default=False, strict=True)
    period_start: date
    period_end: date

    @field_validator("employee_name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("jurisdiction", "currency", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return _normalise_code(value)

    @model_validator(mode="after")
    def _validate_period(self) -> PayrollCalculationRequest:
        _ensure_period(self.period_start, self.period_end)
        return self


class LedgerEntryRequest(BaseModel):
    """Income or expense line submitted for booking."""

    model_config = ConfigDict(extra="forbid")

    entry_type: EntryType
    entry_date: date
    amount: int = Field(..., ge=0, le=MAX_AMOUNT, strict=True)
    currency: str = Field(..., min_length=3, max_length=3)
    exchange_rate: str | None = None
    jurisdiction: str = Field(..., min_length=2, max_length=8)
    category: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    document_id: int | None = Field(default=None, ge=1)

    @field_validator("currency", "jurisdiction", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return _normalise_code(value)

    @field_validator("category", mode="before")
    @classmethod
    def _strip_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("exchange_rate", mode="before")
    @classmethod
    def _stringify_rate(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("exchange rate must be a decimal number")
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PeriodQuery(BaseModel):
    """Date window (inclusive) with an optional jurisdiction filter."""

    model_config = ConfigDict(extra="forbid")

    start_date: date
    end_date: date
    jurisdiction: str | None = None

    @field_validator("jurisdiction", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        value = _normalise_code(value)
        if value in {"", "ALL"}:
            return None
        return value

    @model_validator(mode="after")
    def _validate_period(self) -> PeriodQuery:
        _ensure_period(self.start_date, self.end_date)
        return self


class LedgerListQuery(BaseModel):
    """Ledger listing filter; the date window is optional but must be complete."""

    model_config = ConfigDict(extra="forbid")

    start_date: date | None = None
    end_date: date | None = None
    jurisdiction: str | None = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("jurisdiction", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        value = _normalise_code(value)
        if value in {"", "ALL"}:
            return None
        return value

    @model_validator(mode="after")
    def _validate_period(self) -> LedgerListQuery:
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be given together")
        if self.start_date is not None and self.end_date is not None:
            _ensure_period(self.start_date, self.end_date)
        return self


class ActiveRulesQuery(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    reference_date: date | None = Field(default=None, alias="date")


class AuditLogQuery(BaseModel):
    model_config = ConfigDict(extra="forbid")

    limit: int = Field(default=100, ge=1, le=1000)
    action: str | None = None

    @field_validator("action", mode="before")
    @classmethod
    def _blank_action(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value


class NoticeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    message: str
    rule_type: str | None = None


class PayrollCalculationResponse(BaseModel):
    """Persisted payroll calculation with amounts in major units."""

    model_config = ConfigDict(extra="forbid")

    id: int
    employee_name: str
    jurisdiction: str
    currency: str
    gross_salary: Decimal
    wage_tax: Decimal
    social_security: Decimal
    net_salary: Decimal
    thirty_percent_ruling: bool
    period_start: date
    period_end: date
    status: str
    missing_rules: list[str] = Field(default_factory=list)
    notices: list[NoticeModel] = Field(default_factory=list)
    breakdown: Mapping[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class JurisdictionTotalsModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    income: Decimal
    expenses: Decimal


class ReportSummaryResponse(BaseModel):
    """Serialisable period summary."""

    model_config = ConfigDict(extra="forbid")

    period_start: date
    period_end: date
    jurisdiction: str | None = None
    base_currency: str
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    by_jurisdiction: dict[str, JurisdictionTotalsModel]
    by_category: dict[str, Decimal]
    transaction_count: int


def format_validation_error(error: ValidationError, subject: str = "request") -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid {subject}: {details}"
