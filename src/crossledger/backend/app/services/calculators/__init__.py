"""Pure calculation helpers for payroll, reporting and currency conversion."""

from .currency import (
    MAX_EXCHANGE_RATE,
    MissingExchangeRateError,
    normalize_amount,
    parse_exchange_rate,
)
from .payroll import (
    CalculationStatus,
    PayrollBreakdown,
    PayrollNotice,
    calculate_payroll,
)
from .report import ReportSummary, UnconvertedEntryError, summarize
from .utils import format_percentage, round_half_up, to_major_units

__all__ = [
    "CalculationStatus",
    "MAX_EXCHANGE_RATE",
    "MissingExchangeRateError",
    "PayrollBreakdown",
    "PayrollNotice",
    "ReportSummary",
    "UnconvertedEntryError",
    "calculate_payroll",
    "format_percentage",
    "normalize_amount",
    "parse_exchange_rate",
    "round_half_up",
    "summarize",
    "to_major_units",
]
