"""Service-layer helpers for the CrossLedger backend."""

from .audit_service import RequestOrigin, list_logs, record_event
from .ledger_service import create_entry, list_entries
from .payroll_service import calculate_and_store, get_calculation, list_calculations
from .report_service import build_summary, present_summary, render_csv, render_pdf
from .repositories import RecordStore, build_record_store

__all__ = [
    "RecordStore",
    "RequestOrigin",
    "build_record_store",
    "build_summary",
    "calculate_and_store",
    "create_entry",
    "get_calculation",
    "list_calculations",
    "list_entries",
    "list_logs",
    "present_summary",
    "record_event",
    "render_csv",
    "render_pdf",
]
