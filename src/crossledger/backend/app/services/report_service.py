"""Period summaries and their CSV/PDF exports."""

from __future__ import annotations

import csv
import logging
from collections.abc import Mapping
from decimal import Decimal
from io import StringIO
from typing import Any, Iterable

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from crossledger.backend.app.models import ReportSummaryResponse
from crossledger.backend.config.rule_config import base_currency

from .calculators import ReportSummary, summarize
from .ledger_service import parse_period
from .profiling import log_timings, new_timings, profile_section
from .repositories import LedgerRepository

_LOGGER = logging.getLogger(__name__)

REPORT_TITLE = "CrossLedger Accounting Report"


def build_summary(params: Mapping[str, Any], repository: LedgerRepository) -> ReportSummary:
    """Query the ledger for the requested period and fold it into a summary."""

    query = parse_period(params)
    timings = new_timings()

    with profile_section("query", timings):
        entries = repository.list_between(
            query.start_date, query.end_date, query.jurisdiction
        )
    with profile_section("summarize", timings):
        summary = summarize(
            entries,
            query.start_date,
            query.end_date,
            query.jurisdiction,
            base_currency=base_currency(),
        )

    log_timings(_LOGGER, "report_summary", timings)
    return summary


def present_summary(summary: ReportSummary) -> dict[str, Any]:
    return ReportSummaryResponse.model_validate(summary.as_dict()).model_dump(mode="json")


def _format_money(value: Decimal, currency: str) -> str:
    return f"{currency} {value:,.2f}"


def _summary_rows(summary: ReportSummary) -> Iterable[tuple[str, str]]:
    currency = summary.base_currency
    yield "Total Income", _format_money(summary.total_income, currency)
    yield "Total Expenses", _format_money(summary.total_expenses, currency)
    yield "Net Profit", _format_money(summary.net_profit, currency)
    yield "Transactions", str(summary.transaction_count)


def _pdf_text(value: str) -> str:
    # core PDF fonts only cover latin-1
    return value.encode("latin-1", "replace").decode("latin-1")


def _period_label(summary: ReportSummary) -> str:
    return f"{summary.period_start.isoformat()} - {summary.period_end.isoformat()}"


def export_filename(summary: ReportSummary, extension: str) -> str:
    return f"crossledger-report-{summary.period_start.isoformat()}.{extension}"


def render_csv(summary: ReportSummary) -> str:
    """Return the summary as CSV, one section after another."""

    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow([REPORT_TITLE])
    writer.writerow(["Period", _period_label(summary)])
    writer.writerow(["Jurisdiction", summary.jurisdiction or "All"])
    writer.writerow([])
    writer.writerow(["Summary"])
    for label, value in _summary_rows(summary):
        writer.writerow([label, value])

    writer.writerow([])
    writer.writerow(["By Jurisdiction"])
    writer.writerow(["Jurisdiction", "Income", "Expenses", "Net"])
    for code, totals in summary.by_jurisdiction.items():
        writer.writerow(
            [
                code,
                f"{totals.income:.2f}",
                f"{totals.expenses:.2f}",
                f"{totals.income - totals.expenses:.2f}",
            ]
        )

    writer.writerow([])
    writer.writerow(["By Category"])
    writer.writerow(["Category", "Amount"])
    for label, amount in summary.by_category.items():
        writer.writerow([label, f"{amount:.2f}"])

    return buffer.getvalue()


def render_pdf(summary: ReportSummary) -> bytes:
    """Render a one-page PDF version of the summary."""

    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()
    pdf.set_title(REPORT_TITLE)
    pdf.set_text_color(33, 37, 41)

    pdf.set_font("Helvetica", style="B", size=16)
    pdf.cell(0, 10, REPORT_TITLE, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("Helvetica", size=11)
    pdf.multi_cell(pdf.epw, 6, f"Period: {_period_label(summary)}")
    pdf.multi_cell(pdf.epw, 6, f"Jurisdiction: {summary.jurisdiction or 'All'}")

    pdf.ln(4)
    pdf.set_font("Helvetica", style="B", size=12)
    pdf.cell(0, 8, "Summary", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=11)
    for label, value in _summary_rows(summary):
        pdf.multi_cell(pdf.epw, 6, f"{label}: {value}")

    currency = summary.base_currency
    pdf.ln(4)
    pdf.set_font("Helvetica", style="B", size=12)
    pdf.cell(0, 8, "By Jurisdiction", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=11)
    if not summary.by_jurisdiction:
        pdf.multi_cell(pdf.epw, 6, "No entries in this period")
    for code, totals in summary.by_jurisdiction.items():
        pdf.multi_cell(
            pdf.epw,
            6,
            _pdf_text(
                f"{code}: income {_format_money(totals.income, currency)}, "
                f"expenses {_format_money(totals.expenses, currency)}"
            ),
        )

    pdf.ln(4)
    pdf.set_font("Helvetica", style="B", size=12)
    pdf.cell(0, 8, "By Category", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=11)
    for label, amount in summary.by_category.items():
        pdf.multi_cell(pdf.epw, 6, _pdf_text(f"{label}: {_format_money(amount, currency)}"))

    output = pdf.output()
    if isinstance(output, (bytes, bytearray)):
        return bytes(output)
    return output.encode("latin1")


__all__ = [
    "REPORT_TITLE",
    "build_summary",
    "export_filename",
    "present_summary",
    "render_csv",
    "render_pdf",
]
