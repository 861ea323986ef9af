"""Record stores for ledger entries, payroll calculations and the audit trail.

Two interchangeable backends are provided: thread-safe in-memory repositories
for tests and local development, and SQLite repositories selected through the
``CROSSLEDGER_DB`` environment variable. Stored records are immutable; both
backends assign the identifier and creation timestamp on insert.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from threading import Lock
from typing import Any, Callable, Protocol

from crossledger.backend.app.models.records import (
    AuditLogEntry,
    EntryType,
    LedgerEntry,
    PayrollCalculationRecord,
)

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _matches_period(
    entry: LedgerEntry, start: date, end: date, jurisdiction: str | None
) -> bool:
    if not start <= entry.entry_date <= end:
        return False
    return jurisdiction is None or entry.jurisdiction == jurisdiction


class LedgerRepository(Protocol):
    def add(self, entry: LedgerEntry) -> LedgerEntry: ...

    def get(self, entry_id: int) -> LedgerEntry: ...

    def list_between(
        self, start: date, end: date, jurisdiction: str | None = None
    ) -> list[LedgerEntry]: ...

    def list_all(self, jurisdiction: str | None = None) -> list[LedgerEntry]: ...


class PayrollRepository(Protocol):
    def add(self, record: PayrollCalculationRecord) -> PayrollCalculationRecord: ...

    def get(self, record_id: int) -> PayrollCalculationRecord: ...

    def list(self, limit: int | None = None) -> list[PayrollCalculationRecord]: ...


class AuditRepository(Protocol):
    def add(self, entry: AuditLogEntry) -> AuditLogEntry: ...

    def list(
        self, limit: int | None = None, action: str | None = None
    ) -> list[AuditLogEntry]: ...


class InMemoryLedgerRepository:
    """Thread-safe in-memory storage for ledger entries."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or _utc_now
        self._entries: dict[int, LedgerEntry] = {}
        self._next_id = 1
        self._lock = Lock()

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        with self._lock:
            stored = replace(entry, id=self._next_id, created_at=self._clock())
            self._entries[stored.id] = stored
            self._next_id += 1
        return stored

    def get(self, entry_id: int) -> LedgerEntry:
        with self._lock:
            return self._entries[entry_id]

    def list_between(
        self, start: date, end: date, jurisdiction: str | None = None
    ) -> list[LedgerEntry]:
        with self._lock:
            matches = [
                entry
                for entry in self._entries.values()
                if _matches_period(entry, start, end, jurisdiction)
            ]
        return sorted(matches, key=lambda entry: (entry.entry_date, entry.id))

    def list_all(self, jurisdiction: str | None = None) -> list[LedgerEntry]:
        with self._lock:
            matches = [
                entry
                for entry in self._entries.values()
                if jurisdiction is None or entry.jurisdiction == jurisdiction
            ]
        return sorted(matches, key=lambda entry: (entry.entry_date, entry.id))


class InMemoryPayrollRepository:
    """Thread-safe in-memory storage for payroll calculation records."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or _utc_now
        self._records: dict[int, PayrollCalculationRecord] = {}
        self._next_id = 1
        self._lock = Lock()

    def add(self, record: PayrollCalculationRecord) -> PayrollCalculationRecord:
        with self._lock:
            stored = replace(record, id=self._next_id, created_at=self._clock())
            self._records[stored.id] = stored
            self._next_id += 1
        return stored

    def get(self, record_id: int) -> PayrollCalculationRecord:
        with self._lock:
            return self._records[record_id]

    def list(self, limit: int | None = None) -> list[PayrollCalculationRecord]:
        with self._lock:
            records = sorted(self._records.values(), key=lambda item: item.id, reverse=True)
        return records[:limit] if limit is not None else records


class InMemoryAuditRepository:
    """Append-only in-memory audit trail."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or _utc_now
        self._entries: list[AuditLogEntry] = []
        self._lock = Lock()

    def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        with self._lock:
            stored = replace(entry, id=len(self._entries) + 1, created_at=self._clock())
            self._entries.append(stored)
        return stored

    def list(
        self, limit: int | None = None, action: str | None = None
    ) -> list[AuditLogEntry]:
        with self._lock:
            matches = [
                entry
                for entry in reversed(self._entries)
                if action is None or entry.action == action
            ]
        return matches[:limit] if limit is not None else matches


class _SQLiteRepository:
    """Shared connection handling for the SQLite-backed repositories."""

    _SCHEMA: str = ""

    def __init__(self, path: str | os.PathLike[str], *, clock: Clock | None = None) -> None:
        self._path = str(path)
        self._clock = clock or _utc_now
        self._lock = Lock()
        self._initialise()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        return connection

    def _initialise(self) -> None:
        with self._lock:
            connection = self._connect()
            try:
                with connection:
                    connection.execute(self._SCHEMA)
            finally:
                connection.close()

    def _execute(self, query: str, parameters: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            connection = self._connect()
            try:
                with connection:
                    return connection.execute(query, parameters).fetchall()
            finally:
                connection.close()

    def _insert(self, query: str, parameters: tuple[Any, ...]) -> int:
        with self._lock:
            connection = self._connect()
            try:
                with connection:
                    cursor = connection.execute(query, parameters)
                return int(cursor.lastrowid)
            finally:
                connection.close()

    @staticmethod
    def _decode_timestamp(raw: str | None) -> datetime | None:
        if raw is None:
            return None
        value = datetime.fromisoformat(raw)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class SQLiteLedgerRepository(_SQLiteRepository):
    """SQLite-backed ledger entry storage."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS ledger_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entry_type TEXT NOT NULL,
            entry_date TEXT NOT NULL,
            amount INTEGER NOT NULL,
            currency TEXT NOT NULL,
            amount_base INTEGER,
            exchange_rate TEXT,
            jurisdiction TEXT NOT NULL,
            category TEXT NOT NULL,
            description TEXT,
            document_id INTEGER,
            created_at TEXT NOT NULL
        )
    """

    @classmethod
    def _decode(cls, row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry(
            id=row["id"],
            entry_type=EntryType(row["entry_type"]),
            entry_date=date.fromisoformat(row["entry_date"]),
            amount=row["amount"],
            currency=row["currency"],
            amount_base=row["amount_base"],
            exchange_rate=row["exchange_rate"],
            jurisdiction=row["jurisdiction"],
            category=row["category"],
            description=row["description"],
            document_id=row["document_id"],
            created_at=cls._decode_timestamp(row["created_at"]),
        )

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        created_at = self._clock()
        row_id = self._insert(
            "INSERT INTO ledger_entries (entry_type, entry_date, amount, currency,"
            " amount_base, exchange_rate, jurisdiction, category, description,"
            " document_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                entry.entry_type.value,
                entry.entry_date.isoformat(),
                entry.amount,
                entry.currency,
                entry.amount_base,
                entry.exchange_rate,
                entry.jurisdiction,
                entry.category,
                entry.description,
                entry.document_id,
                created_at.isoformat(),
            ),
        )
        return replace(entry, id=row_id, created_at=created_at)

    def get(self, entry_id: int) -> LedgerEntry:
        rows = self._execute("SELECT * FROM ledger_entries WHERE id = ?", (entry_id,))
        if not rows:
            raise KeyError(entry_id)
        return self._decode(rows[0])

    def list_between(
        self, start: date, end: date, jurisdiction: str | None = None
    ) -> list[LedgerEntry]:
        query = "SELECT * FROM ledger_entries WHERE entry_date >= ? AND entry_date <= ?"
        parameters: tuple[Any, ...] = (start.isoformat(), end.isoformat())
        if jurisdiction is not None:
            query += " AND jurisdiction = ?"
            parameters += (jurisdiction,)
        query += " ORDER BY entry_date ASC, id ASC"
        return [self._decode(row) for row in self._execute(query, parameters)]

    def list_all(self, jurisdiction: str | None = None) -> list[LedgerEntry]:
        query = "SELECT * FROM ledger_entries"
        parameters: tuple[Any, ...] = ()
        if jurisdiction is not None:
            query += " WHERE jurisdiction = ?"
            parameters = (jurisdiction,)
        query += " ORDER BY entry_date ASC, id ASC"
        return [self._decode(row) for row in self._execute(query, parameters)]


class SQLitePayrollRepository(_SQLiteRepository):
    """SQLite-backed payroll calculation storage."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS payroll_calculations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            employee_name TEXT NOT NULL,
            jurisdiction TEXT NOT NULL,
            currency TEXT NOT NULL,
            gross_salary INTEGER NOT NULL,
            wage_tax INTEGER NOT NULL,
            social_security INTEGER NOT NULL,
            net_salary INTEGER NOT NULL,
            thirty_percent_ruling INTEGER NOT NULL,
            period_start TEXT NOT NULL,
            period_end TEXT NOT NULL,
            status TEXT NOT NULL,
            details TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """

    @classmethod
    def _decode(cls, row: sqlite3.Row) -> PayrollCalculationRecord:
        return PayrollCalculationRecord(
            id=row["id"],
            employee_name=row["employee_name"],
            jurisdiction=row["jurisdiction"],
            currency=row["currency"],
            gross_salary=row["gross_salary"],
            wage_tax=row["wage_tax"],
            social_security=row["social_security"],
            net_salary=row["net_salary"],
            thirty_percent_ruling=bool(row["thirty_percent_ruling"]),
            period_start=date.fromisoformat(row["period_start"]),
            period_end=date.fromisoformat(row["period_end"]),
            status=row["status"],
            details=json.loads(row["details"]),
            created_at=cls._decode_timestamp(row["created_at"]),
        )

    def add(self, record: PayrollCalculationRecord) -> PayrollCalculationRecord:
        created_at = self._clock()
        row_id = self._insert(
            "INSERT INTO payroll_calculations (employee_name, jurisdiction, currency,"
            " gross_salary, wage_tax, social_security, net_salary,"
            " thirty_percent_ruling, period_start, period_end, status, details,"
            " created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.employee_name,
                record.jurisdiction,
                record.currency,
                record.gross_salary,
                record.wage_tax,
                record.social_security,
                record.net_salary,
                int(record.thirty_percent_ruling),
                record.period_start.isoformat(),
                record.period_end.isoformat(),
                record.status,
                json.dumps(dict(record.details), ensure_ascii=False),
                created_at.isoformat(),
            ),
        )
        return replace(record, id=row_id, created_at=created_at)

    def get(self, record_id: int) -> PayrollCalculationRecord:
        rows = self._execute(
            "SELECT * FROM payroll_calculations WHERE id = ?", (record_id,)
        )
        if not rows:
            raise KeyError(record_id)
        return self._decode(rows[0])

    def list(self, limit: int | None = None) -> list[PayrollCalculationRecord]:
        query = "SELECT * FROM payroll_calculations ORDER BY id DESC"
        parameters: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            parameters = (limit,)
        return [self._decode(row) for row in self._execute(query, parameters)]


class SQLiteAuditRepository(_SQLiteRepository):
    """SQLite-backed audit trail; rows are only ever inserted."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER,
            changes TEXT,
            ip_address TEXT,
            user_agent TEXT,
            created_at TEXT NOT NULL
        )
    """

    @classmethod
    def _decode(cls, row: sqlite3.Row) -> AuditLogEntry:
        changes = row["changes"]
        return AuditLogEntry(
            id=row["id"],
            action=row["action"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            changes=json.loads(changes) if changes is not None else None,
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            created_at=cls._decode_timestamp(row["created_at"]),
        )

    def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        created_at = self._clock()
        changes = (
            json.dumps(dict(entry.changes), ensure_ascii=False)
            if entry.changes is not None
            else None
        )
        row_id = self._insert(
            "INSERT INTO audit_logs (action, entity_type, entity_id, changes,"
            " ip_address, user_agent, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                entry.action,
                entry.entity_type,
                entry.entity_id,
                changes,
                entry.ip_address,
                entry.user_agent,
                created_at.isoformat(),
            ),
        )
        return replace(entry, id=row_id, created_at=created_at)

    def list(
        self, limit: int | None = None, action: str | None = None
    ) -> list[AuditLogEntry]:
        query = "SELECT * FROM audit_logs"
        parameters: tuple[Any, ...] = ()
        if action is not None:
            query += " WHERE action = ?"
            parameters += (action,)
        query += " ORDER BY id DESC"
        if limit is not None:
            query += " LIMIT ?"
            parameters += (limit,)
        return [self._decode(row) for row in self._execute(query, parameters)]


@dataclass(frozen=True)
class RecordStore:
    """Repositories shared by the services of one application instance."""

    ledger: LedgerRepository
    payroll: PayrollRepository
    audit: AuditRepository


def build_record_store(path: str | os.PathLike[str] | None = None) -> RecordStore:
    """Return SQLite repositories when a database path is configured."""

    target = path if path is not None else os.getenv("CROSSLEDGER_DB", "").strip()
    if target:
        _LOGGER.debug("Using SQLite record store at %s", target)
        return RecordStore(
            ledger=SQLiteLedgerRepository(target),
            payroll=SQLitePayrollRepository(target),
            audit=SQLiteAuditRepository(target),
        )
    return RecordStore(
        ledger=InMemoryLedgerRepository(),
        payroll=InMemoryPayrollRepository(),
        audit=InMemoryAuditRepository(),
    )


__all__ = [
    "AuditRepository",
    "InMemoryAuditRepository",
    "InMemoryLedgerRepository",
    "InMemoryPayrollRepository",
    "LedgerRepository",
    "PayrollRepository",
    "RecordStore",
    "SQLiteAuditRepository",
    "SQLiteLedgerRepository",
    "SQLitePayrollRepository",
    "build_record_store",
]
