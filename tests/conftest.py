"""Test configuration utilities and shared fixtures."""

import sys
from pathlib import Path

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from crossledger.backend.app import create_app  # noqa: E402
from crossledger.backend.app.services.repositories import (  # noqa: E402
    InMemoryAuditRepository,
    InMemoryLedgerRepository,
    InMemoryPayrollRepository,
    RecordStore,
)


@pytest.fixture()
def store() -> RecordStore:
    """Return empty in-memory repositories."""

    return RecordStore(
        ledger=InMemoryLedgerRepository(),
        payroll=InMemoryPayrollRepository(),
        audit=InMemoryAuditRepository(),
    )


@pytest.fixture()
def app(store: RecordStore, monkeypatch: pytest.MonkeyPatch) -> Flask:
    """Return a configured Flask application for integration tests."""

    monkeypatch.delenv("CROSSLEDGER_DB", raising=False)
    application = create_app(store=store)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()


@pytest.fixture()
def isolated_config_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Return a temporary copy of the rule directory patched into ``rule_config``."""

    from shutil import copy2

    from crossledger.backend.config import rule_config

    config_directory = tmp_path / "rules"
    config_directory.mkdir()
    for source in rule_config.CONFIG_DIRECTORY.glob("*.yaml"):
        copy2(source, config_directory / source.name)

    monkeypatch.setattr(rule_config, "CONFIG_DIRECTORY", config_directory)
    monkeypatch.setattr(rule_config, "MANIFEST_FILE", config_directory / "manifest.yaml")
    rule_config.clear_caches()

    yield config_directory

    rule_config.clear_caches()
