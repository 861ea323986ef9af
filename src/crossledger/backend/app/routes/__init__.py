"""Blueprint registrations for application routes."""

from flask import Flask

from .audit import blueprint as audit_blueprint
from .jurisdictions import blueprint as jurisdictions_blueprint
from .ledger import blueprint as ledger_blueprint
from .payroll import blueprint as payroll_blueprint
from .reports import blueprint as reports_blueprint


def register_routes(app: Flask) -> None:
    """Register all Flask blueprints with the provided application."""

    app.register_blueprint(payroll_blueprint)
    app.register_blueprint(ledger_blueprint)
    app.register_blueprint(reports_blueprint)
    app.register_blueprint(jurisdictions_blueprint)
    app.register_blueprint(audit_blueprint)
