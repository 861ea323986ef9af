"""WSGI entrypoint for deploying the CrossLedger backend behind Passenger."""

from crossledger.backend.app import create_app

# Passenger looks for a module-level ``application`` callable.
application = create_app()
