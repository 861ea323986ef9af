"""Backend services for the CrossLedger application."""
