"""CrossLedger: UK/NL bookkeeping and payroll withholding backend."""
