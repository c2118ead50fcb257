"""Custody — multi-tenant custodial treasury ledger and disbursement limiter."""

__version__ = "0.1.0"
