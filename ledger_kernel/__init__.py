"""
Ledger Kernel

An event-driven double-entry ledger for a multi-company operating group:
- Append-only accounting events with a storage-level write guard
- One pure handler per event type, dispatched through a closed registry
- Per-company settings and default-account substitution
- Whole-event atomicity across company-scoped journals
- Deferred revenue recognition and year-end close
"""

__version__ = "0.1.0"
