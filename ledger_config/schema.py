"""
LedgerConfig schema.

Typed, frozen form of ``defaults.yaml``.  The loader parses YAML into
these types; ``bridges`` turns them into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ChartAccountDef:
    """One chart-of-accounts row to seed."""

    code: str
    name: str
    account_type: str  # asset, liability, equity, revenue, expense


@dataclass(frozen=True)
class LedgerConfig:
    """
    The ledger's configuration.

    ``account_roles`` maps semantic role names (CASH, VAT_PAYABLE, ...) to
    GL codes.  ``charter_revenue_accounts`` and ``petty_cash_accounts`` are
    the charter-type and currency lookups used by handlers.
    """

    config_id: str
    version: int
    account_roles: dict[str, str]
    charter_revenue_accounts: dict[str, str] = field(default_factory=dict)
    petty_cash_accounts: dict[str, str] = field(default_factory=dict)
    balance_tolerance: Decimal = Decimal("0.01")
    default_currency: str = "THB"
    chart_of_accounts: tuple[ChartAccountDef, ...] = ()
    checksum: str = ""
