"""
Config -> Kernel Bridges.

Converts a LedgerConfig into kernel inputs.  These live here because the
kernel never imports ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import build_account_defaults, build_chart_rows

    config = get_active_config()
    defaults = build_account_defaults(config)
    seed_chart_of_accounts(session, build_chart_rows(config))
"""

from __future__ import annotations

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.accounts import (
    AccountDefaults,
    AccountRole,
    AccountType,
    ChartAccountSeed,
)


def build_account_defaults(config: LedgerConfig) -> AccountDefaults:
    return AccountDefaults(
        roles={AccountRole(role): code for role, code in config.account_roles.items()},
        charter_revenue_accounts=config.charter_revenue_accounts,
        petty_cash_accounts=config.petty_cash_accounts,
        tolerance=config.balance_tolerance,
        default_currency=config.default_currency,
    )


def build_chart_rows(config: LedgerConfig) -> list[ChartAccountSeed]:
    return [
        ChartAccountSeed(code=row.code, name=row.name, account_type=AccountType(row.account_type))
        for row in config.chart_of_accounts
    ]
