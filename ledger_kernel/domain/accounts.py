"""
Account roles and the global default account table.

Responsibility:
    Handlers speak in accounting *roles* ("accounts payable", "VAT
    receivable") rather than hard-coded codes.  AccountDefaults maps each
    role to the group's default GL code, and also carries the charter-type
    revenue map and the per-currency petty cash map.

Architecture position:
    Kernel > Domain.  Pure values.  The table itself is configuration; it is
    built by ``ledger_config.bridges.build_account_defaults`` and injected
    into handlers and services.

Invariants enforced:
    - Every AccountRole has a code (checked at construction).
    - Lookups never fall through silently: an unmapped charter type returns
      the default revenue account and an unmapped currency returns the
      CASH role's code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ledger_kernel.db.types import BALANCE_TOLERANCE


class AccountRole(str, Enum):
    """Semantic accounting roles used by handlers and settings fallback."""

    CASH = "CASH"
    DEFAULT_BANK = "DEFAULT_BANK"
    CASH_ON_HAND = "CASH_ON_HAND"
    VAT_RECEIVABLE = "VAT_RECEIVABLE"
    INTERCOMPANY_RECEIVABLE = "INTERCOMPANY_RECEIVABLE"
    INVENTORY = "INVENTORY"
    ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE"
    VAT_PAYABLE = "VAT_PAYABLE"
    WITHHOLDING_TAX_PAYABLE = "WITHHOLDING_TAX_PAYABLE"
    SOCIAL_SECURITY_PAYABLE = "SOCIAL_SECURITY_PAYABLE"
    DEFERRED_REVENUE = "DEFERRED_REVENUE"
    INTERCOMPANY_PAYABLE = "INTERCOMPANY_PAYABLE"
    PARTNER_PAYABLES = "PARTNER_PAYABLES"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    DEFAULT_REVENUE = "DEFAULT_REVENUE"
    FX_GAIN = "FX_GAIN"
    MANAGEMENT_FEE_INCOME = "MANAGEMENT_FEE_INCOME"
    DEFAULT_EXPENSE = "DEFAULT_EXPENSE"
    MANAGEMENT_FEE_EXPENSE = "MANAGEMENT_FEE_EXPENSE"
    FX_LOSS = "FX_LOSS"


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> str:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return "debit"
        return "credit"


@dataclass(frozen=True)
class ChartAccountSeed:
    """One chart-of-accounts row as supplied by configuration."""

    code: str
    name: str
    account_type: AccountType


@dataclass(frozen=True)
class AccountDefaults:
    """
    Global semantic default table.

    Contract:
        ``account(role)`` returns the code for a role.  Company-specific
        overrides are layered on top of this table by the account resolver,
        never stored here.

    Guarantees:
        - Immutable; the mappings are read-only proxies.
        - Construction fails if any AccountRole is missing.
    """

    roles: Mapping[AccountRole, str]
    charter_revenue_accounts: Mapping[str, str] = field(default_factory=dict)
    petty_cash_accounts: Mapping[str, str] = field(default_factory=dict)
    tolerance: Decimal = BALANCE_TOLERANCE
    default_currency: str = "THB"

    def __post_init__(self) -> None:
        missing = [role.value for role in AccountRole if not self.roles.get(role)]
        if missing:
            raise ValueError(f"No default account for roles: {', '.join(missing)}")
        object.__setattr__(self, "roles", MappingProxyType(dict(self.roles)))
        object.__setattr__(
            self,
            "charter_revenue_accounts",
            MappingProxyType(dict(self.charter_revenue_accounts)),
        )
        object.__setattr__(
            self,
            "petty_cash_accounts",
            MappingProxyType({k.upper(): v for k, v in self.petty_cash_accounts.items()}),
        )

    def account(self, role: AccountRole) -> str:
        return self.roles[role]

    def revenue_account_for(self, charter_type: str | None) -> str:
        """Revenue account for a charter type, default revenue when unmapped."""
        if charter_type and charter_type in self.charter_revenue_accounts:
            return self.charter_revenue_accounts[charter_type]
        return self.account(AccountRole.DEFAULT_REVENUE)

    def petty_cash_account_for(self, currency: str | None) -> str:
        """Petty cash wallet account for a currency, the CASH role when unmapped."""
        if currency and currency.upper() in self.petty_cash_accounts:
            return self.petty_cash_accounts[currency.upper()]
        return self.account(AccountRole.CASH)
