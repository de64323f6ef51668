"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Account codes are unique.
    - account_type is one of asset, liability, equity, revenue, expense;
      normal_balance follows from it.

Audit relevance:
    Year-end close uses account_type to decide which balances are zeroed,
    and the account name for closing line descriptions.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.domain.accounts import AccountType


class ChartAccount(TrackedBase):
    """One general-ledger account."""

    __tablename__ = "chart_of_accounts"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ChartAccount {self.code} {self.name}>"

    @property
    def type(self) -> AccountType:
        return AccountType(self.account_type)

    @property
    def is_income_statement(self) -> bool:
        return self.account_type in (AccountType.REVENUE, AccountType.EXPENSE)
