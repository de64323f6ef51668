"""
Module: ledger_kernel.selectors.chart_of_accounts
Responsibility: ``code -> {name, type}`` lookup over the chart of accounts.
    Year-end close uses it to pick the revenue and expense accounts and to
    describe closing lines.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass

from sqlalchemy import select

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.models.account import ChartAccount
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ChartAccountInfo:
    code: str
    name: str
    account_type: AccountType
    is_active: bool = True

    @property
    def is_income_statement(self) -> bool:
        return self.account_type in (AccountType.REVENUE, AccountType.EXPENSE)


def _to_info(row: ChartAccount) -> ChartAccountInfo:
    return ChartAccountInfo(
        code=row.code,
        name=row.name,
        account_type=AccountType(row.account_type),
        is_active=row.is_active,
    )


class ChartOfAccountsSelector(BaseSelector):
    """Lookups return None for unknown codes; they never raise."""

    def lookup(self, code: str) -> ChartAccountInfo | None:
        row = self.session.execute(
            select(ChartAccount).where(ChartAccount.code == code)
        ).scalar_one_or_none()
        return _to_info(row) if row is not None else None

    def list_accounts(self, account_type: AccountType | None = None) -> list[ChartAccountInfo]:
        stmt = select(ChartAccount)
        if account_type is not None:
            stmt = stmt.where(ChartAccount.account_type == account_type.value)
        return [_to_info(row) for row in self.session.execute(stmt.order_by(ChartAccount.code)).scalars()]

    def income_statement_accounts(self) -> dict[str, ChartAccountInfo]:
        """Revenue and expense accounts keyed by code."""
        stmt = select(ChartAccount).where(
            ChartAccount.account_type.in_(
                (AccountType.REVENUE.value, AccountType.EXPENSE.value)
            )
        )
        return {
            row.code: _to_info(row)
            for row in self.session.execute(stmt.order_by(ChartAccount.code)).scalars()
        }
