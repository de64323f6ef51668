"""Seeding of the chart of accounts from configuration."""

from typing import Iterable

from sqlalchemy import select

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.domain.accounts import ChartAccountSeed
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import ChartAccount

logger = get_logger("services.chart_of_accounts")


def seed_chart_of_accounts(session, seeds: Iterable[ChartAccountSeed], actor_id=None) -> int:
    """
    Insert missing accounts and refresh name/type of existing ones.

    Idempotent.  Returns the number of accounts created.
    """
    existing = {row.code: row for row in session.execute(select(ChartAccount)).scalars()}
    actor = actor_id or SYSTEM_ACTOR_ID
    created = 0
    for seed in seeds:
        row = existing.get(seed.code)
        if row is None:
            session.add(
                ChartAccount(
                    code=seed.code,
                    name=seed.name,
                    account_type=seed.account_type.value,
                    normal_balance=seed.account_type.normal_balance,
                    created_by_id=actor,
                )
            )
            created += 1
        elif row.name != seed.name or row.account_type != seed.account_type.value:
            row.name = seed.name
            row.account_type = seed.account_type.value
            row.normal_balance = seed.account_type.normal_balance
            row.updated_by_id = actor
    session.flush()
    logger.info("chart_of_accounts_seeded", extra={"created_count": created})
    return created
