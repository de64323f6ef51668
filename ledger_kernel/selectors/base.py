"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only queries over the ledger tables.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Balances are always derived from journal lines; nothing is stored.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Contract:
        Accepts the caller's Session and returns DTOs or computed values.
    """

    def __init__(self, session: Session):
        self.session = session
