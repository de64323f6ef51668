"""
BaseService -- common constructor for the kernel's write services.

Responsibility:
    Every service that changes ledger state receives the caller's SQLAlchemy
    ``Session`` and persists through ``session.flush()`` only.

Architecture position:
    Kernel > Services.  Imperative shell around the pure handlers and
    domain rules.

Invariants enforced:
    - Transaction boundaries belong to the caller.  Services flush, open
      savepoints for all-or-nothing steps, and never commit or roll back
      the outer transaction.

Failure modes:
    - A subclass that commits breaks the atomicity of the event pipeline:
      an event could end up processed while some of its entries are lost.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Contract:
        Accepts a Session from the caller and an optional Clock.

    Guarantees:
        - Never calls ``session.commit()`` or ``session.rollback()``.

    Non-goals:
        - Read-only reporting queries; those live in ``selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
