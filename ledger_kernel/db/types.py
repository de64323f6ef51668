"""
Module: ledger_kernel.db.types
Responsibility: Annotated column aliases and the money helpers shared by
    models, handlers and services.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/ or handlers/.

Invariants enforced:
    - Monetary amounts are Decimal, stored as Numeric(38, 9).
    - BALANCE_TOLERANCE is the single rounding allowance used for journal
      balance and allocation-sum checks (one minor unit of a two-decimal
      currency).
    - parse_amount() is the only sanctioned conversion from payload values
      to Decimal.  Floats are converted through their string form so that
      0.1 stays 0.1.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import Numeric, String

Money = Annotated[Decimal, Numeric(38, 9)]

# ISO 4217 currency code
Currency = Annotated[str, String(3)]

# SHA-256 hex digest
PayloadHash = Annotated[str, String(64)]

# GL account code (e.g. "1010")
AccountCode = Annotated[str, String(20)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
BALANCE_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")


def parse_amount(value: Any) -> Decimal | None:
    """
    Convert a payload value into a Decimal.

    Preconditions: value is a Decimal, int, float, numeric string or None.
    Postconditions: Returns None for None, empty strings and non-numeric
        input; otherwise the Decimal value.  Booleans are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Round half-up to the given number of decimal places."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
    """True iff |a - b| does not exceed the tolerance."""
    return abs(a - b) <= tolerance
