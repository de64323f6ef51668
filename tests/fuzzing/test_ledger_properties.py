"""
Hypothesis property tests for journal generation.

Properties:
- Every payload a handler accepts yields specs that balance within the
  tolerance and carry only positive line amounts
- Any consistent EXPENSE_APPROVED payload yields one balanced spec whose
  credit is the payload total
- A total that misses lines + VAT by more than the tolerance is refused
- Receipts whose payments, lines + VAT and total drift by a cent still
  balance; payments that miss lines + VAT by more than the tolerance are
  refused whatever the total says
- Payroll debits gross and credits deductions plus net pay exactly
- Intercompany events mirror: both entries move the same amount on the
  same date, and the group's intercompany receivable and payable move
  together
- Spec balance honours the tolerance boundary exactly
- Payload hashes ignore key order
"""

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.domain.dtos import JournalLineSpec, JournalSpec, LineSide
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.utils.hashing import hash_payload, normalize_payload
from tests.conftest import (
    COMPANY_A,
    COMPANY_B,
    expense_approved_payload,
    make_event,
    management_fee_payload,
)

PROPERTY_SETTINGS = settings(
    max_examples=60,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

IC_RECEIVABLE = "1180"
IC_PAYABLE = "2700"

ZERO = Decimal("0")

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
vat_amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
account_codes = st.sampled_from(["5000", "6010", "6100", "6700", None])
bank_codes = st.sampled_from(["1010", "1020"])
iso_dates = st.dates(min_value=date(2020, 1, 1), max_value=date(2030, 12, 31)).map(
    date.isoformat
)
company_pairs = st.sampled_from([(COMPANY_A, COMPANY_B), (COMPANY_B, COMPANY_A)])


def _total(values) -> Decimal:
    return sum(values, ZERO)


@st.composite
def split_amount(draw, total: Decimal, max_parts: int = 4) -> list[Decimal]:
    """Positive two-place parts that add up to ``total`` exactly."""
    cents = int(total * 100)
    parts = draw(st.integers(min_value=1, max_value=min(max_parts, cents)))
    cuts = []
    if parts > 1:
        cuts = sorted(draw(st.sets(
            st.integers(min_value=1, max_value=cents - 1),
            min_size=parts - 1,
            max_size=parts - 1,
        )))
    bounds = [0, *cuts, cents]
    return [Decimal(hi - lo).scaleb(-2) for lo, hi in zip(bounds, bounds[1:])]


@st.composite
def expense_lines(draw):
    count = draw(st.integers(min_value=1, max_value=8))
    return [
        {
            "description": f"Line {i}",
            "account_code": draw(account_codes),
            "amount": str(draw(amounts)),
        }
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Single-company payloads
# ---------------------------------------------------------------------------

# Total and payments each sit at most one cent from lines + VAT, and at most
# one cent from each other.
CENT_DRIFTS = [(t, p) for t in (-1, 0, 1) for p in (-1, 0, 1) if abs(t - p) <= 1]


@st.composite
def receipt_payloads(draw, drift: bool = True):
    lines = draw(st.lists(amounts, min_size=1, max_size=5))
    vat = draw(vat_amounts)
    billed = _total(lines) + vat
    total_cents, paid_cents = draw(st.sampled_from(CENT_DRIFTS)) if drift else (0, 0)
    total = billed + Decimal(total_cents).scaleb(-2)
    paid = billed + Decimal(paid_cents).scaleb(-2)
    assume(total > ZERO and paid > ZERO)
    return {
        "receipt_id": "RCPT-P",
        "receipt_number": "RC-P",
        "receipt_date": draw(iso_dates),
        "client_name": "Client",
        "charter_type": draw(st.sampled_from(["day_charter", "overnight_charter"])),
        "payments": [
            {"amount": str(part), "bank_account_gl_code": draw(bank_codes)}
            for part in draw(split_amount(paid))
        ],
        "line_items": [
            {"description": f"Line {i}", "amount": str(value)}
            for i, value in enumerate(lines)
        ],
        "total_vat_amount": str(vat),
        "total_amount": str(total),
    }


@st.composite
def payroll_payloads(draw):
    gross_lines = draw(st.lists(amounts, min_size=1, max_size=5))
    gross = _total(gross_lines)
    quarter = int(gross * 100) // 4
    wht = Decimal(draw(st.integers(min_value=0, max_value=quarter))).scaleb(-2)
    ssc = Decimal(draw(st.integers(min_value=0, max_value=quarter))).scaleb(-2)
    return {
        "payroll_period": "2024-06",
        "payment_date": draw(iso_dates),
        "bank_account_gl_code": draw(bank_codes),
        "lines": [
            {"description": f"Staff {i}", "account_code": draw(account_codes),
             "gross_amount": str(value)}
            for i, value in enumerate(gross_lines)
        ],
        "total_gross": str(gross),
        "withholding_tax": str(wht),
        "social_security": str(ssc),
        "net_pay": str(gross - wht - ssc),
    }


@st.composite
def petty_cash_expense_payloads(draw):
    lines = draw(expense_lines())
    vat = draw(vat_amounts)
    return {
        "expense_id": "PC-P",
        "expense_number": "PC-P",
        "wallet_name": "Float",
        "currency": draw(st.sampled_from(["THB", "EUR", "USD", None])),
        "line_items": lines,
        "total_vat_amount": str(vat),
        "total_amount": str(_total(Decimal(l["amount"]) for l in lines) + vat),
    }


@st.composite
def capex_payloads(draw):
    subtotal = draw(amounts)
    vat = draw(vat_amounts)
    method = draw(st.sampled_from(["bank", "cash", "accounts_payable"]))
    payload = {
        "expense_id": "CAP-P",
        "expense_number": "CAP-P",
        "asset_account_code": draw(st.sampled_from(["1500", "1510", None])),
        "asset_description": "Tender",
        "subtotal": str(subtotal),
        "vat_amount": str(vat),
        "total_amount": str(subtotal + vat),
        "payment_method": method,
    }
    if method == "bank":
        payload["bank_account_gl_code"] = draw(bank_codes)
    return payload


@st.composite
def expense_paid_payloads(draw):
    return {
        "expense_id": "EXP-P",
        "payment_amount": str(draw(amounts)),
        "payment_date": draw(iso_dates),
        "payment_method": draw(st.sampled_from(["bank", "cash", "petty_cash"])),
        "bank_account_gl_code": draw(bank_codes),
        "currency": draw(st.sampled_from(["THB", "EUR", None])),
    }


@st.composite
def partner_allocation_payloads(draw):
    shares = draw(st.lists(vat_amounts, min_size=1, max_size=5))
    assume(_total(shares) > ZERO)
    return {
        "project_id": "PRJ-P",
        "allocations": [
            {"participant_id": f"P{i}", "allocated_amount": str(share)}
            for i, share in enumerate(shares)
        ],
        "total_profit": str(_total(shares)),
        "period_from": "2024-01-01",
        "period_to": draw(iso_dates),
    }


@st.composite
def inventory_purchase_payloads(draw):
    subtotal = draw(vat_amounts)
    vat = draw(vat_amounts)
    assume(subtotal + vat > ZERO)
    return {
        "purchase_id": "PO-P",
        "purchase_date": draw(iso_dates),
        "total_subtotal": str(subtotal),
        "total_vat_amount": str(vat),
        "total_net_payable": str(subtotal + vat),
        "payment_type": draw(st.sampled_from(["bank", "cash", "petty_cash"])),
        "bank_account_gl_code": draw(bank_codes),
        "petty_cash_gl_code": "1001",
    }


@st.composite
def inventory_consumed_payloads(draw):
    used = draw(st.lists(amounts, min_size=1, max_size=5))
    return {
        "purchase_id": "PO-P",
        "consumed_date": draw(iso_dates),
        "consumptions": [
            {"expense_account_code": draw(st.sampled_from(["5000", "6790"])),
             "amount": str(value)}
            for value in used
        ],
        "total_amount": str(_total(used)),
    }


@st.composite
def opening_balance_payloads(draw):
    rows = draw(st.lists(
        st.tuples(st.sampled_from(["1010", "1200", "1500", "2050"]), st.booleans(), amounts),
        min_size=1,
        max_size=6,
    ))
    balances = [
        {"account_code": code, ("debit_amount" if is_debit else "credit_amount"): str(value)}
        for code, is_debit, value in rows
    ]
    gap = _total(v for _, d, v in rows if d) - _total(v for _, d, v in rows if not d)
    if gap > ZERO:
        balances.append({"account_code": "3200", "credit_amount": str(gap)})
    elif gap < ZERO:
        balances.append({"account_code": "3200", "debit_amount": str(-gap)})
    return {"fiscal_year": draw(st.integers(min_value=2020, max_value=2030)),
            "balances": balances}


fx_values = st.decimals(
    min_value=Decimal("-99999.99"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@st.composite
def fx_payloads(draw):
    values = draw(st.lists(fx_values, min_size=1, max_size=5))
    assume(any(v != ZERO for v in values))
    return {
        "revaluation_date": draw(iso_dates),
        "currency": "EUR",
        "adjustments": [
            {"account_code": draw(st.sampled_from(["1180", "2050", "1010"])),
             "gain_loss": str(value)}
            for value in values
        ],
    }


single_company_events = st.one_of(
    receipt_payloads().map(lambda p: (EventType.RECEIPT_RECEIVED, p)),
    payroll_payloads().map(lambda p: (EventType.PAYROLL_PAID, p)),
    petty_cash_expense_payloads().map(lambda p: (EventType.PETTY_CASH_EXPENSE, p)),
    capex_payloads().map(lambda p: (EventType.CAPEX_INCURRED, p)),
    expense_paid_payloads().map(lambda p: (EventType.EXPENSE_PAID, p)),
    partner_allocation_payloads().map(lambda p: (EventType.PARTNER_PROFIT_ALLOCATION, p)),
    inventory_purchase_payloads().map(lambda p: (EventType.INVENTORY_PURCHASE_RECORDED, p)),
    inventory_consumed_payloads().map(lambda p: (EventType.INVENTORY_CONSUMED, p)),
    opening_balance_payloads().map(lambda p: (EventType.OPENING_BALANCE, p)),
    fx_payloads().map(lambda p: (EventType.FX_GAIN_LOSS_RECORDED, p)),
    st.fixed_dictionaries({
        "participant_id": st.just("P1"),
        "payment_amount": amounts.map(str),
        "bank_account_gl_code": bank_codes,
    }).map(lambda p: (EventType.PARTNER_PAYMENT, p)),
    st.fixed_dictionaries({
        "amount": amounts.map(str),
        "currency": st.sampled_from(["THB", "EUR", "USD"]),
        "bank_account_gl_code": bank_codes,
    }).map(lambda p: (EventType.PETTY_CASH_TOPUP, p)),
    st.fixed_dictionaries({
        "amount": amounts.map(str),
        "charter_type": st.sampled_from(["day_charter", "overnight_charter"]),
        "recognition_date": iso_dates,
    }).map(lambda p: (EventType.PROJECT_SERVICE_COMPLETED, p)),
)


class TestAcceptedPayloadsBalance:

    @PROPERTY_SETTINGS
    @given(event=single_company_events)
    def test_every_accepted_payload_balances(self, handler_registry, event):
        event_type, payload = event
        handler = handler_registry.get(event_type)

        result = handler.validate(payload)
        assert result.is_valid, result.error

        specs = handler.generate_journals(make_event(event_type, payload))
        assert len(specs) == 1
        (spec,) = specs
        assert spec.company_id == COMPANY_A
        assert spec.is_balanced()
        assert spec.total_debit > ZERO
        assert all(line.amount > ZERO for line in spec.lines)


class TestExpenseApprovedProperties:

    @PROPERTY_SETTINGS
    @given(lines=expense_lines(), vat=vat_amounts)
    def test_consistent_payload_balances(self, handler_registry, lines, vat):
        total = _total(Decimal(line["amount"]) for line in lines) + vat
        payload = expense_approved_payload(
            line_items=lines, total_vat_amount=str(vat), total_amount=str(total)
        )
        handler = handler_registry.get(EventType.EXPENSE_APPROVED)

        assert handler.validate(payload).is_valid
        (spec,) = handler.generate_journals(make_event(EventType.EXPENSE_APPROVED, payload))

        assert spec.is_balanced()
        assert spec.total_credit == total
        assert [l.account_code for l in spec.lines if l.side == LineSide.CREDIT] == ["2050"]
        assert all(l.amount > 0 for l in spec.lines)

    @PROPERTY_SETTINGS
    @given(
        lines=expense_lines(),
        vat=vat_amounts,
        gap=st.decimals(min_value=Decimal("0.02"), max_value=Decimal("500"), places=2),
        over=st.booleans(),
    )
    def test_inconsistent_total_refused(self, handler_registry, lines, vat, gap, over):
        subtotal = _total(Decimal(line["amount"]) for line in lines) + vat
        total = subtotal + gap if over else subtotal - gap
        payload = expense_approved_payload(
            line_items=lines, total_vat_amount=str(vat), total_amount=str(total)
        )

        result = handler_registry.get(EventType.EXPENSE_APPROVED).validate(payload)

        assert not result.is_valid


class TestReceiptProperties:

    @PROPERTY_SETTINGS
    @given(payload=receipt_payloads())
    def test_cent_drift_balances(self, handler_registry, payload):
        handler = handler_registry.get(EventType.RECEIPT_RECEIVED)
        assert handler.validate(payload).is_valid

        (spec,) = handler.generate_journals(make_event(EventType.RECEIPT_RECEIVED, payload))

        paid = _total(Decimal(p["amount"]) for p in payload["payments"])
        billed = _total(Decimal(l["amount"]) for l in payload["line_items"])
        assert spec.total_debit == paid
        assert spec.total_credit == billed + Decimal(payload["total_vat_amount"])
        assert spec.is_balanced()

    @PROPERTY_SETTINGS
    @given(
        payload=receipt_payloads(drift=False),
        gap=st.decimals(min_value=Decimal("0.02"), max_value=Decimal("500"), places=2),
        move_total=st.booleans(),
    )
    def test_payment_gap_refused(self, handler_registry, payload, gap, move_total):
        first = payload["payments"][0]
        first["amount"] = str(Decimal(first["amount"]) + gap)
        if move_total:
            payload["total_amount"] = str(Decimal(payload["total_amount"]) + gap)

        result = handler_registry.get(EventType.RECEIPT_RECEIVED).validate(payload)

        assert not result.is_valid


class TestPayrollProperties:

    @PROPERTY_SETTINGS
    @given(payload=payroll_payloads())
    def test_gross_equals_deductions_plus_net(self, handler_registry, payload):
        handler = handler_registry.get(EventType.PAYROLL_PAID)
        assert handler.validate(payload).is_valid

        (spec,) = handler.generate_journals(make_event(EventType.PAYROLL_PAID, payload))

        gross = Decimal(payload["total_gross"])
        assert spec.total_debit == spec.total_credit == gross
        bank = [l for l in spec.lines if l.account_code == payload["bank_account_gl_code"]]
        assert bank[-1].side == LineSide.CREDIT
        assert bank[-1].amount == Decimal(payload["net_pay"])


# ---------------------------------------------------------------------------
# Intercompany mirroring
# ---------------------------------------------------------------------------


def _net(specs, account: str, side: LineSide) -> Decimal:
    """Movement on ``account`` across all specs, positive on ``side``."""
    moved = ZERO
    for spec in specs:
        for line in spec.lines:
            if line.account_code == account:
                moved += line.amount if line.side == side else -line.amount
    return moved


def _generate(handler_registry, event_type, payload):
    handler = handler_registry.get(event_type)
    assert handler.validate(payload).is_valid
    specs = handler.generate_journals(make_event(event_type, payload, (COMPANY_A, COMPANY_B)))
    assert len(specs) == 2
    assert all(spec.is_balanced() for spec in specs)
    assert specs[0].entry_date == specs[1].entry_date
    return specs


def _assert_mirrored(specs, value: Decimal) -> None:
    first, second = specs
    assert first.company_id != second.company_id
    assert first.total_debit == second.total_debit == value
    # The group's receivable and payable grow (or shrink) together.
    assert _net(specs, IC_RECEIVABLE, LineSide.DEBIT) == _net(specs, IC_PAYABLE, LineSide.CREDIT)


class TestIntercompanyProperties:

    @PROPERTY_SETTINGS
    @given(value=amounts, companies=company_pairs)
    def test_management_fee_mirrors(self, handler_registry, value, companies):
        project, management = companies
        payload = management_fee_payload(project, management, fee_amount=str(value))

        specs = _generate(handler_registry, EventType.MANAGEMENT_FEE_RECOGNIZED, payload)

        _assert_mirrored(specs, value)
        project_side, management_side = specs
        assert (project_side.company_id, management_side.company_id) == (project, management)
        assert _net([project_side], IC_PAYABLE, LineSide.CREDIT) == value
        assert _net([management_side], IC_RECEIVABLE, LineSide.DEBIT) == value

    @PROPERTY_SETTINGS
    @given(
        value=amounts,
        companies=company_pairs,
        deferred=st.sampled_from([True, False, "true", "false", None]),
        on=iso_dates,
    )
    def test_intercompany_receipt_mirrors(self, handler_registry, value, companies, deferred, on):
        bank_company, charter_company = companies
        payload = {
            "receipt_id": "RCPT-P",
            "receipt_number": "RC-P",
            "receipt_date": on,
            "client_name": "Client",
            "total_amount": str(value),
            "bank_company_id": str(bank_company),
            "charter_company_id": str(charter_company),
            "bank_account_gl_code": "1010",
            "uses_deferred_revenue": deferred,
        }

        specs = _generate(handler_registry, EventType.RECEIPT_RECEIVED_INTERCOMPANY, payload)

        _assert_mirrored(specs, value)
        bank_side, charter_side = specs
        assert bank_side.company_id == bank_company
        assert charter_side.entry_date.isoformat() == on
        revenue = charter_side.lines[-1]
        assert revenue.side == LineSide.CREDIT
        assert revenue.account_code == ("2300" if deferred in (True, "true") else "4490")

    @PROPERTY_SETTINGS
    @given(value=amounts, companies=company_pairs, on=iso_dates)
    def test_intercompany_expense_payment_mirrors(self, handler_registry, value, companies, on):
        paying, receiving = companies
        payload = {
            "expense_id": "EXP-P",
            "payment_amount": str(value),
            "payment_date": on,
            "paying_company_id": str(paying),
            "receiving_company_id": str(receiving),
            "bank_account_gl_code": "1010",
        }

        specs = _generate(handler_registry, EventType.EXPENSE_PAID_INTERCOMPANY, payload)

        _assert_mirrored(specs, value)
        paying_side, receiving_side = specs
        assert (paying_side.company_id, receiving_side.company_id) == (paying, receiving)
        assert _net([paying_side], "1010", LineSide.CREDIT) == value
        assert _net([receiving_side], "2050", LineSide.DEBIT) == value

    @PROPERTY_SETTINGS
    @given(value=amounts, companies=company_pairs)
    def test_settlement_mirrors(self, handler_registry, value, companies):
        payer, payee = companies
        payload = {
            "from_company_id": str(payer),
            "to_company_id": str(payee),
            "settlement_amount": str(value),
            "settlement_date": "2024-06-30",
            "from_bank_gl_code": "1010",
            "to_bank_gl_code": "1010",
            "reference": "SET-P",
        }

        specs = _generate(handler_registry, EventType.INTERCOMPANY_SETTLEMENT, payload)

        _assert_mirrored(specs, value)
        paying, receiving = specs
        assert (paying.company_id, receiving.company_id) == (payer, payee)
        # Settling shrinks both balances.
        assert _net(specs, IC_PAYABLE, LineSide.CREDIT) == -value


class TestBalanceTolerance:

    @given(value=amounts, cents=st.integers(min_value=0, max_value=5))
    def test_tolerance_boundary(self, value, cents):
        drift = Decimal(cents) / 100
        spec = JournalSpec(
            COMPANY_A,
            date(2024, 6, 15),
            "Drift",
            (
                JournalLineSpec.debit("6100", value + drift),
                JournalLineSpec.credit("2050", value),
            ),
        )

        assert spec.is_balanced() == (drift <= BALANCE_TOLERANCE)


class TestPayloadHashing:

    @given(
        payload=st.dictionaries(
            st.text(min_size=1, max_size=12),
            st.one_of(st.integers(), st.text(max_size=20), amounts.map(str), st.booleans()),
            max_size=10,
        )
    )
    def test_hash_ignores_key_order(self, payload):
        reordered = dict(reversed(list(payload.items())))

        assert hash_payload(normalize_payload(payload)) == hash_payload(
            normalize_payload(reordered)
        )
        assert len(hash_payload(payload)) == 64
