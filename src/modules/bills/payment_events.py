"""Infer payment events from the before/after values of a bill save.

The UI has a single save action for editing bills and recording payments, so
a payment is recognised from field deltas: the paid amount changed to a
positive value, or any assistance amount went up.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from src.modules.bills.models import ALL_ASSIST_FIELDS, Bill, BillPayment
from src.modules.bills.schemas import FIELD_ALIASES
from src.shared.utils.money import ZERO, parse_amount, round_money


@dataclass(frozen=True)
class PaymentEvent:
    is_payment: bool
    amount: Decimal = ZERO
    period: str | None = None


NO_PAYMENT = PaymentEvent(is_payment=False)


def _assist_period(assist_field: str) -> str:
    """Wire key of the fee period an assistance field belongs to."""
    fee_field = assist_field.removeprefix("assist_")
    return FIELD_ALIASES.get(fee_field, fee_field)


def detect_payment(previous: Bill | None, incoming: Mapping[str, Any]) -> PaymentEvent:
    """
    Decide whether saving ``incoming`` over ``previous`` is a payment.

    ``previous`` is None for a new bill, in which case every baseline is zero.
    Fields missing from ``incoming`` keep their previous value.
    """
    prev_paid = parse_amount(previous.amount_paid) if previous is not None else ZERO
    next_paid = parse_amount(incoming["amount_paid"]) if "amount_paid" in incoming else prev_paid

    paid_changed = next_paid > 0 and next_paid != prev_paid

    increased_field = None
    for field in ALL_ASSIST_FIELDS:
        if field not in incoming:
            continue
        before = parse_amount(getattr(previous, field)) if previous is not None else ZERO
        if parse_amount(incoming[field]) > before:
            increased_field = field
            break

    if not paid_changed and increased_field is None:
        return NO_PAYMENT

    return PaymentEvent(
        is_payment=True,
        amount=max(ZERO, next_paid - prev_paid),
        period=_assist_period(increased_field) if increased_field else None,
    )


def apply_payment_event(bill: Bill, event: PaymentEvent, now: datetime) -> BillPayment | None:
    """Stamp the payment date and append a ledger entry for a positive amount."""
    if not event.is_payment:
        return None

    bill.payment_date = now
    amount = round_money(event.amount)
    if amount <= 0:
        return None

    entry = BillPayment(amount=amount, date=now, period=event.period)
    bill.payments.append(entry)
    return entry
