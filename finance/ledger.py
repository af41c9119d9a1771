"""
Fee ledger reconciliation.

A student's payments for the year are summed and compared with the amount
owed for their class. Over-payment leaves a negative remaining balance.
"""
from dataclasses import dataclass
from decimal import Decimal

from core.choices import PaymentStatus
from core.records import parse_decimal
from . import config

ZERO = Decimal('0.00')


@dataclass(frozen=True)
class FeeStatus:
    total_paid: Decimal
    remaining: Decimal
    status: str

    @property
    def is_paid(self):
        return self.remaining <= 0


def _payment_fields(payment):
    if isinstance(payment, dict):
        return payment.get('type', ''), parse_decimal(payment.get('amount'), 'amount')
    return payment.fee_type, payment.amount


def total_paid(payments, tuition_only=False):
    """Sum payment amounts, optionally counting only tuition payments."""
    tuition_type = config.TUITION_FEE_TYPE
    total = ZERO
    for payment in payments:
        fee_type, amount = _payment_fields(payment)
        if tuition_only and fee_type != tuition_type:
            continue
        total += amount
    return total


def compute_fee_status(payments, amount_due, tuition_only=False):
    """
    Reconcile a student's payments against the amount due.

    Args:
        payments: iterable of FeePayment (or dicts with 'amount' and 'type')
        amount_due: amount owed for the student's class
        tuition_only: count only payments of the tuition fee type

    Returns:
        FeeStatus: Paid when nothing remains, Partial when something was
        paid, Pending otherwise
    """
    paid = total_paid(payments, tuition_only=tuition_only)
    remaining = parse_decimal(amount_due, 'amount_due') - paid

    if remaining <= 0:
        status = PaymentStatus.PAID
    elif paid > 0:
        status = PaymentStatus.PARTIAL
    else:
        status = PaymentStatus.PENDING

    return FeeStatus(total_paid=paid, remaining=remaining, status=status)
