"""
Utility functions for the finance app.
"""
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError

from core.choices import PaymentMethod
from core.records import FeePayment


def validate_payment(payment):
    """
    Validate a payment before it is sent to the backend.

    Args:
        payment: FeePayment

    Returns:
        FeePayment: the same payment

    Raises:
        ValidationError: on a blank bill ID, a negative or non-numeric amount,
            or an unknown payment method
    """
    errors = {}

    if not (payment.bill_id or '').strip():
        errors['bill_id'] = 'Bill ID is required.'

    try:
        amount = Decimal(str(payment.amount))
    except (InvalidOperation, ValueError):
        amount = None
    if amount is None or not amount.is_finite():
        errors['amount'] = 'Amount must be a number.'
    elif amount < 0:
        errors['amount'] = 'Amount cannot be negative.'

    if payment.payment_method and payment.payment_method not in PaymentMethod.values:
        errors['payment_method'] = f"Unknown payment method: {payment.payment_method}"

    if errors:
        raise ValidationError(errors)
    return payment


def build_payment(bill_id, amount, fee_type='', payment_date=None, payment_method=''):
    """Build and validate a FeePayment from form-style values."""
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError({'amount': 'Amount must be a number.'})

    return validate_payment(FeePayment(
        bill_id=str(bill_id or '').strip(),
        amount=amount,
        fee_type=fee_type,
        payment_date=payment_date,
        payment_method=payment_method,
    ))
