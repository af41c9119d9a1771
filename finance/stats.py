"""
Fee collection statistics over a cohort of students.
"""
from collections import defaultdict
from decimal import Decimal

from core.choices import PaymentStatus
from .ledger import ZERO, compute_fee_status


def collection_rate(paid, due):
    """Percentage of the amount due that has been collected (0 when nothing is due)."""
    due = Decimal(str(due))
    if due <= 0:
        return ZERO
    return round(Decimal(str(paid)) / due * 100, 2)


def cohort_fee_statistics(entries):
    """
    Aggregate per-student fee figures.

    Args:
        entries: iterable of (amount_due, FeeStatus) pairs

    Returns:
        dict: {
            'total_due', 'total_paid', 'total_remaining',
            'paid_count', 'partial_count', 'pending_count',
            'student_count', 'collection_rate'
        }
    """
    total_due = ZERO
    total_paid = ZERO
    total_remaining = ZERO
    counts = defaultdict(int)

    for amount_due, fee_status in entries:
        total_due += Decimal(str(amount_due))
        total_paid += fee_status.total_paid
        total_remaining += fee_status.remaining
        counts[fee_status.status] += 1

    return {
        'total_due': total_due,
        'total_paid': total_paid,
        'total_remaining': total_remaining,
        'paid_count': counts[PaymentStatus.PAID],
        'partial_count': counts[PaymentStatus.PARTIAL],
        'pending_count': counts[PaymentStatus.PENDING],
        'student_count': sum(counts.values()),
        'collection_rate': collection_rate(total_paid, total_due),
    }


def _sum_by(records, key_func):
    totals = defaultdict(lambda: ZERO)
    for record in records:
        for payment in record.fees:
            key = key_func(payment)
            if key is None:
                continue
            totals[key] += payment.amount
    return dict(totals)


def payments_by_method(records):
    """Total amount collected per payment method."""
    return _sum_by(records, lambda p: p.payment_method or 'unknown')


def payments_by_type(records):
    """Total amount collected per fee type."""
    return _sum_by(records, lambda p: p.fee_type or 'Other')


def payments_by_month(records):
    """Total amount collected per month ('YYYY-MM'); undated payments are skipped."""
    totals = _sum_by(
        records,
        lambda p: p.payment_date.strftime('%Y-%m') if p.payment_date else None
    )
    return dict(sorted(totals.items()))


def fee_statistics_by_class(records, amounts_due, tuition_only=False):
    """
    Collection figures per class.

    Args:
        records: iterable of AcademicYearRecord
        amounts_due: {class_id: amount owed per student}
        tuition_only: count only tuition payments

    Returns:
        dict: {class_id: {'students', 'total_due', 'total_paid', 'collection_rate'}}
    """
    by_class = defaultdict(lambda: {'students': 0, 'total_due': ZERO, 'total_paid': ZERO})

    for record in records:
        amount_due = Decimal(str(amounts_due.get(record.class_id, 0)))
        fee_status = compute_fee_status(record.fees, amount_due, tuition_only=tuition_only)
        data = by_class[record.class_id]
        data['students'] += 1
        data['total_due'] += amount_due
        data['total_paid'] += fee_status.total_paid

    result = {}
    for class_id, data in by_class.items():
        data['collection_rate'] = collection_rate(data['total_paid'], data['total_due'])
        result[class_id] = data
    return result
