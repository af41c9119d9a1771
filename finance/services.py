"""
Finance services: fee status views and the payment pathway.
"""
import logging

from django.core.cache import cache

from . import config
from .ledger import compute_fee_status
from .stats import cohort_fee_statistics
from .utils import validate_payment

logger = logging.getLogger(__name__)


def get_fee_due(client, class_id):
    """
    Get the fee owed per student of a class, cached to avoid one request
    per student while building fee views.
    """
    cache_key = f'fee_due_{class_id}'
    amount_due = cache.get(cache_key)

    if amount_due is None:
        amount_due = client.fetch_fee_due(class_id)
        cache.set(cache_key, amount_due, config.FEE_DUE_CACHE_TIMEOUT)
        logger.debug(f"Cached fee due for class {class_id}: {amount_due}")

    return amount_due


def class_fee_overview(client, year, class_id, tuition_only=False):
    """
    Fee status of every student of a class, plus cohort statistics.

    Returns:
        dict: {
            'rows': list of {'student_id', 'student_name', 'record_id',
                             'amount_due', 'fee_status'},
            'statistics': dict from cohort_fee_statistics(),
            'currency': currency the amounts are in,
        }
    """
    records = client.fetch_academic_year_records(year, class_id=class_id)
    amount_due = get_fee_due(client, class_id)

    rows = []
    for record in records:
        rows.append({
            'student_id': record.student_id,
            'student_name': record.student_name,
            'record_id': record.record_id,
            'amount_due': amount_due,
            'fee_status': compute_fee_status(record.fees, amount_due, tuition_only=tuition_only),
        })

    statistics = cohort_fee_statistics((row['amount_due'], row['fee_status']) for row in rows)
    logger.info(
        f"Fee overview for class {class_id} ({year}): {statistics['student_count']} students, "
        f"{statistics['total_paid']} {config.CURRENCY} collected ({statistics['collection_rate']}%)"
    )
    return {'rows': rows, 'statistics': statistics, 'currency': config.CURRENCY}


def record_payment(client, record_id, payment):
    """Validate and add a payment to a student's record."""
    validate_payment(payment)
    client.add_fee_payment(record_id, payment)
    logger.info(f"Payment {payment.bill_id} of {payment.amount} added to record {record_id}")
    return payment


def change_payment(client, record_id, bill_id, payment):
    """Validate and replace an existing payment."""
    validate_payment(payment)
    client.update_fee_payment(record_id, bill_id, payment)
    logger.info(f"Payment {bill_id} updated on record {record_id}")
    return payment


def remove_payment(client, record_id, bill_id):
    """Delete a payment from a student's record."""
    client.delete_fee_payment(record_id, bill_id)
    logger.info(f"Payment {bill_id} deleted from record {record_id}")
