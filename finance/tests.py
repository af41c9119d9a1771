from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from core.choices import PaymentStatus
from core.records import AcademicYearRecord, FeePayment

from .ledger import compute_fee_status, total_paid
from .services import (
    change_payment, class_fee_overview, get_fee_due, record_payment, remove_payment,
)
from .stats import (
    cohort_fee_statistics, collection_rate, fee_statistics_by_class,
    payments_by_method, payments_by_month, payments_by_type,
)
from .utils import build_payment, validate_payment


def payment(amount, fee_type='Tuition', bill_id='B-001', paid_on=None, method='cash'):
    return FeePayment(
        bill_id=bill_id,
        amount=Decimal(str(amount)),
        fee_type=fee_type,
        payment_date=paid_on,
        payment_method=method,
    )


def fee_record(student_id, class_id, payments):
    return AcademicYearRecord(
        record_id=f'rec-{student_id}',
        student_id=student_id,
        year='2024-2025',
        class_id=class_id,
        fees=tuple(payments),
    )


class ComputeFeeStatusTests(SimpleTestCase):
    """Tests for fee reconciliation."""

    def test_partial_payment(self):
        result = compute_fee_status([payment(500)], 850)
        self.assertEqual(result.total_paid, Decimal('500'))
        self.assertEqual(result.remaining, Decimal('350'))
        self.assertEqual(result.status, PaymentStatus.PARTIAL)
        self.assertFalse(result.is_paid)

    def test_no_payment_is_pending(self):
        result = compute_fee_status([], 850)
        self.assertEqual(result.total_paid, 0)
        self.assertEqual(result.remaining, Decimal('850'))
        self.assertEqual(result.status, PaymentStatus.PENDING)

    def test_exact_payment_is_paid(self):
        result = compute_fee_status([payment(500), payment(350, bill_id='B-002')], 850)
        self.assertEqual(result.remaining, 0)
        self.assertEqual(result.status, PaymentStatus.PAID)
        self.assertTrue(result.is_paid)

    def test_over_payment_leaves_negative_remaining(self):
        result = compute_fee_status([payment(1000)], 850)
        self.assertEqual(result.remaining, Decimal('-150'))
        self.assertEqual(result.status, PaymentStatus.PAID)

    def test_nothing_due_is_paid(self):
        self.assertEqual(compute_fee_status([], 0).status, PaymentStatus.PAID)

    def test_tuition_only(self):
        payments = [payment(300), payment(200, fee_type='Uniform', bill_id='B-002')]
        self.assertEqual(compute_fee_status(payments, 850).total_paid, Decimal('500'))
        self.assertEqual(
            compute_fee_status(payments, 850, tuition_only=True).total_paid, Decimal('300')
        )

    def test_tuition_only_with_only_other_fees_is_pending(self):
        payments = [payment(200, fee_type='Uniform')]
        result = compute_fee_status(payments, 850, tuition_only=True)
        self.assertEqual(result.status, PaymentStatus.PENDING)

    def test_tuition_fee_type_is_configurable(self):
        payments = [payment(300, fee_type='Scolarité')]
        with self.settings(FINANCE_TUITION_FEE_TYPE='Scolarité'):
            self.assertEqual(total_paid(payments, tuition_only=True), Decimal('300'))

    def test_accepts_dicts(self):
        result = compute_fee_status([{'amount': 500, 'type': 'Tuition'}], 850)
        self.assertEqual(result.status, PaymentStatus.PARTIAL)

    def test_same_input_same_output(self):
        payments = [payment(500)]
        self.assertEqual(compute_fee_status(payments, 850), compute_fee_status(payments, 850))


class FeeStatisticsTests(SimpleTestCase):
    """Tests for cohort fee statistics."""

    def setUp(self):
        self.records = [
            fee_record('a', 'cls-1', [payment(850, paid_on=date(2024, 9, 2))]),
            fee_record('b', 'cls-1', [
                payment(300, paid_on=date(2024, 9, 20), method='mobile_money'),
                payment(50, fee_type='Uniform', bill_id='B-002', paid_on=date(2024, 10, 1)),
            ]),
            fee_record('c', 'cls-2', []),
        ]

    def test_collection_rate(self):
        self.assertEqual(collection_rate(500, 1000), Decimal('50.00'))
        self.assertEqual(collection_rate(1, 3), Decimal('33.33'))

    def test_collection_rate_zero_due(self):
        self.assertEqual(collection_rate(0, 0), 0)
        self.assertEqual(collection_rate(100, 0), 0)

    def test_cohort_statistics(self):
        entries = [(850, compute_fee_status(r.fees, 850)) for r in self.records]
        stats = cohort_fee_statistics(entries)

        self.assertEqual(stats['total_due'], Decimal('2550'))
        self.assertEqual(stats['total_paid'], Decimal('1200'))
        self.assertEqual(stats['total_remaining'], Decimal('1350'))
        self.assertEqual(stats['paid_count'], 1)
        self.assertEqual(stats['partial_count'], 1)
        self.assertEqual(stats['pending_count'], 1)
        self.assertEqual(stats['student_count'], 3)
        self.assertEqual(stats['collection_rate'], Decimal('47.06'))

    def test_empty_cohort(self):
        stats = cohort_fee_statistics([])
        self.assertEqual(stats['student_count'], 0)
        self.assertEqual(stats['collection_rate'], 0)

    def test_payments_by_method(self):
        self.assertEqual(payments_by_method(self.records), {
            'cash': Decimal('900'),
            'mobile_money': Decimal('300'),
        })

    def test_payments_by_type(self):
        self.assertEqual(payments_by_type(self.records), {
            'Tuition': Decimal('1150'),
            'Uniform': Decimal('50'),
        })

    def test_payments_by_month(self):
        records = self.records + [fee_record('d', 'cls-2', [payment(10)])]
        self.assertEqual(payments_by_month(records), {
            '2024-09': Decimal('1150'),
            '2024-10': Decimal('50'),
        })

    def test_statistics_by_class(self):
        by_class = fee_statistics_by_class(
            self.records, {'cls-1': 850, 'cls-2': 600}, tuition_only=True
        )
        self.assertEqual(by_class['cls-1']['students'], 2)
        self.assertEqual(by_class['cls-1']['total_due'], Decimal('1700'))
        self.assertEqual(by_class['cls-1']['total_paid'], Decimal('1150'))
        self.assertEqual(by_class['cls-1']['collection_rate'], Decimal('67.65'))
        self.assertEqual(by_class['cls-2']['collection_rate'], 0)


class PaymentValidationTests(SimpleTestCase):
    """Tests for payment validation."""

    def test_valid_payment(self):
        p = payment(100)
        self.assertIs(validate_payment(p), p)

    def test_negative_amount(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_payment(payment(-5))
        self.assertIn('amount', ctx.exception.message_dict)

    def test_blank_bill_id(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_payment(payment(100, bill_id='  '))
        self.assertIn('bill_id', ctx.exception.message_dict)

    def test_unknown_method(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_payment(payment(100, method='barter'))
        self.assertIn('payment_method', ctx.exception.message_dict)

    def test_build_payment(self):
        p = build_payment(' B-010 ', '250.50', fee_type='Tuition', payment_method='cash')
        self.assertEqual(p.bill_id, 'B-010')
        self.assertEqual(p.amount, Decimal('250.50'))

    def test_build_payment_rejects_text_amount(self):
        with self.assertRaises(ValidationError):
            build_payment('B-011', 'fifty')


class FinanceServiceTests(SimpleTestCase):
    """Tests for the finance service layer."""

    def setUp(self):
        cache.clear()
        self.client = MagicMock()
        self.client.fetch_fee_due.return_value = Decimal('850')
        self.client.fetch_academic_year_records.return_value = [
            fee_record('a', 'cls-1', [payment(500)]),
            fee_record('b', 'cls-1', []),
        ]

    def test_fee_due_is_cached(self):
        self.assertEqual(get_fee_due(self.client, 'cls-1'), Decimal('850'))
        self.assertEqual(get_fee_due(self.client, 'cls-1'), Decimal('850'))
        self.client.fetch_fee_due.assert_called_once_with('cls-1')

    def test_class_fee_overview(self):
        overview = class_fee_overview(self.client, '2024-2025', 'cls-1')

        rows = overview['rows']
        self.assertEqual([r['student_id'] for r in rows], ['a', 'b'])
        self.assertEqual(rows[0]['fee_status'].status, PaymentStatus.PARTIAL)
        self.assertEqual(rows[1]['fee_status'].status, PaymentStatus.PENDING)

        stats = overview['statistics']
        self.assertEqual(stats['total_due'], Decimal('1700'))
        self.assertEqual(stats['collection_rate'], Decimal('29.41'))

    def test_class_fee_overview_currency(self):
        with self.settings(FINANCE_CURRENCY='XAF'):
            overview = class_fee_overview(self.client, '2024-2025', 'cls-1')
        self.assertEqual(overview['currency'], 'XAF')

    def test_record_payment(self):
        p = payment(100, bill_id='B-005')
        record_payment(self.client, 'rec-a', p)
        self.client.add_fee_payment.assert_called_once_with('rec-a', p)

    def test_invalid_payment_is_never_sent(self):
        with self.assertRaises(ValidationError):
            record_payment(self.client, 'rec-a', payment(-1))
        self.client.add_fee_payment.assert_not_called()

    def test_change_and_remove_payment(self):
        p = payment(120, bill_id='B-001')
        change_payment(self.client, 'rec-a', 'B-001', p)
        self.client.update_fee_payment.assert_called_once_with('rec-a', 'B-001', p)

        remove_payment(self.client, 'rec-a', 'B-001')
        self.client.delete_fee_payment.assert_called_once_with('rec-a', 'B-001')
