import json
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase

from core.backend import BackendError, RestBackendClient, get_backend_client
from core.records import AcademicYearRecord, FeePayment, RecordParseError


def record_document(**overrides):
    """Backend document for one student's 2024-2025 year."""
    document = {
        '_id': 'rec-1',
        'student': {'_id': 'stu-1', 'firstName': 'Amina', 'lastName': 'Ngono'},
        'year': '2024-2025',
        'classes': {'_id': 'cls-1', 'classesName': 'Form 1', 'amountFee': 850},
        'hasRepeated': False,
        'terms': [
            {
                'termInfo': 'T1',
                'sequences': [
                    {
                        'sequenceInfo': 'S1',
                        'absences': 3,
                        'subjects': [
                            {'subjectInfo': 'math', 'coefficient': 4, 'marks': {
                                'currentMark': 14,
                                'modified': [{
                                    'preMark': 12, 'modMark': 14,
                                    'modifiedBy': {'name': 'J. Doe', 'userId': 'usr-1'},
                                    'dateModified': '2024-10-12T09:30:00.000Z',
                                }],
                            }},
                            {'subjectInfo': {'_id': 'french'}, 'marks': {'currentMark': 0}},
                        ],
                    },
                ],
            },
        ],
        'fees': [
            {'billID': 'B-001', 'type': 'Tuition', 'amount': 500,
             'paymentDate': '2024-09-15', 'paymentMethod': 'cash'},
        ],
    }
    document.update(overrides)
    return document


class AcademicYearRecordParsingTests(SimpleTestCase):
    """Tests for building records from backend documents."""

    def setUp(self):
        self.record = AcademicYearRecord.from_api(record_document())

    def test_identity(self):
        self.assertEqual(self.record.record_id, 'rec-1')
        self.assertEqual(self.record.student_id, 'stu-1')
        self.assertEqual(self.record.key, ('stu-1', '2024-2025'))
        self.assertEqual(self.record.student_name, 'Amina Ngono')

    def test_populated_class_gives_amount_due(self):
        self.assertEqual(self.record.class_id, 'cls-1')
        self.assertEqual(self.record.amount_due, Decimal('850'))

    def test_raw_ids_are_accepted(self):
        record = AcademicYearRecord.from_api(record_document(student='stu-9', classes='cls-2'))
        self.assertEqual(record.student_id, 'stu-9')
        self.assertEqual(record.class_id, 'cls-2')
        self.assertEqual(record.student_name, '')
        self.assertIsNone(record.amount_due)

    def test_nested_marks(self):
        sequence = self.record.get_term('T1').get_sequence('S1')
        self.assertEqual(sequence.absences, 3)
        math = sequence.get_subject('math')
        self.assertEqual(math.current_mark, Decimal('14'))
        self.assertEqual(math.coefficient, Decimal('4'))
        self.assertTrue(math.is_graded)

        french = sequence.get_subject('french')
        self.assertEqual(french.coefficient, Decimal('1'))
        self.assertFalse(french.is_graded)

    def test_mark_history(self):
        math = self.record.get_term('T1').get_sequence('S1').get_subject('math')
        self.assertEqual(len(math.modifications), 1)
        change = math.modifications[0]
        self.assertEqual(change.previous_mark, Decimal('12'))
        self.assertEqual(change.new_mark, Decimal('14'))
        self.assertEqual(change.modified_by, 'J. Doe')
        self.assertEqual(change.modified_on, date(2024, 10, 12))

    def test_missing_lookups_return_none(self):
        self.assertIsNone(self.record.get_term('T9'))
        term = self.record.get_term('T1')
        self.assertIsNone(term.get_sequence('S9'))
        self.assertIsNone(term.get_sequence('S1').get_subject('history'))

    def test_iterators(self):
        self.assertEqual(len(list(self.record.iter_sequences())), 1)
        self.assertEqual([m.subject_id for m in self.record.iter_marks()], ['math', 'french'])

    def test_fees(self):
        payment = self.record.fees[0]
        self.assertEqual(payment.bill_id, 'B-001')
        self.assertEqual(payment.amount, Decimal('500'))
        self.assertEqual(payment.fee_type, 'Tuition')
        self.assertEqual(payment.payment_date, date(2024, 9, 15))

    def test_empty_document(self):
        record = AcademicYearRecord.from_api({'_id': 'rec-2', 'student': 'stu-2', 'year': '2024-2025'})
        self.assertEqual(record.terms, ())
        self.assertEqual(record.fees, ())

    def test_invalid_mark_raises(self):
        document = record_document()
        document['terms'][0]['sequences'][0]['subjects'][0]['marks']['currentMark'] = 'abc'
        with self.assertRaises(RecordParseError):
            AcademicYearRecord.from_api(document)

    def test_non_finite_mark_raises(self):
        # requests decodes bare NaN/Infinity tokens into floats
        raw = json.dumps(record_document())
        for token in ('NaN', 'Infinity'):
            with self.subTest(token=token):
                document = json.loads(raw.replace('"currentMark": 14', f'"currentMark": {token}'))
                with self.assertRaises(RecordParseError):
                    AcademicYearRecord.from_api(document)

    def test_fractional_absences_raise(self):
        document = record_document()
        document['terms'][0]['sequences'][0]['absences'] = 3.7
        with self.assertRaises(RecordParseError):
            AcademicYearRecord.from_api(document)

    def test_whole_float_absences_are_accepted(self):
        document = record_document()
        document['terms'][0]['sequences'][0]['absences'] = 4.0
        record = AcademicYearRecord.from_api(document)
        self.assertEqual(record.get_term('T1').get_sequence('S1').absences, 4)

    def test_invalid_dates_raise(self):
        for value in (1726358400, '2024-02-30', 'last tuesday'):
            with self.subTest(value=value):
                document = record_document()
                document['fees'][0]['paymentDate'] = value
                with self.assertRaises(RecordParseError):
                    AcademicYearRecord.from_api(document)

    def test_deactivated_subject(self):
        document = record_document()
        subjects = document['terms'][0]['sequences'][0]['subjects']
        subjects[0]['isActive'] = False
        subjects[1]['marks'] = {'currentMark': 9, 'isActive': False}

        sequence = AcademicYearRecord.from_api(document).get_term('T1').get_sequence('S1')
        for subject_id in ('math', 'french'):
            subject = sequence.get_subject(subject_id)
            self.assertFalse(subject.is_active)
            self.assertFalse(subject.is_graded)

        self.assertTrue(self.record.get_term('T1').get_sequence('S1').get_subject('math').is_active)

    def test_negative_absences_raise(self):
        document = record_document()
        document['terms'][0]['sequences'][0]['absences'] = -1
        with self.assertRaises(RecordParseError):
            AcademicYearRecord.from_api(document)

    def test_records_are_immutable(self):
        with self.assertRaises(AttributeError):
            self.record.year = '2025-2026'


def fake_response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = b'{}' if data is not None else b''
    response.json.return_value = data
    return response


class RestBackendClientTests(SimpleTestCase):
    """Tests for the REST backend client."""

    def setUp(self):
        self.client = RestBackendClient({
            'BASE_URL': 'http://backend.test/api/',
            'TOKEN': 'secret',
            'TIMEOUT': 5,
        })

    @patch('core.backend.rest.requests.request')
    def test_fetch_records(self, mock_request):
        mock_request.return_value = fake_response(data={'students': [record_document()]})

        records = self.client.fetch_academic_year_records('2024-2025', class_id='cls-1')

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].student_id, 'stu-1')
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ('GET', 'http://backend.test/api/academic-years'))
        self.assertEqual(kwargs['params'], {'year': '2024-2025', 'classes': 'cls-1'})
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer secret')
        self.assertEqual(kwargs['timeout'], 5)

    @patch('core.backend.rest.requests.request')
    def test_fetch_fee_due(self, mock_request):
        mock_request.return_value = fake_response(data={'_id': 'cls-1', 'amountFee': 850})
        self.assertEqual(self.client.fetch_fee_due('cls-1'), Decimal('850'))

    @patch('core.backend.rest.requests.request')
    def test_update_mark_payload(self, mock_request):
        mock_request.return_value = fake_response(data={'message': 'Mark updated successfully'})

        self.client.update_mark('rec-1', 'T1', 'S1', 'math', Decimal('15.5'))

        args, kwargs = mock_request.call_args
        self.assertEqual(args, ('PUT', 'http://backend.test/api/academic-years/rec-1/marks'))
        self.assertEqual(kwargs['json'], {
            'termInfo': 'T1', 'sequenceInfo': 'S1', 'subjectInfo': 'math', 'newMark': 15.5,
        })

    @patch('core.backend.rest.requests.request')
    def test_fee_endpoints(self, mock_request):
        mock_request.return_value = fake_response(data={})
        payment = FeePayment(bill_id='B-002', amount=Decimal('100'), fee_type='Tuition')

        self.client.add_fee_payment('rec-1', payment)
        self.assertEqual(mock_request.call_args[0],
                         ('POST', 'http://backend.test/api/academic-years/rec-1/fees'))
        self.assertEqual(mock_request.call_args[1]['json']['billID'], 'B-002')

        self.client.update_fee_payment('rec-1', 'B-002', payment)
        self.assertEqual(mock_request.call_args[0],
                         ('PUT', 'http://backend.test/api/academic-years/rec-1/fees/B-002'))

        self.client.delete_fee_payment('rec-1', 'B-002')
        self.assertEqual(mock_request.call_args[0],
                         ('DELETE', 'http://backend.test/api/academic-years/rec-1/fees/B-002'))

    @patch('core.backend.rest.requests.request')
    def test_http_error_raises_backend_error(self, mock_request):
        mock_request.return_value = fake_response(404, {'message': 'Academic year not found'})

        with self.assertRaises(BackendError) as ctx:
            self.client.calculate_averages('missing')

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, 'Academic year not found')

    @patch('core.backend.rest.requests.request')
    def test_timeout_raises_backend_error(self, mock_request):
        mock_request.side_effect = requests.exceptions.Timeout()

        with self.assertRaises(BackendError) as ctx:
            self.client.fetch_fee_due('cls-1')

        self.assertIsNone(ctx.exception.status_code)

    def test_no_token_no_authorization_header(self):
        client = RestBackendClient({'BASE_URL': 'http://backend.test/api'})
        self.assertNotIn('Authorization', client._get_headers())


class GetBackendClientTests(SimpleTestCase):
    """Tests for the backend client factory."""

    def test_uses_settings(self):
        with self.settings(SCHOOL_BACKEND={'BASE_URL': 'http://x.test', 'TIMEOUT': 7}):
            client = get_backend_client()
        self.assertIsInstance(client, RestBackendClient)
        self.assertEqual(client.timeout, 7)

    def test_unknown_client(self):
        with self.assertRaises(ValueError):
            get_backend_client({'CLIENT': 'GRAPHQL'})
