from decimal import Decimal
from unittest.mock import MagicMock, patch

from celery.exceptions import Retry
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from core.backend import BackendError
from core.choices import Metric
from core.records import AcademicYearRecord

from . import config as gradebook_config
from .aggregation import CohortEntry, aggregate, aggregate_cohort, mean_of_graded
from .classification import appreciate, classify
from .ranking import rank, summarize_cohort
from .reports import (
    build_report_card, check_year_completion, find_students_at_risk, has_failing_subjects,
)
from .scope import (
    OverallScope, SequenceScope, SubjectScope, TermScope,
    describe_scope, resolve_metric, resolve_scope,
)
from .services import (
    class_academic_overview, rank_records, rank_students, summarize_class,
    update_mark, update_marks,
)
from .tasks import recalculate_averages
from .utils import get_mark_history, validate_mark


def make_record(student_id, terms, record_id=None, name=''):
    """
    Build a record from a compact description.

    terms: {term_id: {sequence_id: (absences, {subject_id: mark})}}
    """
    first_name, _, last_name = name.partition(' ')
    return AcademicYearRecord.from_api({
        '_id': record_id or f'rec-{student_id}',
        'student': {'_id': student_id, 'firstName': first_name, 'lastName': last_name},
        'year': '2024-2025',
        'classes': 'cls-1',
        'terms': [
            {
                'termInfo': term_id,
                'sequences': [
                    {
                        'sequenceInfo': sequence_id,
                        'absences': absences,
                        'subjects': [
                            {'subjectInfo': subject_id, 'marks': {'currentMark': mark}}
                            for subject_id, mark in marks.items()
                        ],
                    }
                    for sequence_id, (absences, marks) in sequences.items()
                ],
            }
            for term_id, sequences in terms.items()
        ],
    })


def scenario_record():
    """T1/S1: Math=14, French=0, 3 absences; T1/S2: Math=10, French=12, no absence."""
    return make_record('stu-1', {
        'T1': {
            'S1': (3, {'math': 14, 'french': 0}),
            'S2': (0, {'math': 10, 'french': 12}),
        },
        'T2': {
            'S3': (2, {'math': 16, 'french': 18}),
        },
    }, name='Amina Ngono')


class ResolveScopeTests(SimpleTestCase):
    """Tests for filter context -> scope resolution."""

    def test_subject_scope(self):
        scope = resolve_scope({'term': 'T1', 'sequence': 'S1', 'subject': 'math'})
        self.assertEqual(scope, SubjectScope(term='T1', sequence='S1', subject='math'))

    def test_sequence_scope(self):
        scope = resolve_scope({'term': 'T1', 'sequence': 'S1'})
        self.assertEqual(scope, SequenceScope(term='T1', sequence='S1'))

    def test_term_scope(self):
        self.assertEqual(resolve_scope({'term': 'T1'}), TermScope(term='T1'))

    def test_overall_scope(self):
        self.assertEqual(resolve_scope({}), OverallScope())
        self.assertEqual(resolve_scope(None), OverallScope())

    def test_subject_without_term_falls_back_to_overall(self):
        self.assertEqual(resolve_scope({'subject': 'X'}), resolve_scope({}))
        self.assertEqual(resolve_scope({'sequence': 'S1', 'subject': 'X'}), OverallScope())

    def test_subject_without_sequence_falls_back_to_term(self):
        self.assertEqual(resolve_scope({'term': 'T1', 'subject': 'X'}), TermScope(term='T1'))

    def test_blank_values_are_absent(self):
        self.assertEqual(resolve_scope({'term': 'T1', 'sequence': '  ', 'subject': ''}),
                         TermScope(term='T1'))

    def test_absences_sentinel_is_not_a_subject(self):
        scope = resolve_scope({'term': 'T1', 'sequence': 'S1', 'subject': 'absences'})
        self.assertEqual(scope, SequenceScope(term='T1', sequence='S1'))


class ResolveMetricTests(SimpleTestCase):
    """Tests for metric selection."""

    def test_default_is_marks(self):
        self.assertEqual(resolve_metric({'term': 'T1'}), Metric.MARKS)

    def test_absences_sentinel(self):
        self.assertEqual(resolve_metric({'subject': 'absences'}), Metric.ABSENCES)

    def test_explicit_metric_wins(self):
        self.assertEqual(resolve_metric({'metric': 'absences', 'subject': 'math'}), Metric.ABSENCES)
        self.assertEqual(resolve_metric({'metric': 'MARKS', 'subject': 'absences'}), Metric.MARKS)

    def test_unknown_metric_ignored(self):
        self.assertEqual(resolve_metric({'metric': 'height'}), Metric.MARKS)

    def test_describe_scope(self):
        self.assertIn('term', describe_scope(TermScope(term='T1'), Metric.ABSENCES))
        self.assertEqual(describe_scope(OverallScope(), Metric.MARKS), 'Ranked by overall average')


class AggregateMarksTests(SimpleTestCase):
    """Tests for mark averages at each scope."""

    def setUp(self):
        self.record = scenario_record()

    def test_zero_marks_are_excluded(self):
        record = make_record('stu-2', {'T1': {'S1': (0, {'a': 0, 'b': 12, 'c': 0, 'd': 16})}})
        value = aggregate(record, SequenceScope(term='T1', sequence='S1'), Metric.MARKS)
        self.assertEqual(value, Decimal('14'))

    def test_subject_scope(self):
        scope = SubjectScope(term='T1', sequence='S1', subject='math')
        self.assertEqual(aggregate(self.record, scope, Metric.MARKS), Decimal('14'))

    def test_missing_subject_is_zero(self):
        scope = SubjectScope(term='T1', sequence='S1', subject='history')
        self.assertEqual(aggregate(self.record, scope, Metric.MARKS), 0)

    def test_term_scope_is_flat_mean(self):
        # (14 + 10 + 12) / 3, not the mean of the sequence means (14 + 11) / 2
        self.assertEqual(aggregate(self.record, TermScope(term='T1'), Metric.MARKS), Decimal('12'))

    def test_overall_scope(self):
        # (14 + 10 + 12 + 16 + 18) / 5
        self.assertEqual(aggregate(self.record, OverallScope(), Metric.MARKS), Decimal('14'))

    def test_missing_term_is_zero(self):
        self.assertEqual(aggregate(self.record, TermScope(term='T3'), Metric.MARKS), 0)
        self.assertEqual(
            aggregate(self.record, SequenceScope(term='T3', sequence='S1'), Metric.MARKS), 0
        )

    def test_ungraded_sequence_is_zero(self):
        record = make_record('stu-3', {'T1': {'S1': (0, {'a': 0, 'b': 0})}})
        self.assertEqual(aggregate(record, SequenceScope(term='T1', sequence='S1')), 0)

    def test_mean_of_graded_empty(self):
        self.assertEqual(mean_of_graded([]), 0)

    def test_deactivated_subjects_are_excluded(self):
        record = AcademicYearRecord.from_api({
            '_id': 'rec-4', 'student': 'stu-4', 'year': '2024-2025',
            'terms': [{'termInfo': 'T1', 'sequences': [{'sequenceInfo': 'S1', 'subjects': [
                {'subjectInfo': 'math', 'marks': {'currentMark': 16}},
                {'subjectInfo': 'music', 'isActive': False, 'marks': {'currentMark': 4}},
                {'subjectInfo': 'art', 'marks': {'currentMark': 6, 'isActive': False}},
            ]}]}],
        })
        self.assertEqual(aggregate(record, TermScope(term='T1'), Metric.MARKS), Decimal('16'))
        scope = SubjectScope(term='T1', sequence='S1', subject='music')
        self.assertEqual(aggregate(record, scope, Metric.MARKS), 0)

    def test_aggregation_does_not_change_record(self):
        before = scenario_record()
        aggregate(self.record, OverallScope(), Metric.MARKS)
        self.assertEqual(self.record, before)


class AggregateAbsencesTests(SimpleTestCase):
    """Tests for absence counts at each scope."""

    def setUp(self):
        self.record = scenario_record()

    def test_sequence_scope(self):
        scope = SequenceScope(term='T1', sequence='S1')
        self.assertEqual(aggregate(self.record, scope, Metric.ABSENCES), 3)

    def test_subject_scope_counts_its_sequence(self):
        subject_scope = resolve_scope({'term': 'T1', 'sequence': 'S1', 'subject': 'math'})
        sequence_scope = resolve_scope({'term': 'T1', 'sequence': 'S1'})
        self.assertEqual(
            aggregate(self.record, subject_scope, Metric.ABSENCES),
            aggregate(self.record, sequence_scope, Metric.ABSENCES),
        )

    def test_term_scope_sums_sequences(self):
        self.assertEqual(aggregate(self.record, TermScope(term='T1'), Metric.ABSENCES), 3)

    def test_overall_scope(self):
        self.assertEqual(aggregate(self.record, OverallScope(), Metric.ABSENCES), 5)

    def test_missing_sequence_is_zero(self):
        scope = SequenceScope(term='T1', sequence='S9')
        self.assertEqual(aggregate(self.record, scope, Metric.ABSENCES), 0)

    def test_aggregate_cohort_keeps_order(self):
        records = [make_record('b', {}), scenario_record(), make_record('a', {})]
        cohort = aggregate_cohort(records, OverallScope(), Metric.ABSENCES)
        self.assertEqual([e.student_id for e in cohort], ['b', 'stu-1', 'a'])
        self.assertEqual([e.value for e in cohort], [0, 5, 0])


class ClassifyTests(SimpleTestCase):
    """Tests for performance bands."""

    def test_mark_bands(self):
        cases = [
            (20, 'Excellent'), (16, 'Excellent'), (15.99, 'Very Good'), (14, 'Very Good'),
            (12, 'Good'), (Decimal('10'), 'Average'), (9.5, 'Needs Improvement'),
            (0, 'Needs Improvement'),
        ]
        for value, label in cases:
            with self.subTest(value=value):
                self.assertEqual(classify(Metric.MARKS, value).label, label)

    def test_absence_bands(self):
        cases = [
            (0, 'Perfect'), (1, 'Very Good'), (2, 'Very Good'), (3, 'Good'), (5, 'Good'),
            (6, 'Acceptable'), (10, 'Acceptable'), (11, 'Concerning'),
        ]
        for value, label in cases:
            with self.subTest(value=value):
                self.assertEqual(classify(Metric.ABSENCES, value).label, label)

    def test_severity(self):
        self.assertEqual(classify(Metric.MARKS, 18).severity, 'success')
        self.assertEqual(classify(Metric.ABSENCES, 30).severity, 'danger')

    def test_appreciation(self):
        self.assertEqual(appreciate(17), 'Excellent')
        self.assertEqual(appreciate(10.5), 'Fairly Good')
        self.assertEqual(appreciate(8), 'Passable')
        self.assertEqual(appreciate(7.5), 'Weak')


class RankTests(SimpleTestCase):
    """Tests for cohort ranking."""

    def test_marks_rank_descending(self):
        cohort = [CohortEntry('a', Decimal('11')), CohortEntry('b', Decimal('15')),
                  CohortEntry('c', Decimal('9'))]
        ranked = rank(cohort, Metric.MARKS)
        self.assertEqual([e.student_id for e in ranked], ['b', 'a', 'c'])
        self.assertEqual([e.rank for e in ranked], [1, 2, 3])

    def test_absences_rank_ascending(self):
        cohort = [CohortEntry('a', 4), CohortEntry('b', 0), CohortEntry('c', 7)]
        ranked = rank(cohort, Metric.ABSENCES)
        self.assertEqual([e.student_id for e in ranked], ['b', 'a', 'c'])
        values = [e.value for e in ranked]
        self.assertEqual(values, sorted(values))

    def test_ties_keep_input_order_with_distinct_ranks(self):
        cohort = [CohortEntry('x', 12), CohortEntry('y', 14), CohortEntry('z', 12),
                  CohortEntry('w', 12)]
        ranked = rank(cohort, Metric.MARKS)
        self.assertEqual([(e.student_id, e.rank) for e in ranked],
                         [('y', 1), ('x', 2), ('z', 3), ('w', 4)])

    def test_ties_keep_input_order_for_absences(self):
        cohort = [CohortEntry('x', 2), CohortEntry('y', 2), CohortEntry('z', 1)]
        ranked = rank(cohort, Metric.ABSENCES)
        self.assertEqual([e.student_id for e in ranked], ['z', 'x', 'y'])

    def test_ranks_are_dense_permutation(self):
        values = [5, 17, 0, 12, 12, 19, 3, 12, 8, 0]
        cohort = [CohortEntry(f's{i}', v) for i, v in enumerate(values)]
        for metric in (Metric.MARKS, Metric.ABSENCES):
            with self.subTest(metric=metric):
                ranked = rank(cohort, metric)
                self.assertEqual(sorted(e.rank for e in ranked), list(range(1, len(values) + 1)))
                for current, following in zip(ranked, ranked[1:]):
                    if metric == Metric.MARKS:
                        self.assertGreaterEqual(current.value, following.value)
                    else:
                        self.assertLessEqual(current.value, following.value)

    def test_accepts_dicts(self):
        ranked = rank([{'studentId': 'a', 'value': 3}, {'student_id': 'b', 'value': 9}])
        self.assertEqual([(e.student_id, e.rank) for e in ranked], [('b', 1), ('a', 2)])

    def test_empty_cohort(self):
        self.assertEqual(rank([], Metric.MARKS), [])

    def test_summarize_cohort(self):
        ranked = rank([CohortEntry('a', 16), CohortEntry('b', 10), CohortEntry('c', 13)])
        summary = summarize_cohort(ranked, Metric.MARKS)
        self.assertEqual(summary['count'], 3)
        self.assertEqual(summary['best'], 16)
        self.assertEqual(summary['worst'], 10)
        self.assertEqual(summary['mean'], Decimal('13'))
        self.assertEqual(summary['bands'], {'Excellent': 1, 'Good': 1, 'Average': 1})

    def test_summarize_empty_cohort(self):
        summary = summarize_cohort([], Metric.ABSENCES)
        self.assertEqual(summary['count'], 0)
        self.assertIsNone(summary['best'])


class EndToEndScenarioTests(SimpleTestCase):
    """The term-level scenario from a student's report."""

    def test_term_marks_and_absences(self):
        record = scenario_record()
        scope = resolve_scope({'term': 'T1'})

        average = aggregate(record, scope, Metric.MARKS)
        absences = aggregate(record, scope, Metric.ABSENCES)

        self.assertEqual(average, Decimal('12.0'))
        self.assertEqual(absences, 3)
        self.assertEqual(classify(Metric.MARKS, average).label, 'Good')
        self.assertEqual(classify(Metric.ABSENCES, absences).label, 'Good')

    def test_acceptable_absences(self):
        self.assertEqual(classify(Metric.ABSENCES, 7).label, 'Acceptable')


class ReportCardTests(SimpleTestCase):
    """Tests for report cards and end-of-year checks."""

    def test_build_report_card(self):
        card = build_report_card(scenario_record())

        self.assertEqual(card['overall_average'], Decimal('14.00'))
        self.assertEqual(card['overall_absences'], 5)
        self.assertEqual(card['graded_count'], 5)
        self.assertEqual(card['performance'].label, 'Very Good')

        term = card['terms']['T1']
        self.assertEqual(term['average'], Decimal('12.00'))
        self.assertEqual(term['absences'], 3)
        self.assertEqual(term['sequences']['S2']['average'], Decimal('11.00'))

        subjects = term['sequences']['S1']['subjects']
        self.assertEqual(subjects['math']['appreciation'], 'Very Good')
        self.assertEqual(subjects['french']['appreciation'], '')

    def test_report_card_rounds_averages(self):
        record = make_record('stu-4', {'T1': {'S1': (0, {'a': 10, 'b': 10, 'c': 11})}})
        card = build_report_card(record)
        self.assertEqual(card['terms']['T1']['average'], Decimal('10.33'))

    def test_has_failing_subjects_ignores_ungraded(self):
        record = make_record('stu-5', {'T1': {'S1': (0, {'a': 12, 'b': 0})}})
        self.assertFalse(has_failing_subjects(record))
        record = make_record('stu-6', {'T1': {'S1': (0, {'a': 12, 'b': 9})}})
        self.assertTrue(has_failing_subjects(record))

    def test_year_completed(self):
        record = make_record('stu-7', {
            'T1': {'S1': (0, {'a': 12, 'b': 14})},
            'T2': {'S2': (0, {'a': 0, 'b': 0})},
        })
        completed, reasons = check_year_completion(record)
        self.assertTrue(completed)
        self.assertEqual(reasons, [])

    def test_mark_equal_to_passing_average_passes(self):
        completed, _ = check_year_completion(scenario_record())
        self.assertTrue(completed)

    def test_year_not_completed(self):
        record = make_record('stu-8', {'T1': {'S1': (0, {'a': 8, 'b': 11})}})
        completed, reasons = check_year_completion(record)
        self.assertFalse(completed)
        self.assertEqual(len(reasons), 2)

    def test_year_without_grades_not_completed(self):
        completed, reasons = check_year_completion(make_record('stu-9', {}))
        self.assertFalse(completed)
        self.assertEqual(reasons, ['No graded term'])

    def test_find_students_at_risk(self):
        good = scenario_record()
        weak = make_record('weak', {'T1': {'S1': (0, {'a': 9, 'b': 9})}})
        failing_one = make_record('one', {'T1': {'S1': (0, {'a': 18, 'b': 6})}})
        at_risk = find_students_at_risk([good, weak, failing_one])
        self.assertEqual([r.student_id for r in at_risk], ['weak', 'one'])


class ValidateMarkTests(SimpleTestCase):
    """Tests for mark validation."""

    def test_valid_marks(self):
        self.assertEqual(validate_mark(0), Decimal('0'))
        self.assertEqual(validate_mark('20'), Decimal('20'))
        self.assertEqual(validate_mark(13.5), Decimal('13.5'))

    def test_out_of_range(self):
        for value in (-1, 20.5, 100):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    validate_mark(value)

    def test_not_a_number(self):
        for value in ('abc', '', 'nan'):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    validate_mark(value)

    def test_mark_history(self):
        record = AcademicYearRecord.from_api({
            '_id': 'rec-1', 'student': 'stu-1', 'year': '2024-2025',
            'terms': [{'termInfo': 'T1', 'sequences': [{'sequenceInfo': 'S1', 'subjects': [
                {'subjectInfo': 'math', 'marks': {'currentMark': 15, 'modified': [
                    {'preMark': 0, 'modMark': 12}, {'preMark': 12, 'modMark': 15},
                ]}},
            ]}]}],
        })
        history = get_mark_history(record, 'T1', 'S1', 'math')
        self.assertEqual([h.new_mark for h in history], [Decimal('12'), Decimal('15')])
        self.assertEqual(get_mark_history(record, 'T1', 'S2', 'math'), ())


class GradebookServiceTests(SimpleTestCase):
    """Tests for the gradebook service layer."""

    def setUp(self):
        self.records = [
            make_record('a', {'T1': {'S1': (4, {'math': 11})}}, name='Ada Mbarga'),
            make_record('b', {'T1': {'S1': (1, {'math': 17})}}, name='Bela Etoa'),
            make_record('c', {}, name='Carl Fouda'),
        ]
        self.client = MagicMock()
        self.client.fetch_academic_year_records.return_value = self.records

    def test_rank_students_by_marks(self):
        rows = rank_students(self.client, '2024-2025', {'term': 'T1'}, class_id='cls-1')

        self.client.fetch_academic_year_records.assert_called_once_with('2024-2025', class_id='cls-1')
        self.assertEqual([r['student_id'] for r in rows], ['b', 'a', 'c'])
        self.assertEqual(rows[0]['rank'], 1)
        self.assertEqual(rows[0]['student_name'], 'Bela Etoa')
        self.assertEqual(rows[0]['performance'].label, 'Excellent')
        # Students without data are kept, with a value of 0
        self.assertEqual(rows[2]['value'], 0)

    def test_rank_records_by_absences(self):
        rows = rank_records(self.records, {'term': 'T1', 'sequence': 'S1', 'subject': 'absences'})
        self.assertEqual([(r['student_id'], r['value']) for r in rows],
                         [('c', 0), ('b', 1), ('a', 4)])
        self.assertEqual(rows[0]['performance'].label, 'Perfect')

    def test_ranking_is_repeatable(self):
        context = {'term': 'T1'}
        self.assertEqual(rank_records(self.records, context), rank_records(self.records, context))

    @patch('gradebook.services.recalculate_averages')
    def test_update_mark(self, mock_task):
        mark = update_mark(self.client, 'rec-a', 'T1', 'S1', 'math', '15.5')

        self.assertEqual(mark, Decimal('15.5'))
        self.client.update_mark.assert_called_once_with('rec-a', 'T1', 'S1', 'math', Decimal('15.5'))
        mock_task.delay.assert_called_once_with('rec-a')

    @patch('gradebook.services.recalculate_averages')
    def test_invalid_mark_is_never_sent(self, mock_task):
        with self.assertRaises(ValidationError):
            update_mark(self.client, 'rec-a', 'T1', 'S1', 'math', 21)

        self.client.update_mark.assert_not_called()
        mock_task.delay.assert_not_called()

    @patch('gradebook.services.recalculate_averages')
    def test_backend_failure_propagates(self, mock_task):
        self.client.update_mark.side_effect = BackendError('Server error', status_code=500)

        with self.assertRaises(BackendError):
            update_mark(self.client, 'rec-a', 'T1', 'S1', 'math', 12)

        mock_task.delay.assert_not_called()

    def test_records_sharing_a_student_id_keep_their_own_rows(self):
        graded = AcademicYearRecord.from_api({
            '_id': 'rec-A', 'year': '2024-2025',
            'terms': [{'termInfo': 'T1', 'sequences': [{'sequenceInfo': 'S1', 'subjects': [
                {'subjectInfo': 'math', 'marks': {'currentMark': 18}},
            ]}]}],
        })
        empty = AcademicYearRecord.from_api({'_id': 'rec-B', 'year': '2024-2025'})

        rows = rank_records([empty, graded], {})

        self.assertEqual([(r['record_id'], r['value']) for r in rows],
                         [('rec-A', Decimal('18')), ('rec-B', 0)])
        self.assertEqual([r['student_id'] for r in rows], ['', ''])

    @patch('gradebook.services.recalculate_averages')
    def test_update_marks_reports_each_failure(self, mock_task):
        def update(record_id, *args):
            if record_id == 'rec-x':
                raise BackendError('Academic year not found', status_code=404)
        self.client.update_mark.side_effect = update

        summary = update_marks(self.client, [
            {'record_id': 'rec-a', 'term': 'T1', 'sequence': 'S1', 'subject': 'math', 'mark': 15},
            {'record_id': 'rec-b', 'term': 'T1', 'sequence': 'S1', 'subject': 'math', 'mark': 25},
            {'record_id': 'rec-x', 'term': 'T1', 'sequence': 'S1', 'subject': 'math', 'mark': 12},
            {'record_id': 'rec-c', 'term': 'T1', 'sequence': 'S1', 'subject': 'math', 'mark': '9.5'},
        ])

        self.assertEqual(summary['processed'], 2)
        self.assertEqual(summary['failed_count'], 2)
        self.assertEqual([f['record_id'] for f in summary['failed']], ['rec-b', 'rec-x'])
        self.assertIn('between', summary['failed'][0]['error'])
        self.assertEqual(summary['failed'][1]['error'], 'Academic year not found')
        # Out-of-range marks never reach the backend
        self.assertEqual(self.client.update_mark.call_count, 3)
        self.assertEqual([c.args[0] for c in mock_task.delay.call_args_list], ['rec-a', 'rec-c'])

    def test_update_marks_requires_updates(self):
        with self.assertRaises(ValidationError):
            update_marks(self.client, [])
        self.client.update_mark.assert_not_called()

    def test_summarize_class(self):
        with self.settings(GRADEBOOK_TOP_PERFORMERS_LIMIT=2):
            overview = summarize_class(self.records)

        self.assertEqual(overview['total_students'], 3)
        # (11 + 17 + 0) / 3
        self.assertEqual(overview['class_average'], Decimal('9.33'))
        self.assertEqual(overview['completed_count'], 2)
        self.assertEqual(overview['at_risk_count'], 0)
        self.assertEqual([r['student_id'] for r in overview['top_performers']], ['b', 'a'])
        self.assertEqual(overview['top_performers'][0]['rank'], 1)
        self.assertEqual(overview['performance_distribution'],
                         {'Excellent': 1, 'Average': 1, 'Needs Improvement': 1})

    def test_summarize_empty_class(self):
        overview = summarize_class([])
        self.assertEqual(overview['total_students'], 0)
        self.assertEqual(overview['class_average'], 0)
        self.assertEqual(overview['top_performers'], [])

    def test_class_academic_overview(self):
        self.records.append(make_record('d', {'T1': {'S1': (0, {'math': 7})}}))

        overview = class_academic_overview(self.client, '2024-2025', 'cls-1')

        self.client.fetch_academic_year_records.assert_called_once_with('2024-2025', class_id='cls-1')
        self.assertEqual(overview['total_students'], 4)
        self.assertEqual(overview['at_risk_count'], 1)
        self.assertEqual(len(overview['top_performers']), 4)


class RecalculateAveragesTaskTests(SimpleTestCase):
    """Tests for the recalculation task."""

    @patch('gradebook.tasks.get_backend_client')
    def test_success(self, mock_factory):
        client = mock_factory.return_value

        result = recalculate_averages.apply(args=('rec-1',))

        self.assertEqual(result.get(), 'rec-1')
        client.calculate_averages.assert_called_once_with('rec-1')

    @patch('gradebook.tasks.get_backend_client')
    def test_rejected_request_is_not_retried(self, mock_factory):
        client = mock_factory.return_value
        client.calculate_averages.side_effect = BackendError('Not found', status_code=404)

        result = recalculate_averages.apply(args=('missing',))

        self.assertIsNone(result.get())
        client.calculate_averages.assert_called_once_with('missing')

    @patch('gradebook.tasks.get_backend_client')
    def test_server_error_is_retried(self, mock_factory):
        client = mock_factory.return_value
        error = BackendError('Server error', status_code=503)
        client.calculate_averages.side_effect = error

        with patch.object(recalculate_averages, 'retry', side_effect=Retry()) as mock_retry:
            recalculate_averages.apply(args=('rec-1',))

        mock_retry.assert_called_once_with(exc=error, countdown=gradebook_config.TASK_RETRY_DELAY)

    @patch('gradebook.tasks.get_backend_client')
    def test_unreachable_backend_is_retried(self, mock_factory):
        client = mock_factory.return_value
        client.calculate_averages.side_effect = BackendError('Request timed out')

        with patch.object(recalculate_averages, 'retry', side_effect=Retry()) as mock_retry:
            recalculate_averages.apply(args=('rec-1',))

        mock_retry.assert_called_once()
        self.assertEqual(mock_retry.call_args.kwargs['countdown'], gradebook_config.TASK_RETRY_DELAY)

    @patch('gradebook.tasks.get_backend_client')
    def test_retry_delay_grows_exponentially(self, mock_factory):
        mock_factory.return_value.calculate_averages.side_effect = BackendError('Server error', 500)

        with patch.object(recalculate_averages, 'retry', side_effect=Retry()) as mock_retry:
            recalculate_averages.apply(args=('rec-1',), retries=2)

        self.assertEqual(mock_retry.call_args.kwargs['countdown'], gradebook_config.TASK_RETRY_DELAY * 4)
