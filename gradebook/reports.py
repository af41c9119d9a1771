"""
Report card summaries and end-of-year checks built on the aggregation engine.
"""
import logging

from core.choices import Metric
from . import config
from .aggregation import aggregate, mean_of_graded
from .classification import appreciate, classify
from .scope import OverallScope, TermScope

logger = logging.getLogger(__name__)


def _display(value):
    return round(value, config.REPORT_DECIMAL_PLACES)


def build_report_card(record):
    """
    Build the report card data for one student's academic year.

    Args:
        record: AcademicYearRecord

    Returns:
        dict: {
            'record': the record,
            'terms': {term_id: {'average', 'absences', 'sequences': {
                sequence_id: {'average', 'absences', 'subjects': {
                    subject_id: {'mark', 'coefficient', 'appreciation'}}}}}},
            'overall_average': Decimal,
            'overall_absences': int,
            'graded_count': int,
            'performance': PerformanceBand,
        }
    """
    terms = {}
    graded_count = 0

    for term in record.terms:
        sequences = {}
        for sequence in term.sequences:
            subjects = {}
            for subject in sequence.subjects:
                if subject.is_graded:
                    graded_count += 1
                subjects[subject.subject_id] = {
                    'mark': subject.current_mark,
                    'coefficient': subject.coefficient,
                    'appreciation': appreciate(subject.current_mark) if subject.is_graded else '',
                }

            sequences[sequence.sequence_id] = {
                'average': _display(mean_of_graded(sequence.subjects)),
                'absences': sequence.absences,
                'subjects': subjects,
            }

        terms[term.term_id] = {
            'average': _display(mean_of_graded(term.iter_marks())),
            'absences': sum(s.absences for s in term.sequences),
            'sequences': sequences,
        }

    overall_average = aggregate(record, OverallScope(), Metric.MARKS)

    return {
        'record': record,
        'terms': terms,
        'overall_average': _display(overall_average),
        'overall_absences': aggregate(record, OverallScope(), Metric.ABSENCES),
        'graded_count': graded_count,
        'performance': classify(Metric.MARKS, overall_average),
    }


def has_failing_subjects(record, passing_mark=None):
    """Check whether any graded mark in the year is below the passing mark."""
    if passing_mark is None:
        passing_mark = config.PASSING_AVERAGE
    return any(
        mark.is_graded and mark.current_mark < passing_mark
        for mark in record.iter_marks()
    )


def _graded_term_averages(record):
    """Yield (term_id, average) for every term with at least one graded mark."""
    for term in record.terms:
        if any(mark.is_graded for mark in term.iter_marks()):
            yield term.term_id, aggregate(record, TermScope(term=term.term_id), Metric.MARKS)


def check_year_completion(record, passing_average=None):
    """
    Decide whether a student has completed the academic year.

    Every graded term must reach the passing average and no graded subject
    may be below it. Terms without any graded mark are ignored; a year with
    no graded term at all is not complete.

    Returns:
        tuple: (completed: bool, reasons: list of str)
    """
    if passing_average is None:
        passing_average = config.PASSING_AVERAGE

    reasons = []
    term_averages = list(_graded_term_averages(record))

    if not term_averages:
        reasons.append('No graded term')

    for term_id, average in term_averages:
        if average < passing_average:
            reasons.append(
                f"Term {term_id} average ({average:.2f}) below required {passing_average}"
            )

    if has_failing_subjects(record, passing_average):
        reasons.append('Has failing subjects')

    return not reasons, reasons


def find_students_at_risk(records, threshold=None):
    """
    Records with a graded term average below the threshold or a failing subject.

    Returns:
        list of AcademicYearRecord, in input order
    """
    if threshold is None:
        threshold = config.AT_RISK_THRESHOLD

    at_risk = [
        record for record in records
        if any(average < threshold for _, average in _graded_term_averages(record))
        or has_failing_subjects(record, threshold)
    ]

    logger.debug(f"{len(at_risk)} students at risk below {threshold}")
    return at_risk
