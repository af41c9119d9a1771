"""
Reduce academic-year records to a single value per student.

Two metrics are supported. Marks are averaged over every graded mark in the
scope (a flat mean, never a mean of sequence means); a mark of 0 means "not
graded yet" and is left out of both the sum and the count, as is a mark of
a deactivated subject. Absences are recorded per sequence and summed over
the scope.

Nothing here raises for missing data: a term, sequence or subject the
student has no entry for yields 0, and the student stays in the cohort.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from core.choices import Metric
from .scope import OverallScope, SequenceScope, SubjectScope, TermScope

ZERO = Decimal('0')


@dataclass(frozen=True)
class CohortEntry:
    student_id: str
    value: Union[Decimal, int]


def mean_of_graded(marks):
    """
    Average the graded marks in an iterable of SubjectMark.

    Returns:
        Decimal: the mean of graded marks, or 0 when none is graded
    """
    total = ZERO
    count = 0
    for mark in marks:
        if mark.is_graded:
            total += mark.current_mark
            count += 1
    return total / count if count > 0 else ZERO


def _find_sequence(record, scope):
    term = record.get_term(scope.term)
    if term is None:
        return None
    return term.get_sequence(scope.sequence)


def _aggregate_marks(record, scope):
    if isinstance(scope, SubjectScope):
        sequence = _find_sequence(record, scope)
        subject = sequence.get_subject(scope.subject) if sequence else None
        return subject.current_mark if subject and subject.is_active else ZERO

    if isinstance(scope, SequenceScope):
        sequence = _find_sequence(record, scope)
        return mean_of_graded(sequence.subjects) if sequence else ZERO

    if isinstance(scope, TermScope):
        term = record.get_term(scope.term)
        return mean_of_graded(term.iter_marks()) if term else ZERO

    if isinstance(scope, OverallScope):
        return mean_of_graded(record.iter_marks())

    raise TypeError(f"Unknown scope: {scope!r}")


def _aggregate_absences(record, scope):
    # Absences are not recorded per subject, so a subject scope
    # counts the absences of its sequence.
    if isinstance(scope, (SubjectScope, SequenceScope)):
        sequence = _find_sequence(record, scope)
        return sequence.absences if sequence else 0

    if isinstance(scope, TermScope):
        term = record.get_term(scope.term)
        return sum(s.absences for s in term.sequences) if term else 0

    if isinstance(scope, OverallScope):
        return sum(s.absences for s in record.iter_sequences())

    raise TypeError(f"Unknown scope: {scope!r}")


def aggregate(record, scope, metric=Metric.MARKS):
    """
    Compute a student's value for a scope and metric.

    Args:
        record: AcademicYearRecord
        scope: a scope returned by resolve_scope()
        metric: Metric.MARKS or Metric.ABSENCES

    Returns:
        Decimal average for marks (unrounded), int count for absences
    """
    if metric == Metric.ABSENCES:
        return _aggregate_absences(record, scope)
    return _aggregate_marks(record, scope)


def aggregate_cohort(records, scope, metric=Metric.MARKS):
    """Aggregate every record, keeping the input order."""
    return [
        CohortEntry(student_id=record.student_id, value=aggregate(record, scope, metric))
        for record in records
    ]
