"""
Cohort ranking.

Students are sorted by their aggregated value (highest average first, fewest
absences first) and numbered 1..N in that order. Equal values do not share a
position: the sort is stable, so tied students keep the order they were
given in and receive consecutive ranks.
"""
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from core.choices import Metric
from .classification import classify


@dataclass(frozen=True)
class RankedEntry:
    student_id: str
    value: Union[Decimal, int]
    rank: int


def _entry_fields(entry):
    if isinstance(entry, dict):
        student_id = entry.get('student_id', entry.get('studentId'))
        return student_id, entry.get('value', 0)
    return entry.student_id, entry.value


def rank(cohort, metric=Metric.MARKS):
    """
    Rank a cohort by value.

    Args:
        cohort: iterable of CohortEntry (or dicts with student_id/studentId
            and value), in the order ties should be resolved
        metric: Metric.MARKS sorts descending, Metric.ABSENCES ascending

    Returns:
        list of RankedEntry ordered by rank
    """
    entries = [_entry_fields(entry) for entry in cohort]
    entries.sort(key=lambda e: e[1], reverse=(metric != Metric.ABSENCES))

    return [
        RankedEntry(student_id=student_id, value=value, rank=position)
        for position, (student_id, value) in enumerate(entries, 1)
    ]


def summarize_cohort(ranked, metric=Metric.MARKS):
    """
    Headline figures for a ranked cohort.

    Returns:
        dict: {
            'count': int,
            'best': value of rank 1 or None,
            'worst': value of the last rank or None,
            'mean': mean value over the cohort (0 when empty),
            'bands': {band label: number of students},
        }
    """
    ranked = list(ranked)
    if not ranked:
        return {'count': 0, 'best': None, 'worst': None, 'mean': Decimal('0'), 'bands': {}}

    values = [Decimal(str(entry.value)) for entry in ranked]
    bands = Counter(classify(metric, entry.value).label for entry in ranked)

    return {
        'count': len(ranked),
        'best': ranked[0].value,
        'worst': ranked[-1].value,
        'mean': sum(values) / len(values),
        'bands': dict(bands),
    }
