"""
Qualitative performance bands.

Thresholds are fixed for every school: marks are out of 20 (higher is
better), absences are a count (lower is better).
"""
from dataclasses import dataclass
from decimal import Decimal

from core.choices import Metric


@dataclass(frozen=True)
class PerformanceBand:
    label: str
    severity: str


EXCELLENT = PerformanceBand('Excellent', 'success')
VERY_GOOD = PerformanceBand('Very Good', 'info')
GOOD = PerformanceBand('Good', 'warning')
AVERAGE = PerformanceBand('Average', 'caution')
NEEDS_IMPROVEMENT = PerformanceBand('Needs Improvement', 'danger')

PERFECT = PerformanceBand('Perfect', 'success')
ACCEPTABLE = PerformanceBand('Acceptable', 'caution')
CONCERNING = PerformanceBand('Concerning', 'danger')

# (minimum average, band), best first
MARK_BANDS = [
    (Decimal('16'), EXCELLENT),
    (Decimal('14'), VERY_GOOD),
    (Decimal('12'), GOOD),
    (Decimal('10'), AVERAGE),
]

# (maximum absences, band), best first
ABSENCE_BANDS = [
    (0, PERFECT),
    (2, VERY_GOOD),
    (5, GOOD),
    (10, ACCEPTABLE),
]

# (minimum mark, appreciation) for a single subject on a report card
APPRECIATIONS = [
    (Decimal('16'), 'Excellent'),
    (Decimal('14'), 'Very Good'),
    (Decimal('12'), 'Good'),
    (Decimal('10'), 'Fairly Good'),
    (Decimal('8'), 'Passable'),
]


def _as_decimal(value):
    return value if isinstance(value, Decimal) else Decimal(str(value))


def classify(metric, value):
    """
    Map an average or absence count to its performance band.

    Args:
        metric: Metric.MARKS or Metric.ABSENCES
        value: number computed by aggregate()

    Returns:
        PerformanceBand
    """
    value = _as_decimal(value)

    if metric == Metric.ABSENCES:
        for max_absences, band in ABSENCE_BANDS:
            if value <= max_absences:
                return band
        return CONCERNING

    for min_average, band in MARK_BANDS:
        if value >= min_average:
            return band
    return NEEDS_IMPROVEMENT


def appreciate(mark):
    """Report-card remark for a single subject mark."""
    mark = _as_decimal(mark)
    for min_mark, label in APPRECIATIONS:
        if mark >= min_mark:
            return label
    return 'Weak'
