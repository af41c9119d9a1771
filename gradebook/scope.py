"""
Scope resolution for rankings and report views.

A filter context (term, sequence, subject; each optional) selects the
granularity an average or absence count is computed at. The resolver turns
it into one of four scope types once, and everything downstream dispatches
on the type instead of re-checking which filters happen to be set.
"""
from dataclasses import dataclass

from core.choices import Metric

# The ranking view passes this in place of a subject id to switch to absences.
ABSENCES_SUBJECT = 'absences'


@dataclass(frozen=True)
class OverallScope:
    """The whole academic year."""


@dataclass(frozen=True)
class TermScope:
    term: str


@dataclass(frozen=True)
class SequenceScope:
    term: str
    sequence: str


@dataclass(frozen=True)
class SubjectScope:
    term: str
    sequence: str
    subject: str


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_scope(context):
    """
    Resolve the aggregation scope for a filter context.

    Missing or inconsistent filters fall back to the nearest enclosing scope
    instead of raising: a subject without a sequence is ranked at term level,
    and anything without a term is ranked over the whole year.

    Args:
        context: mapping with optional 'term', 'sequence' and 'subject' keys

    Returns:
        SubjectScope, SequenceScope, TermScope or OverallScope
    """
    context = context or {}
    term = _clean(context.get('term'))
    sequence = _clean(context.get('sequence'))
    subject = _clean(context.get('subject'))

    if subject == ABSENCES_SUBJECT:
        subject = None

    if term and sequence and subject:
        return SubjectScope(term=term, sequence=sequence, subject=subject)
    if term and sequence:
        return SequenceScope(term=term, sequence=sequence)
    if term:
        return TermScope(term=term)
    return OverallScope()


def resolve_metric(context, default=Metric.MARKS):
    """
    Pick the metric for a filter context.

    An explicit 'metric' key wins; otherwise the absences subject sentinel
    selects absences.
    """
    context = context or {}
    explicit = _clean(context.get('metric'))
    if explicit:
        explicit = explicit.upper()
        if explicit in Metric.values:
            return Metric(explicit)
    if _clean(context.get('subject')) == ABSENCES_SUBJECT:
        return Metric.ABSENCES
    return default


_MARKS_CAPTIONS = {
    SubjectScope: 'Ranked by mark in the selected subject',
    SequenceScope: 'Ranked by average in the selected sequence',
    TermScope: 'Ranked by average in the selected term',
    OverallScope: 'Ranked by overall average',
}

_ABSENCES_CAPTIONS = {
    SubjectScope: 'Ranked by absences in the selected sequence',
    SequenceScope: 'Ranked by absences in the selected sequence',
    TermScope: 'Ranked by total absences in the selected term',
    OverallScope: 'Ranked by total absences',
}


def describe_scope(scope, metric):
    """Short caption explaining what a ranking is based on."""
    captions = _ABSENCES_CAPTIONS if metric == Metric.ABSENCES else _MARKS_CAPTIONS
    return captions[type(scope)]
