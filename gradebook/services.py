"""
Gradebook services: the adapter between the backend client and the pure
aggregation, ranking and report code.
"""
import logging

from django.core.exceptions import ValidationError

from core.backend import BackendError
from core.choices import Metric
from . import config
from .aggregation import CohortEntry, aggregate
from .classification import classify
from .ranking import rank, summarize_cohort
from .reports import build_report_card, check_year_completion, find_students_at_risk
from .scope import OverallScope, resolve_metric, resolve_scope
from .tasks import recalculate_averages
from .utils import validate_mark

logger = logging.getLogger(__name__)


def _rank_with_records(records, scope, metric):
    """Rank records and pair every RankedEntry with the record it came from."""
    # Keyed by position: several records may share a student id (or have none)
    cohort = [
        CohortEntry(student_id=position, value=aggregate(record, scope, metric))
        for position, record in enumerate(records)
    ]
    return [(entry, records[entry.student_id]) for entry in rank(cohort, metric)]


def _row(entry, record, metric):
    return {
        'rank': entry.rank,
        'student_id': record.student_id,
        'student_name': record.student_name,
        'record_id': record.record_id,
        'value': entry.value,
        'performance': classify(metric, entry.value),
    }


def rank_records(records, context):
    """
    Rank already-fetched records for a filter context.

    Args:
        records: list of AcademicYearRecord, in the order ties are resolved
        context: mapping with optional term, sequence, subject and metric

    Returns:
        list of dicts ordered by rank: {
            'rank', 'student_id', 'student_name', 'record_id', 'value', 'performance'
        }
    """
    scope = resolve_scope(context)
    metric = resolve_metric(context)
    return [
        _row(entry, record, metric)
        for entry, record in _rank_with_records(list(records), scope, metric)
    ]


def rank_students(client, year, context, class_id=None):
    """Fetch a class's records for a year and rank them for a filter context."""
    records = client.fetch_academic_year_records(year, class_id=class_id)
    logger.info(f"Ranking {len(records)} students for {year} (class={class_id or 'all'})")
    return rank_records(records, context)


def summarize_class(records, top_limit=None):
    """
    Academic overview of a class from its records.

    Returns:
        dict: {
            'total_students': int,
            'class_average': mean of the overall averages, rounded for display,
            'completed_count': students who completed the year,
            'at_risk_count': students at risk,
            'top_performers': the first rows of the overall ranking,
            'performance_distribution': {band label: number of students},
        }
    """
    if top_limit is None:
        top_limit = config.TOP_PERFORMERS_LIMIT

    records = list(records)
    ranked = _rank_with_records(records, OverallScope(), Metric.MARKS)
    summary = summarize_cohort([entry for entry, _ in ranked], Metric.MARKS)

    return {
        'total_students': len(records),
        'class_average': round(summary['mean'], config.REPORT_DECIMAL_PLACES),
        'completed_count': sum(1 for record in records if check_year_completion(record)[0]),
        'at_risk_count': len(find_students_at_risk(records)),
        'top_performers': [
            _row(entry, record, Metric.MARKS) for entry, record in ranked[:top_limit]
        ],
        'performance_distribution': summary['bands'],
    }


def class_academic_overview(client, year, class_id):
    """Fetch a class's records for a year and summarize them."""
    records = client.fetch_academic_year_records(year, class_id=class_id)
    overview = summarize_class(records)
    logger.info(
        f"Academic overview for class {class_id} ({year}): "
        f"{overview['total_students']} students, average {overview['class_average']}, "
        f"{overview['at_risk_count']} at risk"
    )
    return overview


def build_class_report_cards(client, year, class_id):
    """Report card data for every student of a class."""
    records = client.fetch_academic_year_records(year, class_id=class_id)
    logger.info(f"Building {len(records)} report cards for class {class_id} ({year})")
    return [build_report_card(record) for record in records]


def update_mark(client, record_id, term, sequence, subject, new_mark):
    """
    Validate and submit a new mark, then queue the averages recalculation.

    Raises:
        ValidationError: if the mark is outside the allowed range; nothing is sent
        BackendError: if the backend rejects the update
    """
    mark = validate_mark(new_mark)
    client.update_mark(record_id, term, sequence, subject, mark)
    logger.info(
        f"Mark updated for record {record_id} "
        f"(term={term}, sequence={sequence}, subject={subject}): {mark}"
    )
    recalculate_averages.delay(record_id)
    return mark


def update_marks(client, updates):
    """
    Apply several mark updates, carrying on past the ones that fail.

    Args:
        updates: iterable of dicts with 'record_id', 'term', 'sequence',
            'subject' and 'mark'

    Returns:
        dict: {
            'processed': number of marks applied,
            'failed_count': int,
            'failed': list of {'record_id', 'subject', 'error'},
        }

    Raises:
        ValidationError: if there is nothing to update
    """
    updates = list(updates or [])
    if not updates:
        raise ValidationError('At least one mark update is required.', code='required')

    processed = 0
    failed = []

    for update in updates:
        record_id = update.get('record_id')
        try:
            update_mark(
                client,
                record_id,
                update.get('term'),
                update.get('sequence'),
                update.get('subject'),
                update.get('mark'),
            )
            processed += 1
        except ValidationError as e:
            failed.append({'record_id': record_id, 'subject': update.get('subject'),
                           'error': '; '.join(e.messages)})
        except BackendError as e:
            failed.append({'record_id': record_id, 'subject': update.get('subject'),
                           'error': e.message})

    if failed:
        logger.warning(f"Bulk mark update: {processed} applied, {len(failed)} failed")
    else:
        logger.info(f"Bulk mark update: {processed} applied")

    return {'processed': processed, 'failed_count': len(failed), 'failed': failed}
