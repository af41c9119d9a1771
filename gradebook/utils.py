"""
Utility functions for the gradebook app.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError

from . import config

logger = logging.getLogger(__name__)


def validate_mark(value):
    """
    Validate a mark before it is sent to the backend.

    Args:
        value: the new mark as entered (number or numeric string)

    Returns:
        Decimal: the validated mark

    Raises:
        ValidationError: if the mark is not a number within [MIN_MARK, MAX_MARK]
    """
    try:
        mark = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Mark must be a number, got {value!r}.", code='invalid')

    if not mark.is_finite():
        raise ValidationError(f"Mark must be a number, got {value!r}.", code='invalid')

    min_mark, max_mark = config.MIN_MARK, config.MAX_MARK
    if mark < min_mark or mark > max_mark:
        raise ValidationError(
            f"Mark must be between {min_mark} and {max_mark}, got {mark}.",
            code='out_of_range',
        )
    return mark


def get_mark_history(record, term_id, sequence_id, subject_id):
    """
    Return the audit trail of one mark, oldest first.

    Args:
        record: AcademicYearRecord
        term_id, sequence_id, subject_id: identify the mark

    Returns:
        tuple of MarkModification (empty if the mark does not exist)
    """
    term = record.get_term(term_id)
    sequence = term.get_sequence(sequence_id) if term else None
    subject = sequence.get_subject(subject_id) if sequence else None
    if subject is None:
        return ()
    return subject.modifications
