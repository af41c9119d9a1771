"""
Read-only snapshots of a student's academic-year record.

The school backend serves one document per (student, academic year) holding
the term -> sequence -> subject -> mark hierarchy and the fee payments made
for that year. These classes mirror that document; they are frozen and are
never mutated once parsed. Any change to a mark or payment goes through the
backend and comes back as a freshly fetched record.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterator, Optional, Tuple

from django.utils.dateparse import parse_date, parse_datetime


class RecordParseError(ValueError):
    """Raised when a backend document holds a value that cannot be parsed."""


def _ref_id(value):
    """Return the id of a reference that may be a raw id or a populated object."""
    if value is None:
        return ''
    if isinstance(value, dict):
        return str(value.get('_id') or value.get('id') or '')
    return str(value)


def parse_decimal(value, field_name):
    if value is None or value == '':
        return Decimal('0')
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RecordParseError(f"Invalid numeric value for {field_name}: {value!r}")
    # json decoders accept bare NaN/Infinity tokens
    if not result.is_finite():
        raise RecordParseError(f"Invalid numeric value for {field_name}: {value!r}")
    return result


def _to_int(value, field_name):
    if value is None or value == '':
        return 0
    number = parse_decimal(value, field_name)
    if number != number.to_integral_value():
        raise RecordParseError(f"Invalid integer value for {field_name}: {value!r}")
    return int(number)


def _to_date(value, field_name):
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise RecordParseError(f"Invalid date for {field_name}: {value!r}")

    try:
        parsed = parse_datetime(value)
        if parsed:
            return parsed.date()
        parsed = parse_date(value[:10])
    except ValueError:
        parsed = None
    if parsed is None:
        raise RecordParseError(f"Invalid date for {field_name}: {value!r}")
    return parsed


@dataclass(frozen=True)
class MarkModification:
    """One entry of a mark's audit trail."""
    previous_mark: Decimal
    new_mark: Decimal
    modified_by: str = ''
    modified_by_id: str = ''
    modified_on: Optional[date] = None

    @classmethod
    def from_api(cls, data):
        modifier = data.get('modifiedBy') or {}
        return cls(
            previous_mark=parse_decimal(data.get('preMark'), 'preMark'),
            new_mark=parse_decimal(data.get('modMark'), 'modMark'),
            modified_by=modifier.get('name', ''),
            modified_by_id=_ref_id(modifier.get('userId')),
            modified_on=_to_date(data.get('dateModified'), 'dateModified'),
        )


@dataclass(frozen=True)
class SubjectMark:
    subject_id: str
    current_mark: Decimal = Decimal('0')
    # Carried for display; averages are not weighted by it.
    coefficient: Decimal = Decimal('1')
    modifications: Tuple[MarkModification, ...] = ()
    # False when either the subject or its mark has been deactivated
    is_active: bool = True

    @property
    def is_graded(self):
        """
        Whether the mark counts towards averages and checks.

        A zero mark means the subject has not been graded yet; a deactivated
        subject is kept for display only.
        """
        return self.is_active and self.current_mark > 0

    @classmethod
    def from_api(cls, data):
        marks = data.get('marks') or {}
        coefficient = data.get('coefficient')
        return cls(
            subject_id=_ref_id(data.get('subjectInfo')),
            current_mark=parse_decimal(marks.get('currentMark'), 'currentMark'),
            coefficient=parse_decimal(coefficient, 'coefficient') if coefficient else Decimal('1'),
            modifications=tuple(
                MarkModification.from_api(m) for m in marks.get('modified') or []
            ),
            is_active=bool(data.get('isActive', True)) and bool(marks.get('isActive', True)),
        )


@dataclass(frozen=True)
class SequenceRecord:
    sequence_id: str
    absences: int = 0
    subjects: Tuple[SubjectMark, ...] = ()

    def get_subject(self, subject_id) -> Optional[SubjectMark]:
        for subject in self.subjects:
            if subject.subject_id == subject_id:
                return subject
        return None

    @classmethod
    def from_api(cls, data):
        absences = _to_int(data.get('absences'), 'absences')
        if absences < 0:
            raise RecordParseError(f"Absences cannot be negative: {absences}")
        return cls(
            sequence_id=_ref_id(data.get('sequenceInfo')),
            absences=absences,
            subjects=tuple(SubjectMark.from_api(s) for s in data.get('subjects') or []),
        )


@dataclass(frozen=True)
class TermRecord:
    term_id: str
    sequences: Tuple[SequenceRecord, ...] = ()

    def get_sequence(self, sequence_id) -> Optional[SequenceRecord]:
        for sequence in self.sequences:
            if sequence.sequence_id == sequence_id:
                return sequence
        return None

    def iter_marks(self) -> Iterator[SubjectMark]:
        for sequence in self.sequences:
            yield from sequence.subjects

    @classmethod
    def from_api(cls, data):
        return cls(
            term_id=_ref_id(data.get('termInfo')),
            sequences=tuple(SequenceRecord.from_api(s) for s in data.get('sequences') or []),
        )


@dataclass(frozen=True)
class FeePayment:
    bill_id: str
    amount: Decimal
    fee_type: str = ''
    payment_date: Optional[date] = None
    payment_method: str = ''

    @classmethod
    def from_api(cls, data):
        return cls(
            bill_id=str(data.get('billID') or ''),
            amount=parse_decimal(data.get('amount'), 'amount'),
            fee_type=data.get('type') or '',
            payment_date=_to_date(data.get('paymentDate') or data.get('date'), 'paymentDate'),
            payment_method=data.get('paymentMethod') or '',
        )

    def to_api(self):
        """Serialize for the backend's fee endpoints."""
        return {
            'billID': self.bill_id,
            'type': self.fee_type,
            'amount': float(self.amount),
            'paymentDate': self.payment_date.isoformat() if self.payment_date else None,
            'paymentMethod': self.payment_method,
        }


@dataclass(frozen=True)
class AcademicYearRecord:
    """A student's record for one academic year."""
    record_id: str
    student_id: str
    year: str
    class_id: str = ''
    student_name: str = ''
    amount_due: Optional[Decimal] = None
    has_repeated: bool = False
    has_completed: bool = False
    terms: Tuple[TermRecord, ...] = ()
    fees: Tuple[FeePayment, ...] = ()

    @property
    def key(self):
        return (self.student_id, self.year)

    def get_term(self, term_id) -> Optional[TermRecord]:
        for term in self.terms:
            if term.term_id == term_id:
                return term
        return None

    def iter_sequences(self) -> Iterator[SequenceRecord]:
        for term in self.terms:
            yield from term.sequences

    def iter_marks(self) -> Iterator[SubjectMark]:
        for term in self.terms:
            yield from term.iter_marks()

    @classmethod
    def from_api(cls, data):
        """
        Build a record from the backend's academic-year document.

        Args:
            data: dict decoded from the backend JSON. ``student`` and
                ``classes`` may be raw ids or populated objects.

        Returns:
            AcademicYearRecord
        """
        student = data.get('student')
        student_name = ''
        if isinstance(student, dict):
            student_name = ' '.join(
                part for part in (student.get('firstName'), student.get('lastName')) if part
            )

        classes = data.get('classes')
        amount_due = None
        if isinstance(classes, dict) and classes.get('amountFee') is not None:
            amount_due = parse_decimal(classes.get('amountFee'), 'amountFee')

        return cls(
            record_id=_ref_id(data.get('_id')),
            student_id=_ref_id(student),
            year=data.get('year') or '',
            class_id=_ref_id(classes),
            student_name=student_name,
            amount_due=amount_due,
            has_repeated=bool(data.get('hasRepeated', False)),
            has_completed=bool(data.get('hasCompleted', False)),
            terms=tuple(TermRecord.from_api(t) for t in data.get('terms') or []),
            fees=tuple(FeePayment.from_api(f) for f in data.get('fees') or []),
        )
