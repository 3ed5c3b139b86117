"""
Grade calculation.

Pure functions turning raw assessment marks into percentages, a blended
final mark and a letter grade. Marks are handled as Decimal so that grade
boundaries are exact (79.999 is a B, not an A).
"""
from collections import namedtuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.db import models

from . import config
from .exceptions import InvalidMarkError

HUNDRED = Decimal('100')


class Grade(models.TextChoices):
    A = 'A', 'A'
    B = 'B', 'B'
    C = 'C', 'C'
    D = 'D', 'D'
    E = 'E', 'E'
    U = 'U', 'U'


# (inclusive lower bound, grade), highest first
GRADE_BOUNDARIES = (
    (Decimal('80'), Grade.A),
    (Decimal('70'), Grade.B),
    (Decimal('60'), Grade.C),
    (Decimal('50'), Grade.D),
    (Decimal('40'), Grade.E),
)

PERFORMANCE_REMARKS = (
    (Decimal('80'), 'Excellent performance! Keep up the outstanding work.'),
    (Decimal('70'), 'Very good performance. Continue working hard.'),
    (Decimal('60'), 'Good performance with room for improvement.'),
    (Decimal('50'), 'Satisfactory performance. More effort required.'),
    (Decimal('40'), 'Below average performance. Needs significant improvement.'),
)
POOR_PERFORMANCE_REMARK = 'Poor performance. Requires immediate attention and support.'


Weights = namedtuple('Weights', ['coursework', 'exam'])


def default_weights():
    """Coursework/exam weights from settings (30/70 unless overridden)."""
    return Weights(
        coursework=to_decimal(config.COURSEWORK_WEIGHT),
        exam=to_decimal(config.EXAM_WEIGHT),
    )


def to_decimal(value):
    """Convert int/float/str/Decimal to Decimal without float artefacts."""
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidMarkError(f"'{value}' is not a number")
    if not value.is_finite():
        raise InvalidMarkError(f"'{value}' is not a finite number")
    return value


def quantize(value):
    """Round a mark to the configured number of decimal places (half-up)."""
    places = Decimal(1).scaleb(-int(config.MARK_DECIMAL_PLACES))
    return value.quantize(places, rounding=ROUND_HALF_UP)


def validate_mark(mark, max_score=HUNDRED):
    """
    Check that 0 <= mark <= max_score and max_score > 0.
    Returns both values as Decimal.
    """
    mark = to_decimal(mark)
    max_score = to_decimal(max_score)
    if max_score <= 0:
        raise InvalidMarkError(f"Maximum score must be positive, got {max_score}")
    if mark < 0 or mark > max_score:
        raise InvalidMarkError(f"Mark {mark} is outside the range 0-{max_score}")
    return mark, max_score


def normalize(score, max_score):
    """Express a raw score as a percentage of max_score (unrounded)."""
    score, max_score = validate_mark(score, max_score)
    return score / max_score * HUNDRED


def grade(mark):
    """Letter grade for a 0-100 mark: A>=80, B>=70, C>=60, D>=50, E>=40, else U."""
    mark, _ = validate_mark(mark)
    for lower_bound, letter in GRADE_BOUNDARIES:
        if mark >= lower_bound:
            return letter
    return Grade.U


def final_mark(coursework_mark=None, exam_mark=None, weights=None):
    """
    Blend coursework and exam marks into a final mark.

    A missing component carries weight zero rather than scoring zero, so
    with only one component present the result equals that component.
    Returns None when neither is present.
    """
    weights = weights or default_weights()
    weighted = []
    if coursework_mark is not None:
        mark, _ = validate_mark(coursework_mark)
        weighted.append((mark, to_decimal(weights.coursework)))
    if exam_mark is not None:
        mark, _ = validate_mark(exam_mark)
        weighted.append((mark, to_decimal(weights.exam)))

    if not weighted:
        return None
    if len(weighted) == 1:
        return quantize(weighted[0][0])

    total_weight = sum(weight for _, weight in weighted)
    if any(weight < 0 for _, weight in weighted) or total_weight <= 0:
        raise ValueError(f"Invalid grade weights: {weights}")
    blended = sum(mark * weight for mark, weight in weighted) / total_weight
    return quantize(blended)


def performance_remark(average):
    """Suggested overall remark for an average mark (advisory text only)."""
    if average is None:
        return ''
    average = to_decimal(average)
    for lower_bound, remark in PERFORMANCE_REMARKS:
        if average >= lower_bound:
            return remark
    return POOR_PERFORMANCE_REMARK
