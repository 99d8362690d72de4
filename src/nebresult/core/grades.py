from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Dict, Optional, Tuple

# Closed lower bounds on the percentage, highest first.
GRADE_POINT_BANDS: Tuple[Tuple[float, float], ...] = (
    (90, 4.0),
    (80, 3.6),
    (70, 3.2),
    (60, 2.8),
    (50, 2.4),
    (40, 2.0),
    (35, 1.6),
)

LETTER_BY_GRADE_POINT: Dict[float, str] = {
    4.0: "A+",
    3.6: "A",
    3.2: "B+",
    2.8: "B",
    2.4: "C+",
    2.0: "C",
    1.6: "D",
}

# Strict lower bounds on a weighted grade point; exactly 1.6 is handled apart.
WEIGHTED_GRADE_BANDS: Tuple[Tuple[float, str], ...] = (
    (3.6, "A+"),
    (3.2, "A"),
    (2.8, "B+"),
    (2.4, "B"),
    (2.0, "C+"),
    (1.6, "C"),
)

NO_GRADE = "NG"


@dataclass(frozen=True)
class GradeResult:
    obtained: float
    full_marks: float
    grade_point: float
    grade: str
    credit_hour: float


@dataclass(frozen=True)
class FinalSubjectResult:
    grade_point: float
    grade: str
    total_credit_hour: float


@dataclass(frozen=True)
class SubjectGrades:
    theory: GradeResult
    practical: GradeResult
    final: FinalSubjectResult


# Digits needed to hold the integer part of the largest finite float.
_FLOAT_INTEGER_DIGITS = 310


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Numbers and numeric strings pass through; anything else, negatives included, becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 0:
        return default
    return number


def round_half_up(value: float, places: int = 2) -> Decimal:
    """Round the exact binary value of ``value``, ties away from zero.

    Non-finite values come back unrounded.
    """
    exact = Decimal(value)
    if not exact.is_finite():
        return exact
    with localcontext() as ctx:
        ctx.prec = _FLOAT_INTEGER_DIGITS + places
        return exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def grade_point_for(obtained: float, full_marks: float) -> float:
    obtained = coerce_number(obtained)
    full_marks = coerce_number(full_marks)
    if not full_marks:
        return 0
    percentage = (obtained / full_marks) * 100
    for lower_bound, grade_point in GRADE_POINT_BANDS:
        if percentage >= lower_bound:
            return grade_point
    return 0


def letter_grade_for(grade_point: float) -> str:
    return LETTER_BY_GRADE_POINT.get(grade_point, NO_GRADE)


def letter_grade_for_weighted(weighted_gp: float) -> str:
    for lower_bound, letter in WEIGHTED_GRADE_BANDS:
        if weighted_gp > lower_bound:
            return letter
    if weighted_gp == 1.6:
        return "D"
    return NO_GRADE


def final_grade_point(
    gp_theory: float,
    gp_practical: float,
    ch_theory: float,
    ch_practical: float,
) -> float:
    gp_theory, gp_practical = coerce_number(gp_theory), coerce_number(gp_practical)
    ch_theory, ch_practical = coerce_number(ch_theory), coerce_number(ch_practical)
    total_credit_hour = ch_theory + ch_practical
    if total_credit_hour == 0:
        return 0
    return (gp_theory * ch_theory + gp_practical * ch_practical) / total_credit_hour


def final_letter_grade(
    gp_theory: float,
    gp_practical: float,
    ch_theory: float,
    ch_practical: float,
) -> str:
    if coerce_number(ch_theory) + coerce_number(ch_practical) == 0:
        return NO_GRADE
    return letter_grade_for_weighted(final_grade_point(gp_theory, gp_practical, ch_theory, ch_practical))


def calculate_subject_grades(
    theory_obtained: Optional[float],
    theory_full_marks: Optional[float],
    practical_obtained: Optional[float],
    practical_full_marks: Optional[float],
    theory_credit_hour: Optional[float],
    practical_credit_hour: Optional[float],
) -> SubjectGrades:
    """
    Grade the theory and practical components of one subject and combine
    them into a credit-hour weighted final grade.

    The component letters use the exact grade point table, the final letter
    uses the range rule on the unrounded weighted grade point. Inputs may be
    numbers, numeric strings or ``None``; anything unusable counts as 0.
    """
    theory_obtained = coerce_number(theory_obtained)
    theory_full_marks = coerce_number(theory_full_marks)
    practical_obtained = coerce_number(practical_obtained)
    practical_full_marks = coerce_number(practical_full_marks)
    theory_credit_hour = coerce_number(theory_credit_hour)
    practical_credit_hour = coerce_number(practical_credit_hour)

    theory_gp = grade_point_for(theory_obtained, theory_full_marks)
    practical_gp = grade_point_for(practical_obtained, practical_full_marks)

    weighted_gp = final_grade_point(theory_gp, practical_gp, theory_credit_hour, practical_credit_hour)
    final_grade = final_letter_grade(theory_gp, practical_gp, theory_credit_hour, practical_credit_hour)

    return SubjectGrades(
        theory=GradeResult(
            obtained=theory_obtained,
            full_marks=theory_full_marks,
            grade_point=theory_gp,
            grade=letter_grade_for(theory_gp),
            credit_hour=theory_credit_hour,
        ),
        practical=GradeResult(
            obtained=practical_obtained,
            full_marks=practical_full_marks,
            grade_point=practical_gp,
            grade=letter_grade_for(practical_gp),
            credit_hour=practical_credit_hour,
        ),
        final=FinalSubjectResult(
            grade_point=float(round_half_up(weighted_gp)),
            grade=final_grade,
            total_credit_hour=theory_credit_hour + practical_credit_hour,
        ),
    )


def grade_details(obtained: float, total: float) -> Tuple[str, float]:
    point = grade_point_for(obtained, total)
    return letter_grade_for(point), point


def combined_subject_grade(
    theory_obtained: Optional[float],
    theory_full_marks: Optional[float],
    practical_obtained: Optional[float],
    practical_full_marks: Optional[float],
) -> Tuple[str, float]:
    """Grade the summed theory and practical marks against the summed full marks."""
    total_obtained = coerce_number(theory_obtained) + coerce_number(practical_obtained)
    total_full = coerce_number(theory_full_marks) + coerce_number(practical_full_marks)
    return grade_details(total_obtained, total_full)
