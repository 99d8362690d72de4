from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from nebresult.core.grades import round_half_up


@dataclass(frozen=True)
class CreditedGradePoint:
    total_credit_hour: float
    grade_point: float


GPAEntry = Union[CreditedGradePoint, Mapping[str, Any]]


def _to_float(value: Any) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_credited(entry: GPAEntry) -> CreditedGradePoint:
    if isinstance(entry, CreditedGradePoint):
        return entry
    return CreditedGradePoint(
        total_credit_hour=_to_float(entry.get("total_credit_hour")),
        grade_point=_to_float(entry.get("grade_point")),
    )


def is_graded(entry: CreditedGradePoint) -> bool:
    """Ungraded or absent subjects (zero grade point) and zero-credit subjects are left out."""
    return entry.total_credit_hour > 0 and entry.grade_point > 0


def calculate_overall_gpa(subjects: Iterable[GPAEntry]) -> str:
    """
    Credit-hour weighted mean of the graded subjects, as a two decimal string.

    Excluded subjects count in neither the weighted sum nor the credit sum.
    """
    weighted = 0.0
    total_credits = 0.0
    for entry in map(_as_credited, subjects):
        if not is_graded(entry):
            continue
        weighted += entry.grade_point * entry.total_credit_hour
        total_credits += entry.total_credit_hour
    if total_credits == 0:
        return "0.00"
    gpa = weighted / total_credits
    if not math.isfinite(gpa):
        return "0.00"
    return str(round_half_up(gpa))
