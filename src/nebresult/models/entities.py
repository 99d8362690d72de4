from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional, Tuple

from nebresult.core.gpa import CreditedGradePoint
from nebresult.core.grades import SubjectGrades, calculate_subject_grades, coerce_number


def _pick(cls, row: Mapping[str, Any]) -> Dict[str, Any]:
    data = dict(row)
    return {f.name: data.get(f.name) for f in fields(cls)}


@dataclass(frozen=True)
class AcademicYear:
    id: int
    year_name: str
    start_date_bs: str
    start_date_ad: str
    end_date_bs: str
    end_date_ad: str
    is_current: bool
    status: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AcademicYear":
        values = _pick(cls, row)
        values["is_current"] = bool(values["is_current"])
        return cls(**values)


@dataclass(frozen=True)
class Student:
    id: int
    first_name: str
    middle_name: Optional[str]
    last_name: str
    registration_no: Optional[str]
    symbol_no: Optional[str]
    gender: Optional[str]
    dob_bs: Optional[str]
    dob_ad: Optional[str]
    parent_name: Optional[str]
    enrollment_year: Optional[str]
    academic_year_id: Optional[int]
    class_level: Optional[int]
    faculty: Optional[str]
    section: Optional[str]
    address: Optional[str]
    contact_no: Optional[str]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Student":
        return cls(**_pick(cls, row))

    @property
    def full_name(self) -> str:
        parts = (self.first_name, self.middle_name, self.last_name)
        return " ".join(p.strip() for p in parts if p and p.strip())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Exam:
    id: int
    exam_name: str
    exam_date: str
    is_final: bool
    academic_year_id: Optional[int]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Exam":
        values = _pick(cls, row)
        values["is_final"] = bool(values["is_final"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Subject:
    id: int
    subject_name: str
    theory_code: Optional[str]
    practical_code: Optional[str]
    theory_full_marks: float
    practical_full_marks: float
    theory_credit_hour: float
    practical_credit_hour: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Subject":
        values = _pick(cls, row)
        for name in ("theory_full_marks", "practical_full_marks", "theory_credit_hour", "practical_credit_hour"):
            values[name] = coerce_number(values[name])
        return cls(**values)


@dataclass(frozen=True)
class SubjectMarkInput:
    theory_obtained: float
    theory_full_marks: float
    practical_obtained: float
    practical_full_marks: float
    theory_credit_hour: float
    practical_credit_hour: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SubjectMarkInput":
        data = dict(row)
        return cls(**{f.name: coerce_number(data.get(f.name)) for f in fields(cls)})

    def grades(self) -> SubjectGrades:
        return calculate_subject_grades(
            self.theory_obtained,
            self.theory_full_marks,
            self.practical_obtained,
            self.practical_full_marks,
            self.theory_credit_hour,
            self.practical_credit_hour,
        )


@dataclass(frozen=True)
class SubjectReportLine:
    subject_id: Optional[int]
    subject_name: str
    theory_code: Optional[str]
    practical_code: Optional[str]
    grades: SubjectGrades

    @property
    def credited(self) -> CreditedGradePoint:
        return CreditedGradePoint(
            total_credit_hour=self.grades.final.total_credit_hour,
            grade_point=self.grades.final.grade_point,
        )

    def to_dict(self) -> Dict[str, Any]:
        theory, practical, final = self.grades.theory, self.grades.practical, self.grades.final
        return {
            "subject_id": self.subject_id,
            "subject_code": self.theory_code,
            "practical_code": self.practical_code,
            "subject_name": self.subject_name,
            "theory_full_marks": theory.full_marks,
            "theory_obtained": theory.obtained,
            "theory_grade_point": theory.grade_point,
            "theory_grade": theory.grade,
            "theory_credit_hour": theory.credit_hour,
            "practical_full_marks": practical.full_marks,
            "practical_obtained": practical.obtained,
            "practical_grade_point": practical.grade_point,
            "practical_grade": practical.grade,
            "practical_credit_hour": practical.credit_hour,
            "total_credit_hour": final.total_credit_hour,
            "final_grade_point": final.grade_point,
            "final_grade": final.grade,
        }


@dataclass(frozen=True)
class StudentReport:
    student: Student
    exam: Optional[Exam]
    subjects: Tuple[SubjectReportLine, ...]
    gpa: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student": self.student.to_dict(),
            "exam": self.exam.to_dict() if self.exam else None,
            "subjects": [line.to_dict() for line in self.subjects],
            "gpa": self.gpa,
        }
