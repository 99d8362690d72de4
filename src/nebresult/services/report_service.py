from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from nebresult.config.logger import get_logger
from nebresult.core.gpa import calculate_overall_gpa
from nebresult.models.entities import Exam, Student, StudentReport, SubjectMarkInput, SubjectReportLine
from nebresult.services.storage import Storage

logger = get_logger("report_service")


class ReportServiceError(Exception):
    pass


def build_report_line(row: Mapping[str, Any]) -> SubjectReportLine:
    data = dict(row)
    return SubjectReportLine(
        subject_id=data.get("subject_id"),
        subject_name=data.get("subject_name") or "",
        theory_code=data.get("theory_code"),
        practical_code=data.get("practical_code"),
        grades=SubjectMarkInput.from_row(data).grades(),
    )


def assemble_report(
    student: Student,
    exam: Optional[Exam],
    rows: Iterable[Mapping[str, Any]],
) -> StudentReport:
    """
    Grade every subject row of one student and fold them into an overall GPA.

    ``rows`` come straight from persistence; numeric fields may be strings or
    missing and are coerced once when each row becomes a ``SubjectMarkInput``.
    """
    lines = tuple(build_report_line(row) for row in rows)
    gpa = calculate_overall_gpa(line.credited for line in lines)
    return StudentReport(student=student, exam=exam, subjects=lines, gpa=gpa)


class ReportService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def _require_exam(self, exam_id: int) -> Exam:
        exam = self.storage.get_exam(exam_id)
        if exam is None:
            raise ReportServiceError("Exam not found")
        return exam

    def student_gradesheet(self, student_id: int, exam_id: int) -> StudentReport:
        student = self.storage.get_student(student_id)
        if student is None:
            raise ReportServiceError("Student not found")
        exam = self._require_exam(exam_id)
        return assemble_report(student, exam, self.storage.subject_rows(student_id, exam_id))

    def class_gradesheets(
        self,
        class_level: int,
        exam_id: int,
        faculty: Optional[str] = None,
        year: Optional[str] = None,
    ) -> List[StudentReport]:
        exam = self._require_exam(exam_id)
        reports = []
        for student_id in self.storage.list_student_ids(class_level, faculty=faculty, year=year):
            student = self.storage.get_student(student_id)
            reports.append(assemble_report(student, exam, self.storage.subject_rows(student_id, exam_id)))
        logger.info(
            "Generated %d gradesheets for class %s exam %s (faculty=%s, year=%s)",
            len(reports),
            class_level,
            exam_id,
            faculty or "All",
            year or "any",
        )
        return reports
