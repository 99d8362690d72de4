from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from nebresult.config.logger import get_logger
from nebresult.config.settings import settings
from nebresult.core.grades import coerce_number, combined_subject_grade
from nebresult.models.entities import AcademicYear, Exam, Student, Subject
from nebresult.utils.date_converter import convert_bs_to_ad
from nebresult.utils.validators import validate_mark_entry, validate_student

logger = get_logger("storage")

YEAR_STATUSES = ("upcoming", "active", "completed")
ATTENDANCE_STATUSES = ("Present", "Absent", "Late", "Leave")

STUDENT_COLUMNS = (
    "first_name",
    "middle_name",
    "last_name",
    "registration_no",
    "symbol_no",
    "gender",
    "dob_bs",
    "dob_ad",
    "parent_name",
    "enrollment_year",
    "academic_year_id",
    "class_level",
    "faculty",
    "section",
    "address",
    "contact_no",
)

SUBJECT_COLUMNS = (
    "subject_name",
    "theory_code",
    "practical_code",
    "theory_full_marks",
    "practical_full_marks",
    "theory_credit_hour",
    "practical_credit_hour",
)

EXAM_COLUMNS = ("exam_name", "exam_date", "is_final", "academic_year_id")


class StorageError(Exception):
    pass


class Storage:
    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or settings.db_path
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.executescript(
            """
            CREATE TABLE IF NOT EXISTS academic_years (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              year_name TEXT UNIQUE NOT NULL,
              start_date_bs TEXT NOT NULL,
              start_date_ad TEXT NOT NULL,
              end_date_bs TEXT NOT NULL,
              end_date_ad TEXT NOT NULL,
              is_current INTEGER NOT NULL DEFAULT 0,
              status TEXT NOT NULL DEFAULT 'upcoming'
                CHECK (status IN ('upcoming', 'active', 'completed'))
            );

            CREATE TABLE IF NOT EXISTS students (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              first_name TEXT NOT NULL,
              middle_name TEXT,
              last_name TEXT NOT NULL,
              registration_no TEXT,
              symbol_no TEXT,
              gender TEXT,
              dob_bs TEXT,
              dob_ad TEXT,
              parent_name TEXT,
              enrollment_year TEXT NOT NULL,
              academic_year_id INTEGER,
              class_level INTEGER,
              faculty TEXT,
              section TEXT,
              address TEXT,
              contact_no TEXT,
              FOREIGN KEY(academic_year_id) REFERENCES academic_years(id)
            );

            CREATE TABLE IF NOT EXISTS subjects (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              subject_name TEXT NOT NULL,
              theory_code TEXT,
              practical_code TEXT,
              theory_full_marks REAL NOT NULL DEFAULT 0,
              practical_full_marks REAL NOT NULL DEFAULT 0,
              theory_credit_hour REAL NOT NULL DEFAULT 0,
              practical_credit_hour REAL NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS student_subjects (
              student_id INTEGER NOT NULL,
              subject_id INTEGER NOT NULL,
              academic_year TEXT,
              PRIMARY KEY(student_id, subject_id),
              FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE,
              FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS exams (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              exam_name TEXT NOT NULL,
              exam_date TEXT NOT NULL,
              is_final INTEGER NOT NULL DEFAULT 0,
              academic_year_id INTEGER,
              FOREIGN KEY(academic_year_id) REFERENCES academic_years(id)
            );

            CREATE TABLE IF NOT EXISTS marks (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              exam_id INTEGER NOT NULL,
              student_id INTEGER NOT NULL,
              subject_id INTEGER NOT NULL,
              theory_obtained REAL,
              practical_obtained REAL,
              grade_point REAL,
              final_grade TEXT,
              updated_at TEXT NOT NULL,
              UNIQUE(exam_id, student_id, subject_id),
              FOREIGN KEY(exam_id) REFERENCES exams(id) ON DELETE CASCADE,
              FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE,
              FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS attendance (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              student_id INTEGER NOT NULL,
              date TEXT NOT NULL,
              status TEXT NOT NULL
                CHECK (status IN ('Present', 'Absent', 'Late', 'Leave')),
              UNIQUE(student_id, date),
              FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
            );
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def _count(self, table: str, column: str, value: Any) -> int:
        row = self.conn.execute(f"SELECT COUNT(*) AS total FROM {table} WHERE {column}=?", (value,)).fetchone()
        return int(row["total"])

    def _update_row(self, table: str, row_id: int, values: Mapping[str, Any]) -> None:
        assignments = ", ".join(f"{col}=?" for col in values)
        self.conn.execute(f"UPDATE {table} SET {assignments} WHERE id=?", (*values.values(), row_id))

    # Academic years

    def add_academic_year(
        self,
        year_name: str,
        start_date_bs: str,
        end_date_bs: str,
        is_current: bool = False,
        status: str = "upcoming",
    ) -> int:
        if not year_name or not start_date_bs or not end_date_bs:
            raise StorageError("Year name, start date, and end date are required")
        if status not in YEAR_STATUSES:
            raise StorageError(f"Invalid status: {status}")

        start_date_ad = convert_bs_to_ad(start_date_bs)
        end_date_ad = convert_bs_to_ad(end_date_bs)
        if not start_date_ad or not end_date_ad:
            raise StorageError("Invalid BS date format")

        try:
            with self.conn:
                if is_current:
                    self.conn.execute("UPDATE academic_years SET is_current=0 WHERE is_current=1")
                cur = self.conn.execute(
                    """INSERT INTO academic_years
                       (year_name, start_date_bs, start_date_ad, end_date_bs, end_date_ad, is_current, status)
                       VALUES(?,?,?,?,?,?,?)""",
                    (year_name, start_date_bs, start_date_ad, end_date_bs, end_date_ad, int(bool(is_current)), status),
                )
        except sqlite3.IntegrityError as exc:
            raise StorageError("Academic year with this name already exists") from exc
        return int(cur.lastrowid)

    def set_current_academic_year(self, year_id: int) -> AcademicYear:
        """Flag one academic year as current and clear the flag everywhere else, atomically."""
        with self.conn:
            self.conn.execute("UPDATE academic_years SET is_current=0 WHERE id<>?", (year_id,))
            cur = self.conn.execute("UPDATE academic_years SET is_current=1 WHERE id=?", (year_id,))
            if cur.rowcount == 0:
                raise StorageError("Academic year not found")
        logger.info("Academic year %s set as current", year_id)
        return self.get_academic_year(year_id)

    def get_academic_year(self, year_id: int) -> Optional[AcademicYear]:
        row = self.conn.execute("SELECT * FROM academic_years WHERE id=?", (year_id,)).fetchone()
        return AcademicYear.from_row(row) if row else None

    def get_current_academic_year(self) -> Optional[AcademicYear]:
        row = self.conn.execute("SELECT * FROM academic_years WHERE is_current=1 LIMIT 1").fetchone()
        return AcademicYear.from_row(row) if row else None

    def list_academic_years(self, status: Optional[str] = None) -> List[AcademicYear]:
        query = "SELECT * FROM academic_years"
        params: tuple = ()
        if status:
            query += " WHERE status=?"
            params = (status,)
        query += " ORDER BY start_date_ad DESC"
        return [AcademicYear.from_row(row) for row in self.conn.execute(query, params)]

    def update_academic_year(self, year_id: int, data: Mapping[str, Any]) -> AcademicYear:
        if self.get_academic_year(year_id) is None:
            raise StorageError("Academic year not found")

        values: Dict[str, Any] = {}
        if "year_name" in data:
            if not data["year_name"]:
                raise StorageError("Year name cannot be empty")
            values["year_name"] = data["year_name"]
        for side in ("start", "end"):
            key = f"{side}_date_bs"
            if key in data:
                converted = convert_bs_to_ad(str(data[key] or ""))
                if not converted:
                    raise StorageError(f"Invalid {side} date BS format")
                values[key] = data[key]
                values[f"{side}_date_ad"] = converted
        if "status" in data:
            if data["status"] not in YEAR_STATUSES:
                raise StorageError(f"Invalid status: {data['status']}")
            values["status"] = data["status"]
        if "is_current" in data:
            values["is_current"] = int(bool(data["is_current"]))
        if not values:
            raise StorageError("No fields to update")

        try:
            with self.conn:
                if values.get("is_current"):
                    self.conn.execute("UPDATE academic_years SET is_current=0 WHERE id<>?", (year_id,))
                self._update_row("academic_years", year_id, values)
        except sqlite3.IntegrityError as exc:
            raise StorageError("Academic year with this name already exists") from exc
        return self.get_academic_year(year_id)

    def delete_academic_year(self, year_id: int) -> None:
        """Delete a year that is neither current nor referenced by students or exams."""
        year = self.get_academic_year(year_id)
        if year is None:
            raise StorageError("Academic year not found")
        if year.is_current:
            raise StorageError("Cannot delete the current academic year")

        with self.conn:
            students = self._count("students", "academic_year_id", year_id)
            if students:
                raise StorageError(f"Cannot delete: {students} students are enrolled in this academic year")
            exams = self._count("exams", "academic_year_id", year_id)
            if exams:
                raise StorageError(f"Cannot delete: {exams} exams exist in this academic year")
            self.conn.execute("DELETE FROM academic_years WHERE id=?", (year_id,))
        logger.info("Academic year deleted: %s", year.year_name)

    # Students and subjects

    def add_student(self, data: Mapping[str, Any], subject_ids: Iterable[int] = ()) -> int:
        result = validate_student(data)
        if not result.is_valid:
            raise StorageError("; ".join(result.errors))
        if not data.get("enrollment_year"):
            raise StorageError("Enrollment year is required")

        values: Dict[str, Any] = {col: data.get(col) or None for col in STUDENT_COLUMNS}
        values["class_level"] = int(data["class_level"])

        values["dob_ad"] = convert_bs_to_ad(str(data["dob_bs"]))
        if not values["dob_ad"]:
            raise StorageError("Invalid BS Date")

        if not values["academic_year_id"]:
            current = self.get_current_academic_year()
            if current is None:
                raise StorageError(
                    "No current academic year found. Please set one in Academic Years settings."
                )
            values["academic_year_id"] = current.id

        placeholders = ",".join("?" for _ in STUDENT_COLUMNS)
        with self.conn:
            cur = self.conn.execute(
                f"INSERT INTO students({','.join(STUDENT_COLUMNS)}) VALUES({placeholders})",
                tuple(values[col] for col in STUDENT_COLUMNS),
            )
            student_id = int(cur.lastrowid)
            self._enrol(student_id, subject_ids, values["enrollment_year"])
        return student_id

    def _enrol(self, student_id: int, subject_ids: Iterable[int], enrollment_year: Optional[str]) -> None:
        self.conn.executemany(
            "INSERT OR IGNORE INTO student_subjects(student_id, subject_id, academic_year) VALUES(?,?,?)",
            [(student_id, int(subject_id), enrollment_year) for subject_id in subject_ids],
        )

    def update_student(
        self,
        student_id: int,
        data: Mapping[str, Any],
        subject_ids: Optional[Iterable[int]] = None,
    ) -> Student:
        """
        Update the student fields present in ``data``; absent keys keep their
        stored value. A given ``subject_ids`` replaces the whole enrolment in
        the same transaction.
        """
        current = self.get_student(student_id)
        if current is None:
            raise StorageError("Student not found")
        result = validate_student(data, is_update=True)
        if not result.is_valid:
            raise StorageError("; ".join(result.errors))

        values: Dict[str, Any] = {
            col: data.get(col) or None for col in STUDENT_COLUMNS if col in data and col != "dob_ad"
        }
        if "dob_bs" in values:
            values["dob_ad"] = None
            if values["dob_bs"]:
                values["dob_ad"] = convert_bs_to_ad(str(values["dob_bs"]))
                if not values["dob_ad"]:
                    raise StorageError("Invalid BS Date format")
        if values.get("class_level") is not None:
            values["class_level"] = int(values["class_level"])
        # An empty academic year keeps the stored one.
        if "academic_year_id" in values and values["academic_year_id"] is None:
            del values["academic_year_id"]
        if not values and subject_ids is None:
            raise StorageError("No fields to update")

        try:
            with self.conn:
                if values:
                    self._update_row("students", student_id, values)
                if subject_ids is not None:
                    self.conn.execute("DELETE FROM student_subjects WHERE student_id=?", (student_id,))
                    self._enrol(student_id, subject_ids, values.get("enrollment_year") or current.enrollment_year)
        except sqlite3.IntegrityError as exc:
            raise StorageError(f"Invalid student data: {exc}") from exc
        logger.info("Student %s updated", student_id)
        return self.get_student(student_id)

    def delete_student(self, student_id: int) -> None:
        """Delete a student; enrolments, marks and attendance go with it."""
        with self.conn:
            cur = self.conn.execute("DELETE FROM students WHERE id=?", (student_id,))
        if cur.rowcount == 0:
            raise StorageError("Student not found")
        logger.info("Student %s deleted", student_id)

    def enrolled_subject_ids(self, student_id: int) -> List[int]:
        cur = self.conn.execute(
            "SELECT subject_id FROM student_subjects WHERE student_id=? ORDER BY subject_id", (student_id,)
        )
        return [int(row["subject_id"]) for row in cur.fetchall()]

    def get_student(self, student_id: int) -> Optional[Student]:
        row = self.conn.execute("SELECT * FROM students WHERE id=?", (student_id,)).fetchone()
        return Student.from_row(row) if row else None

    def list_student_ids(
        self,
        class_level: int,
        faculty: Optional[str] = None,
        year: Optional[str] = None,
    ) -> List[int]:
        query = "SELECT id FROM students WHERE class_level=?"
        params: list = [class_level]
        if faculty and faculty != "All":
            query += " AND faculty=?"
            params.append(faculty)
        if year:
            query += " AND enrollment_year=?"
            params.append(str(year))
        query += " ORDER BY registration_no ASC"
        return [int(row["id"]) for row in self.conn.execute(query, params)]

    def add_subject(
        self,
        subject_name: str,
        theory_full_marks: float,
        practical_full_marks: float,
        theory_credit_hour: float,
        practical_credit_hour: float,
        theory_code: Optional[str] = None,
        practical_code: Optional[str] = None,
    ) -> int:
        with self.conn:
            cur = self.conn.execute(
                """INSERT INTO subjects(subject_name, theory_code, practical_code, theory_full_marks,
                       practical_full_marks, theory_credit_hour, practical_credit_hour)
                   VALUES(?,?,?,?,?,?,?)""",
                (
                    subject_name,
                    theory_code,
                    practical_code,
                    theory_full_marks,
                    practical_full_marks,
                    theory_credit_hour,
                    practical_credit_hour,
                ),
            )
        return int(cur.lastrowid)

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        row = self.conn.execute("SELECT * FROM subjects WHERE id=?", (subject_id,)).fetchone()
        return Subject.from_row(row) if row else None

    def update_subject(self, subject_id: int, data: Mapping[str, Any]) -> Subject:
        if self.get_subject(subject_id) is None:
            raise StorageError("Subject not found")
        values = {col: data[col] for col in SUBJECT_COLUMNS if col in data}
        if not values:
            raise StorageError("No fields to update")
        if "subject_name" in values and not values["subject_name"]:
            raise StorageError("Subject name cannot be empty")
        for col in ("theory_full_marks", "practical_full_marks", "theory_credit_hour", "practical_credit_hour"):
            if col in values:
                values[col] = coerce_number(values[col])
        with self.conn:
            self._update_row("subjects", subject_id, values)
        return self.get_subject(subject_id)

    def delete_subject(self, subject_id: int) -> None:
        if self.get_subject(subject_id) is None:
            raise StorageError("Subject not found")
        with self.conn:
            if self._count("student_subjects", "subject_id", subject_id) or self._count("marks", "subject_id", subject_id):
                raise StorageError("Cannot delete: Students are already enrolled or have marks in this subject.")
            self.conn.execute("DELETE FROM subjects WHERE id=?", (subject_id,))

    # Exams and marks

    def add_exam(
        self,
        exam_name: str,
        exam_date: str,
        is_final: bool = False,
        academic_year_id: Optional[int] = None,
    ) -> int:
        if not exam_name or not exam_date:
            raise StorageError("Exam name and date are required")
        if academic_year_id is None:
            current = self.get_current_academic_year()
            if current is None:
                raise StorageError("No current academic year found")
            academic_year_id = current.id
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO exams(exam_name, exam_date, is_final, academic_year_id) VALUES(?,?,?,?)",
                (exam_name, exam_date, int(bool(is_final)), academic_year_id),
            )
        return int(cur.lastrowid)

    def get_exam(self, exam_id: int) -> Optional[Exam]:
        row = self.conn.execute("SELECT * FROM exams WHERE id=?", (exam_id,)).fetchone()
        return Exam.from_row(row) if row else None

    def update_exam(self, exam_id: int, data: Mapping[str, Any]) -> Exam:
        if self.get_exam(exam_id) is None:
            raise StorageError("Exam not found")
        values = {col: data[col] for col in EXAM_COLUMNS if col in data}
        if not values:
            raise StorageError("No fields to update")
        if any(col in values and not values[col] for col in ("exam_name", "exam_date")):
            raise StorageError("Exam name and date cannot be empty")
        if "is_final" in values:
            values["is_final"] = int(bool(values["is_final"]))
        try:
            with self.conn:
                self._update_row("exams", exam_id, values)
        except sqlite3.IntegrityError as exc:
            raise StorageError("Academic year not found") from exc
        logger.info("Exam updated: %s", exam_id)
        return self.get_exam(exam_id)

    def delete_exam(self, exam_id: int) -> None:
        """Delete an exam that has no marks entered against it."""
        exam = self.get_exam(exam_id)
        if exam is None:
            raise StorageError("Exam not found")
        with self.conn:
            marks = self._count("marks", "exam_id", exam_id)
            if marks:
                raise StorageError(f"Cannot delete: {marks} marks entries exist for this exam")
            self.conn.execute("DELETE FROM exams WHERE id=?", (exam_id,))
        logger.info("Exam deleted: %s", exam.exam_name)

    def enter_bulk_marks(self, exam_id: int, subject_id: int, marks_data: Iterable[Mapping[str, Any]]) -> int:
        """
        Upsert theory/practical marks for many students of one subject.

        All rows are written in one transaction; any row over the subject's
        full marks aborts the whole batch.
        """
        subject = self.get_subject(subject_id)
        if subject is None:
            raise StorageError("Subject not found")

        now = datetime.now(timezone.utc).isoformat()
        saved = 0
        try:
            with self.conn:
                for entry in marks_data:
                    errors = validate_mark_entry(entry, subject)
                    if errors:
                        raise StorageError(errors[0])

                    theory = coerce_number(entry.get("theory"))
                    practical = coerce_number(entry.get("practical"))
                    grade, point = combined_subject_grade(
                        theory, subject.theory_full_marks, practical, subject.practical_full_marks
                    )
                    self.conn.execute(
                        """INSERT INTO marks(exam_id, student_id, subject_id, theory_obtained, practical_obtained,
                               grade_point, final_grade, updated_at)
                           VALUES(?,?,?,?,?,?,?,?)
                           ON CONFLICT(exam_id, student_id, subject_id) DO UPDATE SET
                               theory_obtained=excluded.theory_obtained,
                               practical_obtained=excluded.practical_obtained,
                               grade_point=excluded.grade_point,
                               final_grade=excluded.final_grade,
                               updated_at=excluded.updated_at""",
                        (exam_id, entry.get("student_id"), subject_id, theory, practical, point, grade, now),
                    )
                    saved += 1
        except sqlite3.IntegrityError as exc:
            raise StorageError(f"Invalid marks entry: {exc}") from exc
        logger.info("Saved %d mark rows for exam %s subject %s", saved, exam_id, subject_id)
        return saved

    def get_marks(self, exam_id: int, subject_id: int) -> List[Dict[str, Any]]:
        cur = self.conn.execute(
            """SELECT student_id, theory_obtained, practical_obtained
               FROM marks WHERE exam_id=? AND subject_id=?
               ORDER BY student_id""",
            (exam_id, subject_id),
        )
        return [dict(row) for row in cur.fetchall()]

    def subject_rows(self, student_id: int, exam_id: int) -> List[sqlite3.Row]:
        """Every subject the student is enrolled in, with that exam's marks when present."""
        cur = self.conn.execute(
            """SELECT s.id AS subject_id, s.subject_name, s.theory_code, s.practical_code,
                      s.theory_full_marks, s.practical_full_marks,
                      s.theory_credit_hour, s.practical_credit_hour,
                      m.theory_obtained, m.practical_obtained
               FROM student_subjects ss
               JOIN subjects s ON ss.subject_id=s.id
               LEFT JOIN marks m ON s.id=m.subject_id AND m.student_id=? AND m.exam_id=?
               WHERE ss.student_id=?
               ORDER BY s.subject_name""",
            (student_id, exam_id, student_id),
        )
        return list(cur.fetchall())

    # Attendance

    def save_attendance(self, date: str, attendance_data: Iterable[Mapping[str, Any]]) -> int:
        """
        Upsert one day's attendance for many students.

        One transaction per call: an unknown student or status aborts every row.
        """
        entries = list(attendance_data or ())
        if not date or not entries:
            raise StorageError("Invalid data provided")
        try:
            with self.conn:
                for entry in entries:
                    status = entry.get("status")
                    if status not in ATTENDANCE_STATUSES:
                        raise StorageError(f"Invalid attendance status for student {entry.get('student_id')}: {status}")
                    self.conn.execute(
                        """INSERT INTO attendance(student_id, date, status) VALUES(?,?,?)
                           ON CONFLICT(student_id, date) DO UPDATE SET status=excluded.status""",
                        (entry.get("student_id"), date, status),
                    )
        except sqlite3.IntegrityError as exc:
            raise StorageError(f"Invalid attendance entry: {exc}") from exc
        logger.info("Saved attendance for %d students on %s", len(entries), date)
        return len(entries)

    def get_attendance(self, date: str, class_level: int, faculty: str) -> List[Dict[str, Any]]:
        """Every student of the class with that day's status, ``None`` where none was taken."""
        if not date or not class_level or not faculty:
            raise StorageError("Date, Class, and Faculty are required")
        cur = self.conn.execute(
            """SELECT s.id AS student_id, s.first_name, s.last_name, s.registration_no, a.status
               FROM students s
               LEFT JOIN attendance a ON s.id=a.student_id AND a.date=?
               WHERE s.class_level=? AND s.faculty=?
               ORDER BY s.first_name ASC""",
            (date, int(class_level), faculty),
        )
        return [dict(row) for row in cur.fetchall()]
