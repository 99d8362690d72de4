from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping

from nebresult.core.grades import coerce_number
from nebresult.models.entities import Subject

VALID_GENDERS = {"male", "female", "other"}
VALID_CLASS_LEVELS = {11, 12}
NAME_MAX_LENGTH = 50

_BS_DATE_PATTERN = re.compile(r"^\d{4}[-/.]\d{1,2}[-/.]\d{1,2}$")
_CONTACT_PATTERN = re.compile(r"^\d{10}$")


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def validate_student(data: Mapping[str, Any], is_update: bool = False) -> ValidationResult:
    """
    Check student fields before insert/update.

    On update only the fields present in ``data`` are checked.
    """
    result = ValidationResult()

    def required(key: str, label: str) -> bool:
        if not is_update and _blank(data.get(key)):
            result.errors.append(f"{label} is required")
            return False
        return not _blank(data.get(key))

    for key, label in (("first_name", "First name"), ("last_name", "Last name")):
        if required(key, label) and len(str(data[key])) > NAME_MAX_LENGTH:
            result.errors.append(f"{label} must be {NAME_MAX_LENGTH} characters or less")

    if not _blank(data.get("middle_name")) and len(str(data["middle_name"])) > NAME_MAX_LENGTH:
        result.errors.append(f"Middle name must be {NAME_MAX_LENGTH} characters or less")

    required("registration_no", "Registration number")

    if required("gender", "Gender") and str(data["gender"]).lower() not in VALID_GENDERS:
        result.errors.append("Gender must be 'male', 'female', or 'other'")

    if required("dob_bs", "Date of birth (BS)") and not _BS_DATE_PATTERN.match(str(data["dob_bs"])):
        result.errors.append("Date of birth must be in format YYYY/MM/DD or YYYY-MM-DD")

    if required("class_level", "Class level"):
        try:
            level = int(data["class_level"])
        except (TypeError, ValueError):
            level = None
        if level not in VALID_CLASS_LEVELS:
            result.errors.append("Class level must be 11 or 12")

    required("faculty", "Faculty")

    contact = data.get("contact_no")
    if not _blank(contact) and not _CONTACT_PATTERN.match(re.sub(r"\D", "", str(contact))):
        result.errors.append("Contact number must be 10 digits")

    return result


def validate_mark_entry(entry: Mapping[str, Any], subject: Subject) -> List[str]:
    """Bounds-check one student's theory and practical marks against the subject's full marks."""
    errors = []
    student_id = entry.get("student_id")
    if coerce_number(entry.get("theory")) > subject.theory_full_marks:
        errors.append(
            f"Theory marks for student {student_id} exceed limit ({subject.theory_full_marks:g})"
        )
    if coerce_number(entry.get("practical")) > subject.practical_full_marks:
        errors.append(
            f"Practical marks for student {student_id} exceed limit ({subject.practical_full_marks:g})"
        )
    return errors
