"""Exam input validation, run before a schedule is generated."""
from study_quest.models import Exam, Subject

MAX_SUBJECTS = 5


class ValidationError(ValueError):
    """Raised when an exam or subject definition is rejected."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


def subject_problems(subject: Subject, position: int) -> list[str]:
    problems = []
    label = f"subject {position}"
    if not subject.name or not subject.name.strip():
        problems.append(f"{label}: name is required")
    else:
        label = f"subject '{subject.name}'"
    pages = subject.workbook_pages
    if isinstance(pages, bool) or not isinstance(pages, int):
        problems.append(f"{label}: workbook pages must be a whole number")
    elif pages < 1:
        problems.append(f"{label}: workbook pages must be at least 1")
    return problems


def validate_subject(subject: Subject, position: int = 1) -> None:
    problems = subject_problems(subject, position)
    if problems:
        raise ValidationError(problems)


def validate_exam(exam: Exam) -> None:
    """Reject an exam that the schedule generator cannot plan for.

    Raises:
        ValidationError: listing every problem found, not just the first.
    """
    problems = []
    if not exam.name or not exam.name.strip():
        problems.append("exam name is required")
    if exam.date is None:
        problems.append("exam date is required")
    if not exam.subjects:
        problems.append("at least one subject is required")
    elif len(exam.subjects) > MAX_SUBJECTS:
        problems.append(f"at most {MAX_SUBJECTS} subjects are allowed")
    for position, subject in enumerate(exam.subjects or [], 1):
        problems.extend(subject_problems(subject, position))
    if problems:
        raise ValidationError(problems)
