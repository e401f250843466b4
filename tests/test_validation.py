# tests/test_validation.py
from datetime import date

import pytest

from study_quest.models import Exam, Subject
from study_quest.validation import ValidationError, validate_exam, validate_subject


def make_exam(subjects, name="Finals"):
    return Exam(id="ex1", name=name, date=date(2026, 11, 1), subjects=subjects)


def test_valid_exam_passes():
    validate_exam(make_exam([Subject(name="Math", workbook_pages=1)]))


def test_exam_without_subjects_rejected():
    with pytest.raises(ValidationError) as exc:
        validate_exam(make_exam([]))
    assert "at least one subject is required" in exc.value.problems


def test_zero_pages_rejected():
    with pytest.raises(ValidationError, match="at least 1"):
        validate_exam(make_exam([Subject(name="Math", workbook_pages=0)]))


def test_non_integer_pages_rejected():
    with pytest.raises(ValidationError, match="whole number"):
        validate_subject(Subject(name="Math", workbook_pages=2.5))


def test_too_many_subjects_rejected():
    subjects = [Subject(name=f"S{i}", workbook_pages=10) for i in range(6)]
    with pytest.raises(ValidationError, match="at most 5"):
        validate_exam(make_exam(subjects))


def test_all_problems_reported_together():
    exam = make_exam([Subject(name="", workbook_pages=10), Subject(name="Math", workbook_pages=-1)], name=" ")
    with pytest.raises(ValidationError) as exc:
        validate_exam(exam)
    assert exc.value.problems == [
        "exam name is required",
        "subject 1: name is required",
        "subject 'Math': workbook pages must be at least 1",
    ]


def test_validation_error_is_value_error():
    assert issubclass(ValidationError, ValueError)


def test_empty_range_is_allowed():
    validate_exam(make_exam([Subject(name="Math", workbook_pages=10, range="")]))
