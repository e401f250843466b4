"""Import exam definitions from JSON or YAML files."""
import json
from datetime import date, datetime
from pathlib import Path

from study_quest.models import Exam, Subject
from study_quest.service import create_exam, new_exam
from study_quest.validation import ValidationError


def read_exam_file(file_path: str) -> dict:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        data = json.loads(path.read_text())
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
    else:
        raise ValidationError([f"unsupported exam file type: {suffix or path.name}"])
    if not isinstance(data, dict):
        raise ValidationError(["exam file must contain a mapping"])
    return data


def count_pdf_pages(file_path: str) -> int:
    from PyPDF2 import PdfReader
    reader = PdfReader(file_path)
    return len(reader.pages)


def _parse_exam_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError([f"invalid exam date: {value!r}"]) from None


def parse_subject(data: dict, base_dir: Path) -> Subject:
    pages = data.get("pages", data.get("workbook_pages"))
    workbook = data.get("workbook")
    if pages is None and workbook:
        # Workbook PDFs are resolved relative to the exam file
        pages = count_pdf_pages(str(base_dir / workbook))
    return Subject(
        name=str(data.get("name", "")),
        workbook_pages=pages if pages is not None else 0,
        range=str(data.get("range", "")),
    )


def load_exam(file_path: str, now: datetime) -> Exam:
    data = read_exam_file(file_path)
    if not data.get("date"):
        raise ValidationError(["exam date is required"])
    base_dir = Path(file_path).parent
    subjects = [parse_subject(s, base_dir) for s in data.get("subjects") or []]
    return new_exam(str(data.get("name", "")), _parse_exam_date(data["date"]), subjects, now)


def import_exam(exam_store, task_store, file_path: str, now: datetime) -> dict:
    """Load an exam file and create the exam with its schedule."""
    exam = load_exam(file_path, now)
    tasks = create_exam(exam_store, task_store, exam, now)
    return {
        "filename": Path(file_path).name,
        "exam_id": exam.id,
        "name": exam.name,
        "subjects": len(exam.subjects),
        "tasks": len(tasks),
    }
