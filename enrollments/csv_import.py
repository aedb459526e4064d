"""Reading student rows out of CSV uploads.

``validate_row`` is the single rule set for a student row; the preview
endpoint, the import endpoint and ``students/bulk-import`` all go through it.
"""
import csv
import io
from typing import Dict, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.utils.dateparse import parse_date

REQUIRED_COLUMNS = ("name", "email", "phone")
OPTIONAL_COLUMNS = ("course", "batch", "start_date", "notes")
PREVIEW_SIZE = 10

TEMPLATE_ROWS = [
    ["name", "email", "phone", "course", "batch", "start_date", "notes"],
    ["John Doe", "john@example.com", "1234567890", "Web Development", "Batch 2024-01", "2024-01-15",
     "Imported from CSV"],
    ["Jane Smith", "jane@example.com", "0987654321", "Data Science", "Batch 2024-01", "2024-01-15",
     "Imported from CSV"],
]


class CSVFormatError(ValueError):
    """The upload is not a readable CSV file."""


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def validate_row(raw: dict) -> Tuple[Dict[str, str], Optional[str]]:
    """Clean one student row and check it.

    Returns ``(cleaned, error)``; ``error`` is ``None`` for a valid row. The
    cleaned dict is returned either way so errors can echo what was sent.
    """
    raw = raw or {}
    cleaned = {key: _clean(raw.get(key)) for key in REQUIRED_COLUMNS + OPTIONAL_COLUMNS}
    cleaned["email"] = cleaned["email"].lower()

    if not all(cleaned[key] for key in REQUIRED_COLUMNS):
        return cleaned, "Missing required fields (name, email, phone)"
    if len(cleaned["name"]) < 2:
        return cleaned, "Name must be at least 2 characters"
    if len(cleaned["name"]) > 100:
        return cleaned, "Name must be at most 100 characters"
    try:
        validate_email(cleaned["email"])
    except ValidationError:
        return cleaned, "Invalid email format"
    if len(cleaned["phone"]) < 10:
        return cleaned, "Phone number too short"
    if len(cleaned["phone"]) > 15:
        return cleaned, "Phone number too long"
    if cleaned["start_date"]:
        try:
            valid_date = parse_date(cleaned["start_date"])
        except ValueError:
            valid_date = None
        if valid_date is None:
            return cleaned, "Start date must be a valid date (YYYY-MM-DD)"
    return cleaned, None


def read_rows(text: str) -> List[dict]:
    """Split CSV text into dicts keyed by the (trimmed) header names."""
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise CSVFormatError("CSV file is empty")
    reader.fieldnames = [_clean(name) for name in reader.fieldnames]
    try:
        return [row for row in reader]
    except csv.Error as exc:
        raise CSVFormatError(f"Malformed CSV: {exc}") from exc


def decode_upload(uploaded_file) -> str:
    try:
        # utf-8-sig drops the BOM spreadsheet exports put in front
        return uploaded_file.read().decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVFormatError("CSV file must be UTF-8 encoded") from exc


def preview_rows(rows: List[dict]) -> dict:
    """Validate every row without saving anything."""
    valid, errors = [], []
    for number, raw in enumerate(rows, start=1):
        cleaned, error = validate_row(raw)
        if error:
            errors.append({"row": number, "error": error, "data": cleaned})
        else:
            valid.append(cleaned)

    return {
        "message": "CSV parsed successfully",
        "total_rows": len(rows),
        "valid_rows": len(valid),
        "error_rows": len(errors),
        "preview": valid[:PREVIEW_SIZE],
        "errors": errors[:PREVIEW_SIZE],
        "sample_data": valid[0] if valid else None,
    }


def template_csv() -> str:
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerows(TEMPLATE_ROWS)
    return out.getvalue()
