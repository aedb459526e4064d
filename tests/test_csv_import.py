import pytest

from enrollments.csv_import import CSVFormatError, preview_rows, read_rows, template_csv, validate_row

VALID = {"name": "Ana Lopez", "email": "Ana@Example.com", "phone": "0123456789"}


def test_valid_row_is_cleaned():
    cleaned, error = validate_row({**VALID, "name": "  Ana Lopez  ", "course": " Web "})

    assert error is None
    assert cleaned["name"] == "Ana Lopez"
    assert cleaned["email"] == "ana@example.com"
    assert cleaned["course"] == "Web"
    assert cleaned["batch"] == ""


@pytest.mark.parametrize("changes, message", [
    ({"phone": ""}, "Missing required fields (name, email, phone)"),
    ({"name": "A"}, "Name must be at least 2 characters"),
    ({"name": "A" * 101}, "Name must be at most 100 characters"),
    ({"email": "ana@"}, "Invalid email format"),
    ({"phone": "12345"}, "Phone number too short"),
    ({"phone": "1" * 16}, "Phone number too long"),
    ({"start_date": "15/01/2024"}, "Start date must be a valid date (YYYY-MM-DD)"),
    ({"start_date": "2024-02-30"}, "Start date must be a valid date (YYYY-MM-DD)"),
])
def test_invalid_rows(changes, message):
    _, error = validate_row({**VALID, **changes})
    assert error == message


def test_read_rows_trims_headers():
    rows = read_rows(" name , email ,phone\nAna,ana@example.com,0123456789\n")
    assert rows == [{"name": "Ana", "email": "ana@example.com", "phone": "0123456789"}]


def test_read_rows_empty():
    with pytest.raises(CSVFormatError):
        read_rows("")


def test_preview_limits_rows():
    rows = [{**VALID, "email": f"s{i}@example.com"} for i in range(12)]

    preview = preview_rows(rows)

    assert preview["valid_rows"] == 12
    assert len(preview["preview"]) == 10
    assert preview["sample_data"]["email"] == "s0@example.com"


def test_template_rows_are_valid():
    rows = read_rows(template_csv())
    assert len(rows) == 2
    assert all(validate_row(row)[1] is None for row in rows)
