import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from enrollments.models import Course, Student

from .conftest import make_student

pytestmark = pytest.mark.django_db

CSV_BODY = (
    "name,email,phone,course\n"
    "Ana Lopez,ana@example.com,0123456789,Web Development\n"
    "Bob Tan,,0123456789,\n"
)


def _csv(content, name="students.csv", content_type="text/csv"):
    return SimpleUploadedFile(name, content.encode("utf-8"), content_type=content_type)


def test_preview_counts_valid_and_invalid_rows(api_client):
    response = api_client.post("/api/upload/csv-preview/", {"file": _csv(CSV_BODY)}, format="multipart")

    assert response.status_code == 200
    body = response.json()
    assert body["total_rows"] == 2
    assert body["valid_rows"] == 1
    assert body["error_rows"] == 1
    assert body["errors"][0]["row"] == 2
    assert body["errors"][0]["error"] == "Missing required fields (name, email, phone)"
    assert body["sample_data"]["email"] == "ana@example.com"
    assert not Student.objects.exists()


def test_preview_handles_byte_order_mark(api_client):
    upload = SimpleUploadedFile("s.csv", b"\xef\xbb\xbf" + CSV_BODY.encode(), content_type="text/csv")

    body = api_client.post("/api/upload/csv-preview/", {"file": upload}, format="multipart").json()

    assert body["valid_rows"] == 1


def test_preview_rejects_other_file_types(api_client):
    upload = _csv(CSV_BODY, name="students.xlsx", content_type="application/vnd.ms-excel")

    response = api_client.post("/api/upload/csv-preview/", {"file": upload}, format="multipart")

    assert response.status_code == 400
    assert response.json()["file"] == ["Only CSV files are allowed"]


def test_preview_requires_a_file(api_client):
    response = api_client.post("/api/upload/csv-preview/", {}, format="multipart")

    assert response.status_code == 400
    assert response.json()["file"] == ["No file uploaded"]


def test_preview_size_limit(api_client, settings):
    settings.CSV_MAX_UPLOAD_SIZE = 10

    response = api_client.post("/api/upload/csv-preview/", {"file": _csv(CSV_BODY)}, format="multipart")

    assert response.status_code == 400


def test_preview_empty_file(api_client):
    response = api_client.post("/api/upload/csv-preview/", {"file": _csv("\n")}, format="multipart")

    assert response.status_code == 400
    assert response.json()["file"] == ["CSV file is empty"]


def test_import_creates_students_and_courses(api_client):
    make_student(email="taken@example.com")

    response = api_client.post("/api/upload/import-students/", {
        "students": [
            {"name": "Ana Lopez", "email": "ana@example.com", "phone": "0123456789",
             "course": "Photography", "batch": "Evening", "start_date": "2024-05-01"},
            {"name": "Dup Person", "email": "taken@example.com", "phone": "0123456789"},
            {"name": "Bad Mail", "email": "not-an-email", "phone": "0123456789"},
        ],
        "create_enrollments": True,
    }, format="json")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Successfully imported 1 students"
    assert body["imported"] == 1
    assert body["enrollments_created"] == 1
    assert {e["row"]: e["error"] for e in body["errors"]} == {
        2: "Email already registered",
        3: "Invalid email format",
    }
    course = Course.objects.get(name="Photography")
    assert course.price == 0
    assert course.description == "Auto-created from CSV import"
    enrollment = course.enrollments.get()
    assert enrollment.batch == "Evening"
    assert enrollment.start_date.isoformat() == "2024-05-01"


def test_import_without_enrollments(api_client, course):
    body = api_client.post("/api/upload/import-students/", {
        "students": [{"name": "Ana Lopez", "email": "ana@example.com", "phone": "0123456789",
                      "course": "Web Development"}],
    }, format="json").json()

    assert body["imported"] == 1
    assert body["enrollments_created"] == 0


def test_import_into_inactive_course_keeps_student(api_client):
    Course.objects.create(name="Closed", price=100, is_active=False)

    body = api_client.post("/api/upload/import-students/", {
        "students": [{"name": "Ana Lopez", "email": "ana@example.com", "phone": "0123456789",
                      "course": "closed"}],
        "create_enrollments": True,
    }, format="json").json()

    assert body["imported"] == 1
    assert body["enrollments_created"] == 0
    assert body["errors"][0]["error"] == "Student created but enrollment failed: Course is not active"
    assert Student.objects.filter(email="ana@example.com").exists()


def test_template_download(api_client):
    response = api_client.get("/api/upload/template/")

    assert response.status_code == 200
    assert response["Content-Type"].startswith("text/csv")
    assert 'filename="students-template.csv"' in response["Content-Disposition"]
    assert response.content.decode().splitlines()[0] == "name,email,phone,course,batch,start_date,notes"
