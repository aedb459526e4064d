import datetime
from decimal import Decimal

import pytest

from enrollments import services
from enrollments.exceptions import BusinessRuleViolation
from enrollments.models import Enrollment, EnrollmentStatus, Payment

from .conftest import make_course, make_payment, make_student

pytestmark = pytest.mark.django_db


def _pay(api_client, enrollment, amount, **extra):
    body = {
        "student": enrollment.student_id,
        "enrollment": enrollment.pk,
        "amount": amount,
        "method": "CASH",
        "date": "2024-02-01",
    }
    body.update(extra)
    return api_client.post("/api/payments/", body, format="json")


def test_paying_full_price_completes_enrollment(api_client, enrollment):
    first = _pay(api_client, enrollment, "400.00")
    assert first.status_code == 201
    enrollment.refresh_from_db()
    assert enrollment.status == EnrollmentStatus.ACTIVE

    second = _pay(api_client, enrollment, "600.00")
    assert second.status_code == 201
    enrollment.refresh_from_db()
    assert enrollment.status == EnrollmentStatus.COMPLETED

    summary = api_client.get(f"/api/payments/student/{enrollment.student_id}/summary/").json()
    assert summary["summary"][0]["outstanding"] == 0
    assert summary["summary"][0]["is_fully_paid"] is True
    assert summary["totals"] == {"outstanding": 0, "paid": 1000}


def test_overpayment_is_rejected_and_nothing_saved(api_client, enrollment):
    make_payment(enrollment, "400.00")

    response = _pay(api_client, enrollment, "700.00")

    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Payment amount exceeds course price"
    assert body["course_price"] == 1000
    assert body["total_paid"] == 400
    assert body["remaining"] == 600
    assert Payment.objects.count() == 1
    enrollment.refresh_from_db()
    assert enrollment.status == EnrollmentStatus.ACTIVE


def test_payment_for_someone_elses_enrollment(api_client, enrollment):
    other = make_student(name="Ben Ong", email="ben@example.com")

    response = _pay(api_client, enrollment, "100.00", student=other.pk)

    assert response.status_code == 400
    assert response.json()["detail"] == "Enrollment does not belong to the specified student"
    assert not Payment.objects.exists()


def test_payment_on_cancelled_enrollment(api_client, enrollment):
    enrollment.status = EnrollmentStatus.CANCELLED
    enrollment.save()

    response = _pay(api_client, enrollment, "100.00")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot record payment for inactive enrollment"


@pytest.mark.parametrize("field, value", [("amount", "0"), ("method", "BITCOIN")])
def test_payment_field_validation(api_client, enrollment, field, value):
    response = _pay(api_client, enrollment, **{"amount": "100.00", field: value})

    assert response.status_code == 400
    assert field in response.json()


def test_invalid_method_message(api_client, enrollment):
    response = _pay(api_client, enrollment, "100.00", method="BITCOIN")
    assert response.json()["method"] == ["Invalid payment method"]


def test_update_cannot_push_total_over_price(api_client, enrollment):
    make_payment(enrollment, "600.00")
    payment = make_payment(enrollment, "300.00")

    response = api_client.patch(f"/api/payments/{payment.pk}/", {"amount": "500.00"}, format="json")

    assert response.status_code == 400
    payment.refresh_from_db()
    assert payment.amount == Decimal("300.00")


def test_update_that_reaches_price_completes(api_client, enrollment):
    payment = make_payment(enrollment, "300.00")

    response = api_client.patch(f"/api/payments/{payment.pk}/", {"amount": "1000.00"}, format="json")

    assert response.status_code == 200
    assert response.json()["amount"] == 1000
    enrollment.refresh_from_db()
    assert enrollment.status == EnrollmentStatus.COMPLETED


def test_list_is_paginated_and_filterable(api_client, enrollment):
    make_payment(enrollment, "100.00", date=datetime.date(2024, 1, 10))
    make_payment(enrollment, "200.00", date=datetime.date(2024, 3, 10), method="BANK_TRANSFER")

    page = api_client.get("/api/payments/?limit=1").json()
    assert len(page["data"]) == 1
    assert page["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    #newest payment date first
    assert page["data"][0]["amount"] == 200

    by_method = api_client.get("/api/payments/?method=BANK_TRANSFER").json()
    assert [p["amount"] for p in by_method["data"]] == [200]

    in_range = api_client.get("/api/payments/?start_date=2024-01-01&end_date=2024-01-31").json()
    assert [p["amount"] for p in in_range["data"]] == [100]


def test_summary_for_unknown_student(api_client, db):
    assert api_client.get("/api/payments/student/999/summary/").status_code == 404


def test_statement_pdf(api_client, enrollment):
    make_payment(enrollment, "250.00")

    response = api_client.get(f"/api/payments/student/{enrollment.student_id}/statement-pdf/?download=0")

    assert response.status_code == 200
    assert response["Content-Type"] == "application/pdf"
    assert response["Content-Disposition"].startswith("inline;")
    assert response.content.startswith(b"%PDF")


def test_record_payment_service_locks_and_completes(enrollment):
    services.record_payment(student=enrollment.student, enrollment=enrollment, amount=Decimal("1000.00"),
                            method="CASH", date=datetime.date.today())

    assert Enrollment.objects.get(pk=enrollment.pk).status == EnrollmentStatus.COMPLETED
    with pytest.raises(BusinessRuleViolation):
        services.record_payment(student=enrollment.student, enrollment=enrollment, amount=Decimal("1.00"),
                                method="CASH", date=datetime.date.today())


def test_payment_cannot_move_to_inactive_enrollment(api_client, enrollment):
    other = Enrollment.objects.create(student=enrollment.student, course=make_course(name="Design"),
                                      status=EnrollmentStatus.CANCELLED, start_date=enrollment.start_date)
    payment = make_payment(enrollment, "100.00")

    response = api_client.patch(f"/api/payments/{payment.pk}/", {"enrollment": other.pk}, format="json")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot record payment for inactive enrollment"
    payment.refresh_from_db()
    assert payment.enrollment_id == enrollment.pk


def test_moving_payment_away_reopens_completed_enrollment(api_client, enrollment):
    other = Enrollment.objects.create(student=enrollment.student, course=make_course(name="Design"),
                                      start_date=enrollment.start_date)
    payment = make_payment(enrollment, "1000.00")
    enrollment.status = EnrollmentStatus.COMPLETED
    enrollment.save()

    response = api_client.patch(f"/api/payments/{payment.pk}/", {"enrollment": other.pk}, format="json")

    assert response.status_code == 200
    enrollment.refresh_from_db()
    other.refresh_from_db()
    assert enrollment.status == EnrollmentStatus.ACTIVE
    assert other.status == EnrollmentStatus.COMPLETED


def test_lowering_amount_reopens_completed_enrollment(api_client, enrollment):
    payment = make_payment(enrollment, "1000.00")
    enrollment.status = EnrollmentStatus.COMPLETED
    enrollment.save()

    response = api_client.patch(f"/api/payments/{payment.pk}/", {"amount": "900.00"}, format="json")

    assert response.status_code == 200
    enrollment.refresh_from_db()
    assert enrollment.status == EnrollmentStatus.ACTIVE
