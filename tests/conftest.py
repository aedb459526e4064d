import datetime
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from enrollments.models import Course, Enrollment, Payment, PaymentMethod, Student


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    return tmp_path / "media"


@pytest.fixture
def api_client():
    return APIClient()


def make_student(**overrides):
    data = {"name": "Ana Lopez", "email": "ana@example.com", "phone": "0123456789"}
    data.update(overrides)
    return Student.objects.create(**data)


def make_course(**overrides):
    data = {"name": "Web Development", "price": Decimal("1000.00"), "duration": "3 months"}
    data.update(overrides)
    return Course.objects.create(**data)


def make_payment(enrollment, amount, **overrides):
    data = {
        "student": enrollment.student,
        "enrollment": enrollment,
        "amount": Decimal(amount),
        "method": PaymentMethod.CASH,
        "date": datetime.date.today(),
    }
    data.update(overrides)
    return Payment.objects.create(**data)


@pytest.fixture
def student(db):
    return make_student()


@pytest.fixture
def course(db):
    return make_course()


@pytest.fixture
def enrollment(student, course):
    return Enrollment.objects.create(student=student, course=course, batch="Batch A",
                                     start_date=datetime.date(2024, 1, 15))
