#ENROLLMENT MODULE
#Models for students, courses, enrollments and the payments made against them
from decimal import Decimal

from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.db.models.functions import Lower

from .balances import compute_balance


class EnrollmentStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    SUSPENDED = "SUSPENDED", "Suspended"


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
    CREDIT_CARD = "CREDIT_CARD", "Credit card"
    DEBIT_CARD = "DEBIT_CARD", "Debit card"
    ONLINE_PAYMENT = "ONLINE_PAYMENT", "Online payment"
    CHECK = "CHECK", "Check"


class Student(models.Model):
    name = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=15, validators=[MinLengthValidator(10)])

    #NRIC or passport number, optional but never shared by two students
    nric_passport_id = models.CharField(
        max_length=50, unique=True, null=True, blank=True,
        validators=[MinLengthValidator(3)],
    )
    address = models.TextField(blank=True, default="")
    remarks = models.TextField(blank=True, default="")
    #URLs of the stored documents (see services.store_documents)
    documents = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.name} <{self.email}>"


class Course(models.Model):
    name = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    description = models.TextField(max_length=500, blank=True, default="")
    duration = models.CharField(max_length=50, blank=True, default="")
    price = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))]
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(Lower("name"), name="unique_course_name_ci"),
        ]

    def __str__(self):
        return self.name


class Enrollment(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="enrollments")
    #a course with enrollments cannot be deleted
    course = models.ForeignKey(Course, on_delete=models.PROTECT, related_name="enrollments")
    status = models.CharField(
        max_length=20, choices=EnrollmentStatus.choices, default=EnrollmentStatus.ACTIVE
    )
    batch = models.CharField(max_length=50, blank=True, default="")
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["student", "course"],
                condition=Q(status="ACTIVE"),
                name="unique_active_enrollment",
            ),
        ]

    def __str__(self):
        return f"{self.student.name} - {self.course.name} ({self.status})"

    @property
    def balance(self):
        """Paid / outstanding state of this enrollment.

        Iterates ``self.payments.all()`` so a ``prefetch_related("payments")``
        on the queryset avoids one query per enrollment.
        """
        return compute_balance(self.course.price, self.payments.all())


class Payment(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="payments")
    #an enrollment with payments cannot be deleted
    enrollment = models.ForeignKey(Enrollment, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))]
    )
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    date = models.DateField()
    notes = models.TextField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date", "-id"]

    def __str__(self):
        return f"{self.amount} {self.method} ({self.date})"
