"""Write flows that touch more than one table.

Each public function here runs inside ``transaction.atomic`` so a failure
leaves no partial rows behind.
"""
import logging
import uuid
from datetime import date
from typing import List, Optional

from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.utils.dateparse import parse_date
from django.utils.text import get_valid_filename

from .balances import ZERO, compute_balance, exceeds_price
from .csv_import import validate_row
from .exceptions import BusinessRuleViolation, ConflictError, UNIQUE_FIELD_MESSAGES, unique_violation_message
from .models import Course, Enrollment, EnrollmentStatus, Payment, Student

logger = logging.getLogger(__name__)

DOCUMENTS_DIR = "student-docs"
IMPORT_BATCH_LABEL = "CSV Import"


# --- Enrollments ---

def ensure_enrollable(student: Student, course: Course, status: str = EnrollmentStatus.ACTIVE,
                      exclude_pk: Optional[int] = None, check_course: bool = True) -> None:
    if check_course and not course.is_active:
        raise BusinessRuleViolation("Course is not active")
    if status == EnrollmentStatus.ACTIVE:
        duplicates = Enrollment.objects.filter(  # pylint: disable=no-member
            student=student, course=course, status=EnrollmentStatus.ACTIVE
        )
        if exclude_pk is not None:
            duplicates = duplicates.exclude(pk=exclude_pk)
        if duplicates.exists():
            raise BusinessRuleViolation("Student is already enrolled in this course")


def ensure_reassignable(enrollment: Enrollment, student: Student, course: Course) -> None:
    """Reject a student or course change that would orphan or overshoot existing payments."""
    #callers hold a transaction; the lock keeps payments from landing mid-check
    _locked_enrollment(enrollment.pk)
    payments = Payment.objects.filter(enrollment=enrollment)  # pylint: disable=no-member
    if not payments.exists():
        return
    if student.pk != enrollment.student_id:
        raise BusinessRuleViolation("Cannot change the student of an enrollment with payment records")
    if course.pk != enrollment.course_id:
        paid = compute_balance(course.price, payments.values_list("amount", flat=True)).total_paid
        if exceeds_price(course.price, paid, ZERO):
            raise BusinessRuleViolation(
                "Payments already made exceed the price of the new course",
                course_price=course.price,
                total_paid=paid,
            )


def create_enrollment(*, student: Student, course: Course, **fields) -> Enrollment:
    fields.setdefault("status", EnrollmentStatus.ACTIVE)
    fields.setdefault("start_date", date.today())
    ensure_enrollable(student, course, fields["status"])
    return Enrollment.objects.create(student=student, course=course, **fields)  # pylint: disable=no-member


# --- Payments ---

def _check_payment_target(student: Student, enrollment: Enrollment) -> None:
    if enrollment.student_id != student.pk:
        raise BusinessRuleViolation("Enrollment does not belong to the specified student")


def _locked_enrollment(enrollment_pk: int) -> Enrollment:
    # the row lock makes concurrent payments on one enrollment run one after another
    return Enrollment.objects.select_for_update().get(pk=enrollment_pk)  # pylint: disable=no-member


def _reject_overpayment(enrollment: Enrollment, amount, exclude_pk: Optional[int] = None):
    """Raise if ``amount`` would take the enrollment over its course price.

    Returns the balance that results from accepting the amount.
    """
    paid = Payment.objects.filter(enrollment=enrollment)  # pylint: disable=no-member
    if exclude_pk is not None:
        paid = paid.exclude(pk=exclude_pk)
    price = enrollment.course.price
    current = compute_balance(price, paid.values_list("amount", flat=True))

    if exceeds_price(price, current.total_paid, amount):
        raise BusinessRuleViolation(
            "Payment amount exceeds course price",
            course_price=price,
            total_paid=current.total_paid,
            remaining=current.outstanding,
        )
    return compute_balance(price, [current.total_paid, amount])


def _complete_if_paid(enrollment: Enrollment, balance) -> None:
    if balance.is_fully_paid and enrollment.status != EnrollmentStatus.COMPLETED:
        enrollment.status = EnrollmentStatus.COMPLETED
        enrollment.save(update_fields=["status", "updated_at"])
        logger.info("Enrollment %s fully paid, marked COMPLETED", enrollment.pk)


@transaction.atomic
def record_payment(*, student: Student, enrollment: Enrollment, amount, method: str,
                   date, notes: str = "") -> Payment:
    """Create a payment and close the enrollment once the course is paid off.

    Only ACTIVE enrollments take payments, and the running total may reach
    but never pass the course price.
    """
    enrollment = _locked_enrollment(enrollment.pk)
    _check_payment_target(student, enrollment)
    if enrollment.status != EnrollmentStatus.ACTIVE:
        raise BusinessRuleViolation("Cannot record payment for inactive enrollment")

    balance = _reject_overpayment(enrollment, amount)
    payment = Payment.objects.create(  # pylint: disable=no-member
        student=student, enrollment=enrollment, amount=amount,
        method=method, date=date, notes=notes or "",
    )
    logger.info("Payment %s of %s recorded for enrollment %s", payment.pk, amount, enrollment.pk)
    _complete_if_paid(enrollment, balance)
    return payment


def _reopen_if_unpaid(enrollment: Enrollment) -> None:
    if enrollment.status != EnrollmentStatus.COMPLETED or enrollment.balance.is_fully_paid:
        return
    ensure_enrollable(enrollment.student, enrollment.course, exclude_pk=enrollment.pk, check_course=False)
    enrollment.status = EnrollmentStatus.ACTIVE
    enrollment.save(update_fields=["status", "updated_at"])
    logger.info("Enrollment %s no longer fully paid, reopened as ACTIVE", enrollment.pk)


@transaction.atomic
def update_payment(payment: Payment, **changes) -> Payment:
    """Edit a payment, keeping both enrollments it touches consistent.

    Moving a payment follows the same rules as recording a new one. The
    enrollment it leaves is reopened if it was COMPLETED and now owes money.
    """
    student = changes.get("student", payment.student)
    target_pk = changes.get("enrollment", payment.enrollment).pk
    previous_pk = payment.enrollment_id
    #lock in pk order so two opposite moves cannot deadlock
    locked = {
        e.pk: e for e in
        Enrollment.objects.select_for_update().filter(pk__in={target_pk, previous_pk}).order_by("pk")  # pylint: disable=no-member
    }
    enrollment = locked[target_pk]
    _check_payment_target(student, enrollment)
    moving = target_pk != previous_pk
    if moving and enrollment.status != EnrollmentStatus.ACTIVE:
        raise BusinessRuleViolation("Cannot record payment for inactive enrollment")

    balance = _reject_overpayment(enrollment, changes.get("amount", payment.amount), exclude_pk=payment.pk)
    for field, value in changes.items():
        setattr(payment, field, value)
    payment.enrollment = enrollment
    payment.save()

    _reopen_if_unpaid(locked[previous_pk])
    if enrollment.status == EnrollmentStatus.ACTIVE:
        _complete_if_paid(enrollment, balance)
    return payment


# --- Students ---

def store_documents(uploads) -> List[str]:
    """Save uploaded files under ``student-docs/`` and return the storage names."""
    names = []
    for upload in uploads:
        filename = get_valid_filename(upload.name) or "document"
        names.append(default_storage.save(f"{DOCUMENTS_DIR}/{uuid.uuid4().hex[:12]}-{filename}", upload))
    return names


def discard_documents(names: List[str]) -> None:
    for name in names:
        default_storage.delete(name)


def full_create(*, student_data: dict, enrollment_data: Optional[dict] = None,
                payment_data: Optional[dict] = None, uploads=()) -> dict:
    """Create a student plus optional enrollment and payment as one unit.

    Uploaded documents are stored first and removed again if anything in the
    transaction fails, so a rejected request leaves neither rows nor files.
    """
    stored = store_documents(uploads)
    try:
        with transaction.atomic():
            nric = student_data.get("nric_passport_id")
            if nric and Student.objects.filter(nric_passport_id=nric).exists():  # pylint: disable=no-member
                raise ConflictError(UNIQUE_FIELD_MESSAGES["nric_passport_id"])

            documents = list(student_data.pop("documents", None) or [])
            documents += [default_storage.url(name) for name in stored]
            student = Student.objects.create(documents=documents, **student_data)  # pylint: disable=no-member

            enrollment = None
            if enrollment_data:
                enrollment_data = dict(enrollment_data)
                course = enrollment_data.pop("course")
                enrollment = create_enrollment(student=student, course=course, **enrollment_data)

            payment = None
            if payment_data:
                payment_data = dict(payment_data)
                target = payment_data.pop("enrollment", None) or enrollment
                if target is None:
                    raise BusinessRuleViolation("A payment needs an enrollment to apply to")
                payment = record_payment(student=student, enrollment=target, **payment_data)
                if enrollment is not None and payment.enrollment_id == enrollment.pk:
                    # the payment may have just completed it
                    enrollment = payment.enrollment
    except Exception:
        discard_documents(stored)
        raise

    logger.info("Full create: student %s, enrollment %s, payment %s, %d documents",
                student.pk, enrollment.pk if enrollment else None,
                payment.pk if payment else None, len(stored))
    return {"student": student, "enrollment": enrollment, "payment": payment}


# --- CSV / bulk import ---

def _course_for_import(name: str) -> Course:
    course = Course.objects.filter(name__iexact=name).first()  # pylint: disable=no-member
    if course is None:
        course = Course.objects.create(  # pylint: disable=no-member
            name=name, description="Auto-created from CSV import", price=0, is_active=True
        )
        logger.info("Course '%s' auto-created during import", name)
    return course


def import_students(rows, create_enrollments: bool = False) -> dict:
    """Persist student rows one by one; bad rows are reported, not fatal."""
    imported, enrollments, errors = [], [], []

    for number, raw in enumerate(rows, start=1):
        data, error = validate_row(raw if isinstance(raw, dict) else {})
        if error:
            errors.append({"row": number, "error": error, "data": data})
            continue
        if Student.objects.filter(email=data["email"]).exists():  # pylint: disable=no-member
            errors.append({"row": number, "error": "Email already registered", "data": data})
            continue

        try:
            with transaction.atomic():
                student = Student.objects.create(  # pylint: disable=no-member
                    name=data["name"], email=data["email"], phone=data["phone"], remarks=data["notes"]
                )
        except IntegrityError as exc:
            errors.append({"row": number, "error": unique_violation_message(exc), "data": data})
            continue
        imported.append(student)

        if create_enrollments and data["course"]:
            try:
                with transaction.atomic():
                    enrollment = create_enrollment(
                        student=student,
                        course=_course_for_import(data["course"]),
                        batch=data["batch"] or IMPORT_BATCH_LABEL,
                        start_date=parse_date(data["start_date"]) if data["start_date"] else date.today(),
                    )
            except (BusinessRuleViolation, IntegrityError) as exc:
                logger.warning("Enrollment for imported student %s failed: %s", student.pk, exc)
                errors.append({
                    "row": number,
                    "error": f"Student created but enrollment failed: {exc}",
                    "data": data,
                })
                continue
            enrollments.append(enrollment)

    logger.info("Imported %d of %d students (%d enrollments, %d errors)",
                len(imported), len(rows), len(enrollments), len(errors))
    return {
        "message": f"Successfully imported {len(imported)} students",
        "imported": len(imported),
        "total": len(rows),
        "enrollments_created": len(enrollments),
        "results": imported,
        "errors": errors,
    }
