import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import IntegrityError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class BusinessRuleViolation(APIException):
    """A request that is well formed but breaks an enrollment/payment rule.

    Keyword arguments become extra keys of the error body, next to ``detail``.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The request breaks a business rule."
    default_code = "business_rule"

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail, code)
        self.extra = extra


class ConflictError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "A record with these values already exists."
    default_code = "conflict"


#column name -> message shown for a unique violation on that column
UNIQUE_FIELD_MESSAGES = {
    "nric_passport_id": "NRIC/Passport ID already exists. Please use a different ID.",
    "email": "Email address already exists. Please use a different email.",
    "unique_course_name_ci": "Course name already exists.",
    "unique_active_enrollment": "Student is already enrolled in this course.",
}


def unique_violation_message(error: IntegrityError) -> str:
    """Map a database unique-constraint error to a field-specific message.

    SQLite reports ``UNIQUE constraint failed: enrollments_student.email``
    while PostgreSQL names the index (``enrollments_student_email_key``), so
    both are matched by looking for the column or constraint name.
    """
    text = str(error)
    for key, message in UNIQUE_FIELD_MESSAGES.items():
        if key in text:
            return message
    return ConflictError.default_detail


def api_exception_handler(exc, context):
    if isinstance(exc, ProtectedError):
        exc = BusinessRuleViolation(
            "Cannot delete a record that other records still reference.",
            related_count=len(exc.protected_objects),
        )
    elif isinstance(exc, IntegrityError):
        exc = ConflictError(unique_violation_message(exc))
    elif isinstance(exc, ObjectDoesNotExist):
        exc = NotFound(str(exc) or None)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.error("Unhandled error in %s", view.__class__.__name__ if view else "view",
                     exc_info=(type(exc), exc, exc.__traceback__))
        return Response({"detail": "Internal server error"},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, BusinessRuleViolation) and exc.extra:
        response.data.update(exc.extra)
    return response
