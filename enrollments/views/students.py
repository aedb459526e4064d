import json
import logging

from django.db import transaction
from drf_spectacular.utils import extend_schema
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from .. import services
from ..filters import StudentFilter
from ..models import Student
from ..serializers import (
    BulkImportSerializer, EnrollmentSerializer, FullCreateEnrollmentSerializer,
    FullCreatePaymentSerializer, FullCreateStudentSerializer, PaymentSerializer,
    StudentDetailSerializer, StudentSerializer,
)

logger = logging.getLogger(__name__)

MAX_DOCUMENTS = 10


def _full_create_payload(raw) -> dict:
    #multipart sends the JSON as a string in the "data" field, plain JSON sends an object
    if raw in (None, ""):
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        raise serializers.ValidationError({"data": ["Must be a JSON object"]})
    if not isinstance(payload, dict):
        raise serializers.ValidationError({"data": ["Must be a JSON object"]})
    return payload


def _section(payload, key) -> dict:
    section = payload.get(key) or {}
    if not isinstance(section, dict):
        raise serializers.ValidationError({key: ["Must be a JSON object"]})
    return section


def _validated(serializer_class, data, key):
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise serializers.ValidationError({key: serializer.errors})
    return dict(serializer.validated_data)


@extend_schema(tags=["Students"])
class StudentViewSet(viewsets.ModelViewSet):
    queryset = Student.objects.prefetch_related(  # pylint: disable=no-member
        "enrollments__course", "enrollments__payments"
    ).all()
    serializer_class = StudentSerializer
    filterset_class = StudentFilter
    search_fields = ["name", "email", "phone"]
    ordering_fields = ["name", "email", "created_at"]
    ordering = ["-created_at", "-id"]

    def get_serializer_class(self):
        if self.action == "retrieve":
            return StudentDetailSerializer
        return StudentSerializer

    @transaction.atomic
    def perform_destroy(self, instance):
        #payments hold their enrollment with PROTECT, so they are removed first
        instance.payments.all().delete()
        instance.delete()
        logger.info("Student %s deleted with enrollments and payments", instance.email)

    @extend_schema(request=BulkImportSerializer)
    @action(detail=False, methods=["post"], url_path="bulk-import")
    def bulk_import(self, request):
        serializer = BulkImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.import_students(
            serializer.validated_data["students"],
            create_enrollments=serializer.validated_data["create_enrollments"],
        )
        result["results"] = StudentSerializer(result["results"], many=True).data
        return Response(result)

    @action(detail=False, methods=["post"], url_path="full-create",
            parser_classes=[MultiPartParser, FormParser, JSONParser])
    def full_create(self, request):
        """Create a student, an optional enrollment and payment, and upload documents.

        Form fields: ``data`` (JSON with ``student``, ``enrollment``,
        ``payment``) and ``docs`` (up to ten files).
        """
        payload = _full_create_payload(request.data.get("data"))
        uploads = request.FILES.getlist("docs")
        if len(uploads) > MAX_DOCUMENTS:
            raise serializers.ValidationError({"docs": [f"At most {MAX_DOCUMENTS} documents can be uploaded"]})

        student_data = _validated(FullCreateStudentSerializer, _section(payload, "student"), "student")

        enrollment_data = None
        enrollment_in = _section(payload, "enrollment")
        if enrollment_in.get("course"):
            enrollment_data = _validated(FullCreateEnrollmentSerializer, enrollment_in, "enrollment")

        payment_data = None
        payment_in = _section(payload, "payment")
        if all(payment_in.get(key) for key in ("amount", "method", "date")):
            payment_data = _validated(FullCreatePaymentSerializer, payment_in, "payment")

        created = services.full_create(
            student_data=student_data,
            enrollment_data=enrollment_data,
            payment_data=payment_data,
            uploads=uploads,
        )
        enrollment, payment = created["enrollment"], created["payment"]
        return Response({
            "student": StudentSerializer(created["student"]).data,
            "enrollment": EnrollmentSerializer(enrollment).data if enrollment else None,
            "payment": PaymentSerializer(payment).data if payment else None,
        }, status=status.HTTP_201_CREATED)
