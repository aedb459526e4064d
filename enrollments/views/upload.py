import logging

from django.conf import settings
from django.http import HttpResponse
from drf_spectacular.utils import extend_schema
from rest_framework import serializers, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from .. import csv_import, services
from ..serializers import BulkImportSerializer, StudentSerializer

logger = logging.getLogger(__name__)


def _check_csv_upload(uploaded_file):
    if uploaded_file is None:
        raise serializers.ValidationError({"file": ["No file uploaded"]})
    is_csv = uploaded_file.content_type == "text/csv" or uploaded_file.name.lower().endswith(".csv")
    if not is_csv:
        raise serializers.ValidationError({"file": ["Only CSV files are allowed"]})
    if uploaded_file.size > settings.CSV_MAX_UPLOAD_SIZE:
        limit_mb = settings.CSV_MAX_UPLOAD_SIZE // (1024 * 1024)
        raise serializers.ValidationError({"file": [f"File size too large. Maximum size is {limit_mb}MB."]})


@extend_schema(tags=["Upload"])
class UploadViewSet(viewsets.ViewSet):
    """Student CSV uploads, checked before anything is imported."""

    @action(detail=False, methods=["post"], url_path="csv-preview", parser_classes=[MultiPartParser, FormParser])
    def csv_preview(self, request):
        """Validate an uploaded CSV of students; nothing is saved."""
        uploaded_file = request.FILES.get("file")
        _check_csv_upload(uploaded_file)
        try:
            rows = csv_import.read_rows(csv_import.decode_upload(uploaded_file))
        except csv_import.CSVFormatError as exc:
            raise serializers.ValidationError({"file": [str(exc)]})

        preview = csv_import.preview_rows(rows)
        logger.info("CSV preview of %s: %d valid, %d with errors",
                    uploaded_file.name, preview["valid_rows"], preview["error_rows"])
        return Response(preview)

    @extend_schema(request=BulkImportSerializer)
    @action(detail=False, methods=["post"], url_path="import-students")
    def import_students(self, request):
        serializer = BulkImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.import_students(
            serializer.validated_data["students"],
            create_enrollments=serializer.validated_data["create_enrollments"],
        )
        result["results"] = StudentSerializer(result["results"], many=True).data
        return Response(result)

    @action(detail=False, methods=["get"])
    def template(self, request):
        response = HttpResponse(csv_import.template_csv(), content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="students-template.csv"'
        return response
