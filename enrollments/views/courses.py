import logging

from django.db.models import Count
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ..exceptions import BusinessRuleViolation
from ..filters import CourseFilter
from ..models import Course
from ..serializers import CourseDetailSerializer, CourseSerializer

logger = logging.getLogger(__name__)


@extend_schema(tags=["Courses"])
class CourseViewSet(viewsets.ModelViewSet):
    queryset = Course.objects.annotate(enrollments_count=Count("enrollments"))  # pylint: disable=no-member
    serializer_class = CourseSerializer
    filterset_class = CourseFilter
    search_fields = ["name", "description"]
    ordering_fields = ["name", "price", "created_at"]
    ordering = ["-created_at", "-id"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == "retrieve":
            queryset = queryset.prefetch_related("enrollments__student")
        return queryset

    def get_serializer_class(self):
        if self.action == "retrieve":
            return CourseDetailSerializer
        return CourseSerializer

    def perform_destroy(self, instance):
        enrollments_count = instance.enrollments.count()
        if enrollments_count:
            raise BusinessRuleViolation(
                "Cannot delete course with active enrollments",
                enrollments_count=enrollments_count,
            )
        instance.delete()
        logger.info("Course '%s' deleted", instance.name)

    @action(detail=True, methods=["patch"], url_path="toggle-status")
    def toggle_status(self, request, pk=None):
        course = self.get_object()
        course.is_active = not course.is_active
        course.save(update_fields=["is_active", "updated_at"])
        return Response(CourseSerializer(course).data)
