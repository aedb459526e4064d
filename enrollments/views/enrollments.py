import logging

from django.db import transaction
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .. import services
from ..exceptions import BusinessRuleViolation
from ..filters import EnrollmentFilter
from ..models import Enrollment, EnrollmentStatus
from ..serializers import EnrollmentDetailSerializer, EnrollmentSerializer, EnrollmentStatusSerializer

logger = logging.getLogger(__name__)


@extend_schema(tags=["Enrollments"])
class EnrollmentViewSet(viewsets.ModelViewSet):
    queryset = (
        Enrollment.objects  # pylint: disable=no-member
        .select_related("student", "course")
        .prefetch_related("payments")
        .all()
    )
    serializer_class = EnrollmentSerializer
    filterset_class = EnrollmentFilter
    search_fields = ["student__name", "student__email", "course__name", "batch"]
    ordering_fields = ["start_date", "end_date", "created_at", "status"]
    ordering = ["-created_at", "-id"]

    def get_serializer_class(self):
        if self.action == "retrieve":
            return EnrollmentDetailSerializer
        if self.action == "update_status":
            return EnrollmentStatusSerializer
        return EnrollmentSerializer

    def perform_create(self, serializer):
        data = serializer.validated_data
        services.ensure_enrollable(data["student"], data["course"],
                                   data.get("status", EnrollmentStatus.ACTIVE))
        enrollment = serializer.save()
        logger.info("Student %s enrolled in course %s", enrollment.student_id, enrollment.course_id)

    @transaction.atomic
    def perform_update(self, serializer):
        instance = serializer.instance
        data = serializer.validated_data
        student = data.get("student", instance.student)
        course = data.get("course", instance.course)
        services.ensure_reassignable(instance, student, course)
        services.ensure_enrollable(
            student,
            course,
            data.get("status", instance.status),
            exclude_pk=instance.pk,
            #an enrollment may stay on a course that was deactivated later
            check_course=course.pk != instance.course_id,
        )
        serializer.save()

    def perform_destroy(self, instance):
        payments_count = instance.payments.count()
        if payments_count:
            raise BusinessRuleViolation(
                "Cannot delete enrollment with payment records",
                payments_count=payments_count,
            )
        instance.delete()

    @extend_schema(request=EnrollmentStatusSerializer, responses=EnrollmentSerializer)
    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        enrollment = self.get_object()
        serializer = EnrollmentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        services.ensure_enrollable(enrollment.student, enrollment.course, new_status,
                                   exclude_pk=enrollment.pk, check_course=False)
        enrollment.status = new_status
        enrollment.save(update_fields=["status", "updated_at"])
        logger.info("Enrollment %s status set to %s", enrollment.pk, new_status)
        return Response(EnrollmentSerializer(enrollment).data)

    #unpaginated listings for one course or one student
    @action(detail=False, methods=["get"], url_path=r"by-course/(?P<course_id>\d+)")
    def by_course(self, request, course_id=None):
        qs = self.get_queryset().filter(course_id=course_id).order_by("student__name")
        return Response(EnrollmentSerializer(qs, many=True).data)

    @action(detail=False, methods=["get"], url_path=r"by-student/(?P<student_id>\d+)")
    def by_student(self, request, student_id=None):
        qs = self.get_queryset().filter(student_id=student_id).order_by("course__name")
        return Response(EnrollmentSerializer(qs, many=True).data)
