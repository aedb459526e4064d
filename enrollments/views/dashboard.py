from datetime import timedelta

from django.db.models import Count, Sum
from django.db.models.functions import TruncDate, TruncMonth
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import serializers, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ..balances import ZERO
from ..models import Course, Enrollment, EnrollmentStatus, Payment, Student

#how far back each ?period= value reaches
PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}
OVERVIEW_REVENUE_DAYS = 183
PERIOD_PARAM = OpenApiParameter("period", str, enum=list(PERIOD_DAYS), default="month")


def _period_start(request):
    period = request.query_params.get("period", "month")
    if period not in PERIOD_DAYS:
        raise serializers.ValidationError({"period": [f"Must be one of: {', '.join(PERIOD_DAYS)}"]})
    return timezone.now() - timedelta(days=PERIOD_DAYS[period])


def _revenue(queryset=None):
    queryset = Payment.objects.all() if queryset is None else queryset  # pylint: disable=no-member
    return queryset.aggregate(total=Sum("amount"))["total"] or ZERO


def _outstanding_on_active_enrollments():
    active = (
        Enrollment.objects  # pylint: disable=no-member
        .filter(status=EnrollmentStatus.ACTIVE)
        .select_related("course")
        .prefetch_related("payments")
    )
    return sum((enrollment.balance.outstanding for enrollment in active), ZERO)


def _courses_by_enrollments(limit=None):
    courses = (
        Course.objects  # pylint: disable=no-member
        .filter(is_active=True)
        .annotate(enrollments_count=Count("enrollments"))
        .order_by("-enrollments_count", "name")
    )
    if limit:
        courses = courses[:limit]
    return [
        {"id": c.id, "course_name": c.name, "price": c.price, "enrollments_count": c.enrollments_count}
        for c in courses
    ]


@extend_schema(tags=["Dashboard"])
class DashboardViewSet(viewsets.ViewSet):
    """Read-only aggregates for the dashboard page."""

    @action(detail=False, methods=["get"])
    def overview(self, request):
        enrollments = Enrollment.objects  # pylint: disable=no-member
        courses = Course.objects  # pylint: disable=no-member

        recent_enrollments = enrollments.select_related("student", "course").order_by("-created_at", "-id")[:5]
        recent_payments = (
            Payment.objects.select_related("student", "enrollment__course")  # pylint: disable=no-member
            .order_by("-date", "-id")[:5]
        )

        since = timezone.localdate() - timedelta(days=OVERVIEW_REVENUE_DAYS)
        monthly = (
            Payment.objects.filter(date__gte=since)  # pylint: disable=no-member
            .annotate(month=TruncMonth("date"))
            .values("month")
            .annotate(amount=Sum("amount"))
            .order_by("month")
        )

        return Response({
            "overview": {
                "total_students": Student.objects.count(),  # pylint: disable=no-member
                "active_enrollments": enrollments.filter(status=EnrollmentStatus.ACTIVE).count(),
                "completed_enrollments": enrollments.filter(status=EnrollmentStatus.COMPLETED).count(),
                "total_courses": courses.count(),
                "active_courses": courses.filter(is_active=True).count(),
                "total_payments": Payment.objects.count(),  # pylint: disable=no-member
                "total_revenue": _revenue(),
                "outstanding_amount": _outstanding_on_active_enrollments(),
            },
            "recent_enrollments": [
                {
                    "id": e.id,
                    "student_name": e.student.name,
                    "student_email": e.student.email,
                    "course_name": e.course.name,
                    "course_price": e.course.price,
                    "status": e.status,
                    "created_at": e.created_at,
                } for e in recent_enrollments
            ],
            "recent_payments": [
                {
                    "id": p.id,
                    "student_name": p.student.name,
                    "course_name": p.enrollment.course.name,
                    "amount": p.amount,
                    "method": p.method,
                    "date": p.date,
                } for p in recent_payments
            ],
            "course_enrollments": _courses_by_enrollments(limit=5),
            "monthly_revenue": [
                {"month": row["month"].strftime("%Y-%m"), "amount": row["amount"]} for row in monthly
            ],
        })

    @extend_schema(parameters=[PERIOD_PARAM])
    @action(detail=False, methods=["get"])
    def enrollments(self, request):
        start = _period_start(request)
        enrollments = Enrollment.objects  # pylint: disable=no-member
        by_status = dict(
            enrollments.values_list("status").annotate(total=Count("id")).order_by()
        )
        over_time = (
            enrollments.filter(created_at__gte=start)
            .annotate(day=TruncDate("created_at"))
            .values("day", "status")
            .annotate(count=Count("id"))
            .order_by("day", "status")
        )

        return Response({
            "statistics": {
                "total": enrollments.count(),
                "active": by_status.get(EnrollmentStatus.ACTIVE, 0),
                "completed": by_status.get(EnrollmentStatus.COMPLETED, 0),
                "cancelled": by_status.get(EnrollmentStatus.CANCELLED, 0),
                "suspended": by_status.get(EnrollmentStatus.SUSPENDED, 0),
                "new": enrollments.filter(created_at__gte=start).count(),
            },
            "by_course": _courses_by_enrollments(),
            "over_time": [
                {"date": row["day"].isoformat(), "status": row["status"], "count": row["count"]}
                for row in over_time
            ],
        })

    @extend_schema(parameters=[PERIOD_PARAM])
    @action(detail=False, methods=["get"])
    def payments(self, request):
        start_date = _period_start(request).date()
        payments = Payment.objects  # pylint: disable=no-member
        by_method = (
            payments.values("method")
            .annotate(amount=Sum("amount"), count=Count("id"))
            .order_by("method")
        )
        daily = (
            payments.filter(date__gte=start_date)
            .values("date")
            .annotate(amount=Sum("amount"))
            .order_by("date")
        )

        return Response({
            "revenue": {
                "total": _revenue(),
                "period": _revenue(payments.filter(date__gte=start_date)),
                "outstanding": _outstanding_on_active_enrollments(),
            },
            "by_method": [
                {"method": row["method"], "amount": row["amount"], "count": row["count"]} for row in by_method
            ],
            "daily": [{"date": row["date"].isoformat(), "amount": row["amount"]} for row in daily],
        })

    @action(detail=False, methods=["get"])
    def students(self, request):
        month_start = timezone.localtime().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        top_students = (
            Student.objects  # pylint: disable=no-member
            .annotate(enrollment_count=Count("enrollments"))
            .order_by("-enrollment_count", "name")[:10]
        )

        return Response({
            "total": Student.objects.count(),  # pylint: disable=no-member
            "new_this_month": Student.objects.filter(created_at__gte=month_start).count(),  # pylint: disable=no-member
            "by_course": [
                {"course_name": c["course_name"], "student_count": c["enrollments_count"]}
                for c in _courses_by_enrollments()
            ],
            "top_students": [
                {"name": s.name, "email": s.email, "enrollment_count": s.enrollment_count}
                for s in top_students
            ],
        })
