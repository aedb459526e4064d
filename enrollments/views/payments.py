from datetime import datetime

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .. import services
from ..filters import PaymentFilter
from ..models import Payment, Student
from ..reports import payment_summary, render_pdf
from ..serializers import PaymentSerializer


@extend_schema(tags=["Payments"])
class PaymentViewSet(viewsets.ModelViewSet):
    queryset = Payment.objects.select_related("student", "enrollment__course").all()  # pylint: disable=no-member
    serializer_class = PaymentSerializer
    filterset_class = PaymentFilter
    search_fields = ["student__name", "student__email", "notes"]
    ordering_fields = ["date", "amount", "created_at"]
    ordering = ["-date", "-id"]

    def perform_create(self, serializer):
        # over-price check, insert and COMPLETED transition share one transaction
        serializer.instance = services.record_payment(**serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = services.update_payment(serializer.instance, **serializer.validated_data)

    @action(detail=False, methods=["get"], url_path=r"student/(?P<student_id>\d+)/summary")
    def student_summary(self, request, student_id=None):
        student = get_object_or_404(Student, pk=student_id)
        return Response(payment_summary(student))

    @action(detail=False, methods=["get"], url_path=r"student/(?P<student_id>\d+)/statement-pdf")
    def student_statement_pdf(self, request, student_id=None):
        student = get_object_or_404(Student, pk=student_id)
        ctx = {
            "student": student,
            **payment_summary(student),
            "generated_at": datetime.now().strftime("%Y-%m-%d %H:%M"),
        }
        return render_pdf(request, "enrollments/student_statement.html", ctx,
                          f"statement_{student.id}.pdf")
