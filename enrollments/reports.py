from datetime import datetime

from django.http import HttpResponse
from django.template.loader import get_template
from xhtml2pdf import pisa

from .balances import ZERO
from .models import Enrollment, Student


def payment_summary(student: Student) -> dict:
    """Per-enrollment price / paid / outstanding figures for one student."""
    enrollments = (
        Enrollment.objects  # pylint: disable=no-member
        .filter(student=student)
        .select_related("course")
        .prefetch_related("payments")
        .order_by("start_date", "id")
    )
    summary = []
    for enrollment in enrollments:
        balance = enrollment.balance
        summary.append({
            "enrollment_id": enrollment.id,
            "course_name": enrollment.course.name,
            "course_price": enrollment.course.price,
            "total_paid": balance.total_paid,
            "outstanding": balance.outstanding,
            "is_fully_paid": balance.is_fully_paid,
            "status": enrollment.status,
            "start_date": enrollment.start_date,
            "end_date": enrollment.end_date,
        })

    return {
        "student_id": student.id,
        "summary": summary,
        "totals": {
            "outstanding": sum((item["outstanding"] for item in summary), ZERO),
            "paid": sum((item["total_paid"] for item in summary), ZERO),
        },
    }


def render_pdf(request, template_name: str, context: dict, filename: str) -> HttpResponse:
    template = get_template(template_name)
    html = template.render(context)

    #?download=0 shows the PDF in the browser instead of downloading it
    download_flag = (request.GET.get("download", "1") or "1").lower()
    disposition = "inline" if download_flag in ("0", "false", "no") else "attachment"

    timestamp = datetime.now().strftime("%Y%m%d_%H%M")
    stem = filename[:-4] if filename.endswith(".pdf") else filename
    response = HttpResponse(content_type="application/pdf")
    response["Content-Disposition"] = f'{disposition}; filename="{stem}_{timestamp}.pdf"'

    result = pisa.CreatePDF(src=html, dest=response, encoding="utf-8")
    if result.err:
        return HttpResponse("Error generating PDF", status=500)
    return response
