from django.contrib import admin

from .models import Course, Enrollment, Payment, Student


class EnrollmentInline(admin.TabularInline):
    model = Enrollment
    extra = 0
    fields = ["course", "status", "batch", "start_date", "end_date"]


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "phone", "nric_passport_id", "created_at"]
    search_fields = ["name", "email", "phone", "nric_passport_id"]
    inlines = [EnrollmentInline]


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ["name", "price", "duration", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name"]


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ["student", "course", "status", "batch", "start_date"]
    list_filter = ["status", "course"]
    search_fields = ["student__name", "student__email", "course__name"]
    list_select_related = ["student", "course"]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["student", "enrollment", "amount", "method", "date"]
    list_filter = ["method"]
    date_hierarchy = "date"
    list_select_related = ["student", "enrollment__course", "enrollment__student"]
