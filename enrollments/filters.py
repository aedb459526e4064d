import django_filters

from .models import Course, Enrollment, EnrollmentStatus, Payment, PaymentMethod, Student


class StudentFilter(django_filters.FilterSet):
    #students having at least one enrollment in a course whose name matches
    course = django_filters.CharFilter(field_name="enrollments__course__name", lookup_expr="icontains",
                                       distinct=True)
    status = django_filters.ChoiceFilter(field_name="enrollments__status", choices=EnrollmentStatus.choices,
                                         distinct=True)

    class Meta:
        model = Student
        fields = ["course", "status"]


class CourseFilter(django_filters.FilterSet):
    active = django_filters.BooleanFilter(field_name="is_active")

    class Meta:
        model = Course
        fields = ["active"]


class EnrollmentFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=EnrollmentStatus.choices)
    batch = django_filters.CharFilter(lookup_expr="icontains")
    start_date = django_filters.DateFilter(field_name="start_date", lookup_expr="gte")
    end_date = django_filters.DateFilter(field_name="end_date", lookup_expr="lte")

    class Meta:
        model = Enrollment
        fields = ["student", "course", "status", "batch", "start_date", "end_date"]


class PaymentFilter(django_filters.FilterSet):
    method = django_filters.ChoiceFilter(choices=PaymentMethod.choices)
    #both bounds apply to the payment date
    start_date = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    end_date = django_filters.DateFilter(field_name="date", lookup_expr="lte")

    class Meta:
        model = Payment
        fields = ["student", "enrollment", "method", "start_date", "end_date"]
