from decimal import Decimal

from django.db.models import Max, Sum
from rest_framework import serializers
from rest_framework.validators import UniqueValidator

from .models import Course, Enrollment, EnrollmentStatus, Payment, PaymentMethod, Student


def _payment_status(enrollment) -> dict:
    return enrollment.balance.as_dict()


# --- Students ---

class StudentEnrollmentSerializer(serializers.ModelSerializer):
    """Enrollment as embedded in a student, with what is still owed."""
    course_name = serializers.CharField(source="course.name", read_only=True)
    course_price = serializers.DecimalField(source="course.price", max_digits=10, decimal_places=2,
                                            read_only=True)
    payment_status = serializers.SerializerMethodField()

    class Meta:
        model = Enrollment
        fields = ["id", "course", "course_name", "course_price", "status", "batch",
                  "start_date", "end_date", "payment_status"]

    def get_payment_status(self, obj):
        return _payment_status(obj)


class StudentSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=100, trim_whitespace=True)
    email = serializers.EmailField(
        validators=[UniqueValidator(queryset=Student.objects.all(),  # pylint: disable=no-member
                                    message="Email already registered", lookup="iexact")]
    )
    phone = serializers.CharField(min_length=10, max_length=15, trim_whitespace=True)
    nric_passport_id = serializers.CharField(
        min_length=3, max_length=50, required=False, allow_null=True, allow_blank=True,
        validators=[UniqueValidator(queryset=Student.objects.all(),  # pylint: disable=no-member
                                    message="NRIC/Passport ID already exists")],
    )
    documents = serializers.ListField(child=serializers.CharField(), required=False)
    enrollments = StudentEnrollmentSerializer(many=True, read_only=True)

    class Meta:
        model = Student
        fields = ["id", "name", "email", "phone", "nric_passport_id", "address", "remarks",
                  "documents", "enrollments", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]

    def validate_email(self, value):
        return value.strip().lower()

    def validate_nric_passport_id(self, value):
        #blank means "no ID", stored as NULL so the unique index ignores it
        return value or None


class PaymentBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "amount", "method", "date", "notes"]


class StudentDetailEnrollmentSerializer(StudentEnrollmentSerializer):
    payments = PaymentBriefSerializer(many=True, read_only=True)

    class Meta(StudentEnrollmentSerializer.Meta):
        fields = StudentEnrollmentSerializer.Meta.fields + ["payments"]


class StudentDetailSerializer(StudentSerializer):
    enrollments = StudentDetailEnrollmentSerializer(many=True, read_only=True)


class BulkImportSerializer(serializers.Serializer):
    #rows are checked one by one by csv_import.validate_row, not here
    students = serializers.ListField(child=serializers.DictField(), allow_empty=False)
    create_enrollments = serializers.BooleanField(default=False)


# --- Courses ---

class CourseSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    duration = serializers.CharField(max_length=50, required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    enrollments_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Course
        fields = ["id", "name", "description", "duration", "price", "is_active",
                  "enrollments_count", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]
        # the Lower("name") index is covered by validate_name
        validators = []

    def validate_name(self, value):
        #names are unique regardless of case
        clash = Course.objects.filter(name__iexact=value)  # pylint: disable=no-member
        if self.instance is not None:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise serializers.ValidationError("Course name already exists")
        return value

    def validate_price(self, value):
        if self.instance is None:
            return value
        most_paid = (
            self.instance.enrollments
            .annotate(paid=Sum("payments__amount"))
            .aggregate(most=Max("paid"))["most"]
        )
        if most_paid is not None and value < most_paid:
            raise serializers.ValidationError(
                f"Price cannot be lower than the {most_paid} already paid on an enrollment"
            )
        return value


class CourseEnrollmentSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source="student.name", read_only=True)
    student_email = serializers.CharField(source="student.email", read_only=True)

    class Meta:
        model = Enrollment
        fields = ["id", "student", "student_name", "student_email", "status", "batch",
                  "start_date", "end_date"]


class CourseDetailSerializer(CourseSerializer):
    enrollments = CourseEnrollmentSerializer(many=True, read_only=True)

    class Meta(CourseSerializer.Meta):
        fields = CourseSerializer.Meta.fields + ["enrollments"]


# --- Enrollments ---

class EnrollmentSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source="student.name", read_only=True)
    student_email = serializers.CharField(source="student.email", read_only=True)
    course_name = serializers.CharField(source="course.name", read_only=True)
    course_price = serializers.DecimalField(source="course.price", max_digits=10, decimal_places=2,
                                            read_only=True)
    batch = serializers.CharField(max_length=50, required=False, allow_blank=True)
    payment_status = serializers.SerializerMethodField()

    class Meta:
        model = Enrollment
        fields = ["id", "student", "student_name", "student_email", "course", "course_name",
                  "course_price", "status", "batch", "start_date", "end_date",
                  "payment_status", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]
        # the partial unique index is checked by services.ensure_enrollable
        validators = []

    def get_payment_status(self, obj):
        return _payment_status(obj)

    def validate_batch(self, value):
        return value.strip()

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "End date cannot be before start date"})
        return attrs


class EnrollmentDetailSerializer(EnrollmentSerializer):
    payments = PaymentBriefSerializer(many=True, read_only=True)

    class Meta(EnrollmentSerializer.Meta):
        fields = EnrollmentSerializer.Meta.fields + ["payments"]


class EnrollmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EnrollmentStatus.choices,
                                     error_messages={"invalid_choice": "Invalid status"})


# --- Payments ---

class PaymentSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source="student.name", read_only=True)
    course_name = serializers.CharField(source="enrollment.course.name", read_only=True)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    method = serializers.ChoiceField(choices=PaymentMethod.choices,
                                     error_messages={"invalid_choice": "Invalid payment method"})
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, trim_whitespace=True)

    class Meta:
        model = Payment
        fields = ["id", "student", "student_name", "enrollment", "course_name", "amount",
                  "method", "date", "notes", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]


# --- Composite creation ---

class FullCreateStudentSerializer(StudentSerializer):
    nric_passport_id = serializers.CharField(
        min_length=3, max_length=50,
        validators=[UniqueValidator(queryset=Student.objects.all(),  # pylint: disable=no-member
                                    message="NRIC/Passport ID already exists")],
    )

    class Meta(StudentSerializer.Meta):
        fields = ["name", "email", "phone", "nric_passport_id", "address", "remarks", "documents"]


class FullCreateEnrollmentSerializer(serializers.Serializer):
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all())  # pylint: disable=no-member
    batch = serializers.CharField(max_length=50, required=False, allow_blank=True)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=EnrollmentStatus.choices, required=False)


class FullCreatePaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    date = serializers.DateField()
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)
    #defaults to the enrollment created in the same request
    enrollment = serializers.PrimaryKeyRelatedField(
        queryset=Enrollment.objects.all(), required=False, allow_null=True  # pylint: disable=no-member
    )
