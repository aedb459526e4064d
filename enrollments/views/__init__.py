from .courses import CourseViewSet
from .dashboard import DashboardViewSet
from .enrollments import EnrollmentViewSet
from .payments import PaymentViewSet
from .students import StudentViewSet
from .upload import UploadViewSet

__all__ = [
    "CourseViewSet",
    "DashboardViewSet",
    "EnrollmentViewSet",
    "PaymentViewSet",
    "StudentViewSet",
    "UploadViewSet",
]
