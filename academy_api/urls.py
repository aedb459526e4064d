from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView

from enrollments.views import (
    CourseViewSet, DashboardViewSet, EnrollmentViewSet, PaymentViewSet, StudentViewSet, UploadViewSet,
)

router = DefaultRouter()
router.register(r"students", StudentViewSet)
router.register(r"courses", CourseViewSet)
router.register(r"enrollments", EnrollmentViewSet)
router.register(r"payments", PaymentViewSet)
router.register(r"dashboard", DashboardViewSet, basename="dashboard")
router.register(r"upload", UploadViewSet, basename="upload")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include(router.urls)),

    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),

    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
]

# uploaded student documents; served by the web server in production
urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
