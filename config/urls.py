"""
URL configuration for the pipeline health project.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("pipelines/", include("apps.pipelines.urls")),
    path("alerts/", include("apps.alerts.urls")),
    path("notify/", include("apps.notify.urls")),
]
