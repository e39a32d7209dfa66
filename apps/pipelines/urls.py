"""
URL configuration for the pipelines app.
"""

from django.urls import path

from apps.pipelines.views import MetricsOverviewView, PipelineMetricsView, ProviderWebhookView

app_name = "pipelines"

urlpatterns = [
    # Provider webhooks (pipeline resolved from the payload)
    path("webhooks/<str:provider>/", ProviderWebhookView.as_view(), name="webhook"),
    # Provider webhooks addressed to a known pipeline
    path(
        "<int:pipeline_id>/webhooks/<str:provider>/",
        ProviderWebhookView.as_view(),
        name="pipeline_webhook",
    ),
    # Metrics
    path("metrics/", MetricsOverviewView.as_view(), name="metrics_overview"),
    path("<int:pipeline_id>/metrics/", PipelineMetricsView.as_view(), name="pipeline_metrics"),
]
