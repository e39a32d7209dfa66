"""Django app configuration for the pipelines app."""

from django.apps import AppConfig


class PipelinesConfig(AppConfig):
    """Configuration for the Pipelines app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.pipelines"
    verbose_name = "CI/CD Pipelines"
