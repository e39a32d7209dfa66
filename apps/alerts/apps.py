"""Django app configuration for the alerts app."""

from django.apps import AppConfig


class AlertsConfig(AppConfig):
    """Configuration for the Alerts app.

    Connects the build_completed receiver that runs rule evaluation.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.alerts"
    verbose_name = "Alerts"

    def ready(self):
        from apps.alerts import receivers  # noqa: F401
