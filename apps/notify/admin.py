"""Admin configuration for notify models."""

from django.contrib import admin
from django.db import models as db_models
from django_json_widget.widgets import JSONEditorWidget
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.notify.models import NotificationChannel


@admin.register(NotificationChannel)
class NotificationChannelAdmin(DjangoObjectActions, admin.ModelAdmin):
    """Admin for NotificationChannel model."""

    list_display = [
        "name",
        "channel_type",
        "is_active",
        "created_at",
        "updated_at",
    ]
    formfield_overrides = {db_models.JSONField: {"widget": JSONEditorWidget}}
    list_filter = ["channel_type", "is_active"]
    search_fields = ["name", "description"]
    readonly_fields = ["created_at", "updated_at"]
    change_actions = ["send_test_notification"]

    fieldsets = [
        (
            None,
            {
                "fields": ["name", "channel_type", "is_active", "description"],
            },
        ),
        (
            "Configuration",
            {
                "fields": ["config"],
                "classes": ["collapse"],
            },
        ),
        (
            "Timestamps",
            {
                "fields": ["created_at", "updated_at"],
                "classes": ["collapse"],
            },
        ),
    ]

    @object_action(label="Send test", description="Send a test notification through this channel")
    def send_test_notification(self, request, obj):
        from apps.notify.dispatcher import NotificationDispatcher
        from apps.notify.services import build_test_notification

        result = NotificationDispatcher(configs={obj.channel_type: obj.config}).dispatch(
            build_test_notification(), [obj.channel_type]
        )
        if result.all_succeeded:
            self.message_user(request, f"Test notification sent via '{obj.name}'.")
        else:
            self.message_user(
                request, f"Test notification failed: {result.error_summary()}", level="error"
            )
