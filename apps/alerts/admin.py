"""Admin configuration for alerts models."""

from django.contrib import admin
from django.utils.html import format_html
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.alerts.models import AlertRule, AlertRuleStatus, AlertTrigger
from apps.alerts.services import AlertRuleManager

SEVERITY_COLORS = {
    "critical": "#dc3545",
    "high": "#fd7e14",
    "medium": "#ffc107",
    "low": "#17a2b8",
}

STATUS_COLORS = {
    "active": "#28a745",
    "triggered": "#dc3545",
    "acknowledged": "#ffc107",
}


def _badge(value: str, colors: dict[str, str]):
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 8px; '
        'border-radius: 3px; font-size: 11px;">{}</span>',
        colors.get(value, "#6c757d"),
        value.upper(),
    )


class AlertTriggerInline(admin.TabularInline):
    """Inline display of recent triggers of a rule."""

    model = AlertTrigger
    extra = 0
    readonly_fields = [
        "triggered_at",
        "severity",
        "message",
        "channels_attempted",
        "channels_succeeded",
        "notification_error",
    ]
    fields = readonly_fields
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(AlertRule)
class AlertRuleAdmin(DjangoObjectActions, admin.ModelAdmin):
    """Admin for AlertRule model."""

    list_display = [
        "name",
        "pipeline",
        "condition_display",
        "severity_badge",
        "status_badge",
        "enabled",
        "cooldown_minutes",
        "last_triggered",
    ]
    list_filter = ["status", "severity", "enabled", "condition_type"]
    search_fields = ["name", "description", "pipeline__name"]
    readonly_fields = [
        "status",
        "last_triggered",
        "acknowledged_by",
        "acknowledged_at",
        "acknowledgement_notes",
        "created_at",
        "updated_at",
    ]
    inlines = [AlertTriggerInline]
    actions = ["acknowledge_selected", "reset_selected"]
    change_actions = ["acknowledge_rule", "reset_rule", "send_test_alert"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("pipeline")

    fieldsets = [
        (
            None,
            {
                "fields": ["name", "pipeline", "description", "enabled"],
            },
        ),
        (
            "Condition",
            {
                "fields": ["condition_type", "operator", "threshold", "cooldown_minutes"],
            },
        ),
        (
            "Notification",
            {
                "fields": ["severity", "channels"],
            },
        ),
        (
            "State",
            {
                "fields": [
                    "status",
                    "last_triggered",
                    "acknowledged_by",
                    "acknowledged_at",
                    "acknowledgement_notes",
                ],
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

    @admin.action(description="Acknowledge selected rules")
    def acknowledge_selected(self, request, queryset):
        count = 0
        for rule in queryset.exclude(status=AlertRuleStatus.ACKNOWLEDGED):
            AlertRuleManager.acknowledge(rule.pk, acknowledged_by=request.user.get_username())
            count += 1
        self.message_user(request, f"{count} rule(s) acknowledged.")

    @admin.action(description="Reset selected rules")
    def reset_selected(self, request, queryset):
        count = 0
        for rule in queryset:
            AlertRuleManager.reset(rule.pk)
            count += 1
        self.message_user(request, f"{count} rule(s) reset.")

    @object_action(label="Acknowledge", description="Stop this rule firing until it is reset")
    def acknowledge_rule(self, request, obj):
        if obj.status != AlertRuleStatus.ACKNOWLEDGED:
            AlertRuleManager.acknowledge(obj.pk, acknowledged_by=request.user.get_username())
            self.message_user(request, f"Rule '{obj.name}' acknowledged.")
        else:
            self.message_user(request, "Already acknowledged.", level="warning")

    @object_action(label="Reset", description="Return this rule to active and clear its cooldown")
    def reset_rule(self, request, obj):
        AlertRuleManager.reset(obj.pk)
        self.message_user(request, f"Rule '{obj.name}' reset to active.")

    @object_action(label="Send test", description="Send a test alert to this rule's channels")
    def send_test_alert(self, request, obj):
        if not obj.channels:
            self.message_user(request, "Rule has no notification channels.", level="warning")
            return
        result = AlertRuleManager.send_test(obj.pk)
        if result.all_succeeded:
            self.message_user(request, f"Test alert sent via {', '.join(result.succeeded)}.")
        else:
            self.message_user(
                request, f"Test alert failed: {result.error_summary()}", level="error"
            )

    @admin.display(description="Condition")
    def condition_display(self, obj):
        return obj.condition_description()

    @admin.display(description="Severity")
    def severity_badge(self, obj):
        return _badge(obj.severity, SEVERITY_COLORS)

    @admin.display(description="Status")
    def status_badge(self, obj):
        return _badge(obj.status, STATUS_COLORS)


@admin.register(AlertTrigger)
class AlertTriggerAdmin(admin.ModelAdmin):
    """Admin for AlertTrigger model."""

    list_display = [
        "rule",
        "severity_badge",
        "triggered_at",
        "metric_value",
        "delivery_display",
    ]
    list_filter = ["severity", "rule__pipeline"]
    search_fields = ["rule__name", "message"]
    readonly_fields = [
        "rule",
        "build",
        "triggered_at",
        "severity",
        "message",
        "metric_value",
        "channels_attempted",
        "channels_succeeded",
        "notification_error",
    ]
    date_hierarchy = "triggered_at"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("rule")

    def has_add_permission(self, request):
        """Triggers are created by rule evaluation only."""
        return False

    def has_change_permission(self, request, obj=None):
        """Triggers are audit records."""
        return False

    @admin.display(description="Severity")
    def severity_badge(self, obj):
        return _badge(obj.severity, SEVERITY_COLORS)

    @admin.display(description="Delivered")
    def delivery_display(self, obj):
        attempted = len(obj.channels_attempted or [])
        succeeded = len(obj.channels_succeeded or [])
        if attempted and succeeded < attempted:
            return format_html(
                '<span style="color: #dc3545; font-weight: bold;">{}/{}</span>',
                succeeded,
                attempted,
            )
        return f"{succeeded}/{attempted}"
