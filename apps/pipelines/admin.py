"""Admin configuration for pipelines models."""

from django.contrib import admin
from django.utils.html import format_html

from apps.pipelines.models import Build, Pipeline
from config.admin import prettify_json

STATUS_COLORS = {
    "pending": "#6c757d",
    "running": "#17a2b8",
    "success": "#28a745",
    "failed": "#dc3545",
    "cancelled": "#ffc107",
}


def _status_badge(status: str):
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 8px; '
        'border-radius: 3px; font-size: 11px;">{}</span>',
        STATUS_COLORS.get(status, "#6c757d"),
        status.upper(),
    )


class BuildInline(admin.TabularInline):
    """Inline display of recent builds within a pipeline."""

    model = Build
    extra = 0
    readonly_fields = ["external_id", "status", "branch", "started_at", "duration"]
    fields = ["external_id", "status", "branch", "started_at", "duration"]
    can_delete = False
    show_change_link = True
    ordering = ["-started_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Pipeline)
class PipelineAdmin(admin.ModelAdmin):
    """Admin for Pipeline model."""

    list_display = ["name", "provider", "native_ref", "team", "is_active", "build_count"]
    list_filter = ["provider", "is_active"]
    search_fields = ["name", "native_ref", "team"]
    readonly_fields = ["created_at", "updated_at", "pretty_config"]
    inlines = [BuildInline]

    fieldsets = [
        (None, {"fields": ["name", "provider", "native_ref", "team", "is_active"]}),
        ("Configuration", {"fields": ["config", "pretty_config"], "classes": ["collapse"]}),
        ("Timestamps", {"fields": ["created_at", "updated_at"]}),
    ]

    @admin.display(description="Builds")
    def build_count(self, obj):
        return obj.builds.count()

    @admin.display(description="Config (formatted)")
    def pretty_config(self, obj):
        return prettify_json(obj.config)


@admin.register(Build)
class BuildAdmin(admin.ModelAdmin):
    """Admin for Build model. Builds are written by webhook ingestion only."""

    list_display = [
        "external_id",
        "pipeline",
        "status_badge",
        "branch",
        "short_commit",
        "duration",
        "started_at",
    ]
    list_filter = ["status", "pipeline__provider", "pipeline"]
    search_fields = ["external_id", "commit_hash", "branch", "author", "pipeline__name"]
    readonly_fields = [
        "pipeline",
        "external_id",
        "status",
        "branch",
        "commit_hash",
        "commit_message",
        "author",
        "web_url",
        "started_at",
        "completed_at",
        "duration",
        "received_at",
        "updated_at",
        "pretty_raw_payload",
    ]
    exclude = ["raw_payload"]
    date_hierarchy = "started_at"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("pipeline")

    def has_add_permission(self, request):
        return False

    @admin.display(description="Status")
    def status_badge(self, obj):
        return _status_badge(obj.status)

    @admin.display(description="Commit")
    def short_commit(self, obj):
        return obj.commit_hash[:8] if obj.commit_hash else "-"

    @admin.display(description="Raw Payload")
    def pretty_raw_payload(self, obj):
        return prettify_json(obj.raw_payload)
