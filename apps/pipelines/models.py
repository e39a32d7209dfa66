"""
Pipeline and Build models.

Pipelines are configured once and only read here to resolve incoming provider
events. Builds are the canonical, provider-independent record of a single
run, keyed by (pipeline, external_id).
"""

from django.db import models


class PipelineProvider(models.TextChoices):
    """CI/CD providers that can deliver build events."""

    GITHUB = "github", "GitHub Actions"
    GITLAB = "gitlab", "GitLab CI"
    JENKINS = "jenkins", "Jenkins"
    AZURE = "azure", "Azure DevOps"


class BuildStatus(models.TextChoices):
    """Canonical build status shared by all providers."""

    PENDING = "pending", "Pending"
    RUNNING = "running", "Running"
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


TERMINAL_STATUSES = frozenset({BuildStatus.SUCCESS, BuildStatus.FAILED, BuildStatus.CANCELLED})

# Lifecycle order: pending -> running -> terminal. All terminal states share a rank.
STATUS_RANK = {
    BuildStatus.PENDING: 0,
    BuildStatus.RUNNING: 1,
    BuildStatus.SUCCESS: 2,
    BuildStatus.FAILED: 2,
    BuildStatus.CANCELLED: 2,
}


def status_rank(status: str) -> int:
    return STATUS_RANK.get(status, 0)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


class PipelineQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def resolve(self, provider: str, native_ref) -> "Pipeline | None":
        """Return the active pipeline addressed by a provider-native reference."""
        if native_ref in (None, ""):
            return None
        return self.active().filter(provider=provider, native_ref=str(native_ref)).first()


class Pipeline(models.Model):
    """
    A CI/CD pipeline tracked by the dashboard.

    `native_ref` is the provider-specific address used to match events:
    the repository full name for GitHub, the project id for GitLab and
    Azure DevOps, and the job name for Jenkins.
    """

    name = models.CharField(
        max_length=255,
        help_text="Display name of the pipeline.",
    )
    provider = models.CharField(
        max_length=20,
        choices=PipelineProvider.choices,
        db_index=True,
    )
    native_ref = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Repository, project id, or job name used by the provider.",
    )
    team = models.CharField(
        max_length=100,
        blank=True,
        default="",
    )
    config = models.JSONField(
        default=dict,
        blank=True,
        help_text="Provider-specific configuration (branches, URLs, etc.).",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PipelineQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["provider", "native_ref"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.provider}:{self.native_ref})"


class BuildQuerySet(models.QuerySet):
    def for_pipeline(self, pipeline_id):
        return self.filter(pipeline_id=pipeline_id)

    def most_recent_first(self):
        return self.order_by("-started_at", "-id")


class Build(models.Model):
    """
    A single build/run of a pipeline, normalized from a provider event.

    Re-delivery of the same provider event updates this row; it never
    creates a second one for the same (pipeline, external_id).
    """

    pipeline = models.ForeignKey(
        Pipeline,
        on_delete=models.CASCADE,
        related_name="builds",
    )
    external_id = models.CharField(
        max_length=255,
        help_text="Provider-native build/run identifier.",
    )
    status = models.CharField(
        max_length=20,
        choices=BuildStatus.choices,
        default=BuildStatus.PENDING,
        db_index=True,
    )

    # Source details
    branch = models.CharField(max_length=255, blank=True, default="")
    commit_hash = models.CharField(max_length=255, blank=True, default="")
    commit_message = models.TextField(blank=True, default="")
    author = models.CharField(max_length=255, blank=True, default="")
    web_url = models.URLField(max_length=500, blank=True, default="")

    # Timing
    started_at = models.DateTimeField(db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    duration = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Build duration in seconds (completed_at - started_at).",
    )

    raw_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last provider event applied to this build.",
    )
    received_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BuildQuerySet.as_manager()

    class Meta:
        ordering = ["-started_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["pipeline", "external_id"],
                name="unique_build_per_pipeline",
            ),
        ]
        indexes = [
            models.Index(fields=["pipeline", "-started_at"]),
            models.Index(fields=["status", "started_at"]),
        ]

    def __str__(self):
        return f"{self.pipeline.name} #{self.external_id} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)
