"""
Alert rule and trigger history models.

An AlertRule watches one pipeline metric; an AlertTrigger is appended each
time a rule fires. Cooldown and acknowledgement state live on the rule and
are only advanced through `AlertRule.objects.try_trigger`.
"""

from datetime import timedelta

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class AlertSeverity(models.TextChoices):
    """Severity levels for alert rules."""

    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class ConditionType(models.TextChoices):
    """Pipeline metric a rule compares against its threshold."""

    SUCCESS_RATE = "success_rate", "Success Rate"
    BUILD_TIME = "build_time", "Build Time"
    FAILURE_COUNT = "failure_count", "Failure Count"
    CONSECUTIVE_FAILURES = "consecutive_failures", "Consecutive Failures"


class Operator(models.TextChoices):
    """Comparison between the metric value and the threshold."""

    LT = "<", "less than"
    LTE = "<=", "less than or equal to"
    GT = ">", "greater than"
    GTE = ">=", "greater than or equal to"
    EQ = "==", "equal to"
    NE = "!=", "not equal to"


class AlertRuleStatus(models.TextChoices):
    """Lifecycle state of an alert rule."""

    ACTIVE = "active", "Active"
    TRIGGERED = "triggered", "Triggered"
    ACKNOWLEDGED = "acknowledged", "Acknowledged"


NOTIFICATION_CHANNELS = ("email", "chat", "webhook")


class AlertRuleQuerySet(models.QuerySet):
    def enabled_for(self, pipeline_id):
        return self.filter(pipeline_id=pipeline_id, enabled=True).order_by("id")

    def try_trigger(self, rule_id, expected_last_triggered, now, cooldown_minutes) -> bool:
        """
        Atomically move a rule to `triggered` if it may fire at `now`.

        The update only matches while the rule is still enabled, not
        acknowledged, still has the cooldown the caller evaluated against,
        still has the `last_triggered` the caller read, and that timestamp is
        at least `cooldown_minutes` old. Of several concurrent callers that
        read the same `last_triggered`, exactly one gets True.
        """
        qs = self.filter(pk=rule_id, enabled=True, cooldown_minutes=cooldown_minutes).exclude(
            status=AlertRuleStatus.ACKNOWLEDGED
        )
        if expected_last_triggered is None:
            qs = qs.filter(last_triggered__isnull=True)
        else:
            qs = qs.filter(
                last_triggered=expected_last_triggered,
                last_triggered__lte=now - timedelta(minutes=cooldown_minutes),
            )
        return qs.update(status=AlertRuleStatus.TRIGGERED, last_triggered=now, updated_at=now) == 1


class AlertRule(models.Model):
    """
    A threshold rule on one pipeline's build metrics.

    A rule in `acknowledged` status never fires again until it is reset to
    `active`.
    """

    pipeline = models.ForeignKey(
        "pipelines.Pipeline",
        on_delete=models.CASCADE,
        related_name="alert_rules",
    )
    name = models.CharField(
        max_length=255,
        help_text="Name of the alert, used as the notification title.",
    )
    description = models.TextField(
        blank=True,
        default="",
    )

    # Condition
    condition_type = models.CharField(
        max_length=30,
        choices=ConditionType.choices,
    )
    operator = models.CharField(
        max_length=2,
        choices=Operator.choices,
    )
    threshold = models.FloatField()

    # Delivery
    severity = models.CharField(
        max_length=20,
        choices=AlertSeverity.choices,
        default=AlertSeverity.MEDIUM,
        db_index=True,
    )
    channels = models.JSONField(
        default=list,
        blank=True,
        help_text="Notification channels: any of 'email', 'chat', 'webhook'.",
    )

    # State
    enabled = models.BooleanField(
        default=True,
        db_index=True,
    )
    cooldown_minutes = models.PositiveIntegerField(
        default=30,
        validators=[MinValueValidator(1)],
        help_text="Minimum minutes between two triggers of this rule.",
    )
    status = models.CharField(
        max_length=20,
        choices=AlertRuleStatus.choices,
        default=AlertRuleStatus.ACTIVE,
        db_index=True,
    )
    last_triggered = models.DateTimeField(
        null=True,
        blank=True,
    )

    # Acknowledgement
    acknowledged_by = models.CharField(
        max_length=255,
        blank=True,
        default="",
    )
    acknowledged_at = models.DateTimeField(
        null=True,
        blank=True,
    )
    acknowledgement_notes = models.TextField(
        blank=True,
        default="",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AlertRuleQuerySet.as_manager()

    class Meta:
        ordering = ["pipeline_id", "name"]
        indexes = [
            models.Index(fields=["pipeline", "enabled"]),
        ]

    def __str__(self):
        return f"{self.name} [{self.status}]"

    def clean(self):
        super().clean()
        if not isinstance(self.channels, list):
            raise ValidationError({"channels": "Channels must be a list."})
        unknown = [c for c in self.channels if c not in NOTIFICATION_CHANNELS]
        if unknown:
            raise ValidationError({"channels": f"Unknown channel(s): {', '.join(map(str, unknown))}"})

    def condition_description(self) -> str:
        """Human-readable condition, e.g. "Success Rate less than 95"."""
        threshold = int(self.threshold) if float(self.threshold).is_integer() else self.threshold
        return (
            f"{ConditionType(self.condition_type).label} "
            f"{Operator(self.operator).label} {threshold}"
        )

    @property
    def is_acknowledged(self) -> bool:
        return self.status == AlertRuleStatus.ACKNOWLEDGED

    def cooldown_ends_at(self):
        if self.last_triggered is None:
            return None
        return self.last_triggered + timedelta(minutes=self.cooldown_minutes)

    def in_cooldown(self, now=None) -> bool:
        ends_at = self.cooldown_ends_at()
        return ends_at is not None and (now or timezone.now()) < ends_at


class AlertTrigger(models.Model):
    """
    One firing of an alert rule. Append-only.

    Cooldown suppressions do not create rows.
    """

    rule = models.ForeignKey(
        AlertRule,
        on_delete=models.CASCADE,
        related_name="triggers",
    )
    build = models.ForeignKey(
        "pipelines.Build",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="alert_triggers",
    )
    triggered_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
    )
    severity = models.CharField(
        max_length=20,
        choices=AlertSeverity.choices,
    )
    message = models.TextField()
    metric_value = models.FloatField(
        null=True,
        blank=True,
    )

    # Delivery outcome
    channels_attempted = models.JSONField(
        default=list,
        blank=True,
    )
    channels_succeeded = models.JSONField(
        default=list,
        blank=True,
    )
    notification_error = models.TextField(
        null=True,
        blank=True,
        help_text="One '<channel>: <error>' line per failed channel.",
    )

    class Meta:
        ordering = ["-triggered_at", "-id"]

    def __str__(self):
        return f"{self.rule.name} @ {self.triggered_at:%Y-%m-%d %H:%M}"
