"""
Alert rule evaluation services.

This module decides whether a completed build fires any alert rules:
1. Computes each enabled rule's metric through the MetricsAggregator
2. Compares it against the rule's threshold
3. Applies suppression (disabled, acknowledged, cooldown) through an atomic
   compare-and-set on the rule
4. Records an AlertTrigger and dispatches notifications for each winner

It also hosts AlertRuleManager for the manual rule lifecycle
(acknowledge, reset, test, history).
"""

import logging
import operator
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from django.conf import settings
from django.utils import timezone

from apps.alerts.exceptions import EvaluationError
from apps.alerts.models import AlertRule, AlertRuleStatus, AlertTrigger, ConditionType
from apps.notify.dispatcher import DispatchResult, NotificationDispatcher
from apps.notify.drivers import AlertNotification
from apps.notify.feed import get_feed
from apps.pipelines.metrics import BuildWindow, MetricsAggregator
from apps.pipelines.models import Build, is_terminal

logger = logging.getLogger(__name__)

OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


def compare(value: float, op: str, threshold: float) -> bool:
    """Exact comparison of a metric value against a threshold."""
    try:
        return OPERATORS[op](value, threshold)
    except KeyError:
        raise EvaluationError("operator", f"unknown operator '{op}'")


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


@dataclass
class RuleOutcome:
    """What happened to one rule during a sweep."""

    rule_id: int
    outcome: str  # "not_met", "triggered", "suppressed", "error"
    metric_value: float | None = None
    reason: str = ""
    trigger_id: int | None = None


@dataclass
class EvaluationResult:
    """Result of evaluating all rules for one completed build."""

    build_id: int | None = None
    rules: list[RuleOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def _with(self, outcome: str) -> list[RuleOutcome]:
        return [r for r in self.rules if r.outcome == outcome]

    @property
    def rules_evaluated(self) -> int:
        return len(self.rules)

    @property
    def triggered(self) -> list[RuleOutcome]:
        return self._with("triggered")

    @property
    def suppressed(self) -> list[RuleOutcome]:
        return self._with("suppressed")

    @property
    def trigger_ids(self) -> list[int]:
        return [r.trigger_id for r in self.triggered if r.trigger_id is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "build_id": self.build_id,
            "rules_evaluated": self.rules_evaluated,
            "triggered": len(self.triggered),
            "suppressed": len(self.suppressed),
            "trigger_ids": self.trigger_ids,
            "rules": [asdict(r) for r in self.rules],
            "errors": self.errors,
        }


def rule_context(rule: AlertRule) -> dict[str, Any]:
    return {
        "id": rule.pk,
        "name": rule.name,
        "description": rule.description,
        "condition_type": rule.condition_type,
        "operator": rule.operator,
        "threshold": rule.threshold,
        "condition": rule.condition_description(),
        "pipeline_id": rule.pipeline_id,
    }


def pipeline_context(pipeline) -> dict[str, Any]:
    return {
        "id": pipeline.pk,
        "name": pipeline.name,
        "provider": pipeline.provider,
        "team": pipeline.team,
    }


def build_context(build: Build | None) -> dict[str, Any] | None:
    if build is None:
        return None
    return {
        "id": build.pk,
        "external_id": build.external_id,
        "status": build.status,
        "branch": build.branch,
        "commit_hash": build.commit_hash,
        "commit_message": build.commit_message,
        "author": build.author,
        "duration": build.duration,
        "web_url": build.web_url,
    }


def _dashboard_url() -> str:
    return getattr(settings, "DASHBOARD_URL", "")


class AlertEvaluator:
    """
    Evaluates a pipeline's alert rules when one of its builds completes.

    Usage:
        evaluator = AlertEvaluator()
        result = evaluator.evaluate_build(build)
        for outcome in result.triggered:
            ...
    """

    def __init__(self, dispatcher: NotificationDispatcher | None = None):
        self.dispatcher = dispatcher or NotificationDispatcher()

    def evaluate_build(self, build: Build, now: datetime | None = None) -> EvaluationResult:
        """
        Evaluate every enabled rule of the build's pipeline.

        Never raises: a rule that fails is recorded as an "error" outcome
        and the sweep continues with the next rule.
        """
        now = now or timezone.now()
        result = EvaluationResult(build_id=build.pk)

        if not is_terminal(build.status):
            logger.info(f"Skipping alert evaluation for non-terminal build {build}")
            return result

        for rule in AlertRule.objects.enabled_for(build.pipeline_id).select_related("pipeline"):
            try:
                result.rules.append(self._evaluate_rule(rule, build, now))
            except Exception as e:
                logger.exception(f"Error evaluating alert rule {rule.pk} for build {build.pk}")
                result.rules.append(RuleOutcome(rule_id=rule.pk, outcome="error", reason=str(e)))
                result.errors.append(f"rule {rule.pk}: {e}")

        logger.info(
            f"Evaluated {result.rules_evaluated} rule(s) for build {build.pk}: "
            f"{len(result.triggered)} triggered, {len(result.suppressed)} suppressed"
        )
        return result

    def compute_metric(self, rule: AlertRule, build: Build, now: datetime) -> float:
        """
        Metric named by the rule's condition type.

        Raises:
            EvaluationError: If the metric cannot be computed.
        """
        aggregator = MetricsAggregator(rule.pipeline_id)
        condition_type = rule.condition_type

        if condition_type == ConditionType.SUCCESS_RATE:
            window = BuildWindow(limit=int(getattr(settings, "PIPELINES_SUCCESS_RATE_WINDOW", 20)))
            builds = aggregator.query_builds(window)
            if not builds:
                raise EvaluationError(condition_type, "no build history")
            return aggregator.snapshot(window).success_rate

        if condition_type == ConditionType.BUILD_TIME:
            if build.duration is None:
                raise EvaluationError(condition_type, f"build {build.pk} has no duration")
            return float(build.duration)

        if condition_type == ConditionType.FAILURE_COUNT:
            hours = int(getattr(settings, "PIPELINES_FAILURE_COUNT_WINDOW_HOURS", 24))
            return float(aggregator.failure_count(BuildWindow.last_hours(hours, now=now)))

        if condition_type == ConditionType.CONSECUTIVE_FAILURES:
            return float(aggregator.consecutive_failures())

        raise EvaluationError(condition_type, "unknown condition type")

    def _evaluate_rule(self, rule: AlertRule, build: Build, now: datetime) -> RuleOutcome:
        try:
            value = self.compute_metric(rule, build, now)
        except EvaluationError as e:
            logger.warning(f"Metric unavailable for rule {rule.pk} ({e}); using 0")
            value = 0.0

        if not compare(value, rule.operator, rule.threshold):
            return RuleOutcome(rule_id=rule.pk, outcome="not_met", metric_value=value)

        reason = self._suppression_reason(rule, now)
        if reason is None and not AlertRule.objects.try_trigger(
            rule.pk, rule.last_triggered, now, rule.cooldown_minutes
        ):
            reason = "concurrent trigger or state change"

        if reason is not None:
            logger.warning(f"Alert rule '{rule.name}' ({rule.pk}) suppressed: {reason}")
            return RuleOutcome(
                rule_id=rule.pk, outcome="suppressed", metric_value=value, reason=reason
            )

        rule.status = AlertRuleStatus.TRIGGERED
        rule.last_triggered = now
        trigger = self._fire(rule, build, value, now)
        return RuleOutcome(
            rule_id=rule.pk, outcome="triggered", metric_value=value, trigger_id=trigger.pk
        )

    def _suppression_reason(self, rule: AlertRule, now: datetime) -> str | None:
        if not rule.enabled:
            return "disabled"
        if rule.is_acknowledged:
            return "acknowledged"
        if rule.in_cooldown(now):
            return f"cooldown until {rule.cooldown_ends_at().isoformat()}"
        return None

    def _fire(self, rule: AlertRule, build: Build, value: float, now: datetime) -> AlertTrigger:
        message = (
            f"{rule.condition_description()} (current: {_format_value(value)}) "
            f"on {rule.pipeline.name} build {build.external_id}"
        )
        trigger = AlertTrigger.objects.create(
            rule=rule,
            build=build,
            triggered_at=now,
            severity=rule.severity,
            message=message,
            metric_value=value,
        )
        logger.info(f"Alert triggered: {rule.name} ({message})")

        notification = AlertNotification(
            title=rule.name,
            message=message,
            severity=rule.severity,
            rule=rule_context(rule),
            pipeline=pipeline_context(rule.pipeline),
            build=build_context(build),
            triggered_at=now,
            metric_value=value,
            dashboard_url=_dashboard_url(),
            notification_id=f"alert_{rule.pk}_{trigger.pk}",
        )
        dispatch = self.dispatcher.dispatch(notification, list(rule.channels or []))
        record_dispatch(trigger, dispatch)

        get_feed().push(
            "alert",
            rule.name,
            message,
            severity=rule.severity,
            data={
                "rule_id": rule.pk,
                "trigger_id": trigger.pk,
                "pipeline_id": rule.pipeline_id,
                "build_id": build.pk,
                "channels_succeeded": trigger.channels_succeeded,
                "notification_error": trigger.notification_error,
            },
            now=now,
        )
        return trigger


def record_dispatch(trigger: AlertTrigger, dispatch: DispatchResult) -> None:
    """Store per-channel delivery outcome on the trigger."""
    trigger.channels_attempted = dispatch.attempted
    trigger.channels_succeeded = dispatch.succeeded
    trigger.notification_error = dispatch.error_summary()
    trigger.save(update_fields=["channels_attempted", "channels_succeeded", "notification_error"])


class AlertRuleManager:
    """
    Service for the manual alert rule lifecycle.

    Complements AlertEvaluator, which only ever moves rules to `triggered`.
    """

    @staticmethod
    def acknowledge(rule_id: int, acknowledged_by: str = "", notes: str = "") -> AlertRule:
        """
        Acknowledge a rule so it stops firing until reset.

        Args:
            rule_id: ID of the rule to acknowledge.
            acknowledged_by: Optional identifier of who acknowledged.
            notes: Optional free-text notes.

        Returns:
            Updated rule.
        """
        rule = AlertRule.objects.get(pk=rule_id)
        rule.status = AlertRuleStatus.ACKNOWLEDGED
        rule.acknowledged_at = timezone.now()
        rule.acknowledged_by = acknowledged_by
        rule.acknowledgement_notes = notes
        rule.save(
            update_fields=[
                "status",
                "acknowledged_at",
                "acknowledged_by",
                "acknowledgement_notes",
                "updated_at",
            ]
        )

        logger.info(f"Alert rule acknowledged: {rule.name} by {acknowledged_by or 'unknown'}")
        return rule

    @staticmethod
    def reset(rule_id: int) -> AlertRule:
        """Return a rule to `active` and clear its cooldown and acknowledgement."""
        rule = AlertRule.objects.get(pk=rule_id)
        rule.status = AlertRuleStatus.ACTIVE
        rule.last_triggered = None
        rule.acknowledged_at = None
        rule.acknowledged_by = ""
        rule.acknowledgement_notes = ""
        rule.save(
            update_fields=[
                "status",
                "last_triggered",
                "acknowledged_at",
                "acknowledged_by",
                "acknowledgement_notes",
                "updated_at",
            ]
        )

        logger.info(f"Alert rule reset: {rule.name}")
        return rule

    @staticmethod
    def send_test(
        rule_id: int, dispatcher: NotificationDispatcher | None = None
    ) -> DispatchResult:
        """
        Send a test notification for a rule to its channels.

        Uses the pipeline's latest build for context. Leaves the rule's
        status and cooldown untouched and records no AlertTrigger.
        """
        rule = AlertRule.objects.select_related("pipeline").get(pk=rule_id)
        latest = Build.objects.for_pipeline(rule.pipeline_id).most_recent_first().first()

        notification = AlertNotification(
            title=rule.name,
            message=rule.description or "This is a test alert to verify notification channels",
            severity=rule.severity,
            rule=rule_context(rule),
            pipeline=pipeline_context(rule.pipeline),
            build=build_context(latest),
            dashboard_url=_dashboard_url(),
            is_test=True,
        )
        result = (dispatcher or NotificationDispatcher()).dispatch(
            notification, list(rule.channels or [])
        )

        get_feed().push(
            "test",
            rule.name,
            f"Test alert for rule {rule.pk}",
            severity=rule.severity,
            data={"rule_id": rule.pk, **result.to_dict()},
        )
        logger.info(f"Test alert sent for rule {rule.name}: {result.succeeded or 'no channels'}")
        return result

    @staticmethod
    def history(rule_id: int | None = None, severity: str | None = None, since=None, until=None):
        """AlertTrigger queryset, newest first, optionally filtered."""
        qs = AlertTrigger.objects.select_related("rule", "rule__pipeline", "build")
        if rule_id is not None:
            qs = qs.filter(rule_id=rule_id)
        if severity:
            qs = qs.filter(severity=severity)
        if since is not None:
            qs = qs.filter(triggered_at__gte=since)
        if until is not None:
            qs = qs.filter(triggered_at__lte=until)
        return qs.order_by("-triggered_at", "-id")
