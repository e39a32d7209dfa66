"""
Views for alert rules and their trigger history.
"""

import json
import logging
from typing import Any

from django.core.paginator import Paginator
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.alerts.models import AlertRule, AlertRuleStatus, AlertSeverity, AlertTrigger
from apps.alerts.services import AlertRuleManager

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def serialize_rule(rule: AlertRule) -> dict[str, Any]:
    return {
        "id": rule.pk,
        "name": rule.name,
        "description": rule.description,
        "pipeline_id": rule.pipeline_id,
        "condition_type": rule.condition_type,
        "operator": rule.operator,
        "threshold": rule.threshold,
        "condition": rule.condition_description(),
        "severity": rule.severity,
        "channels": rule.channels,
        "enabled": rule.enabled,
        "cooldown_minutes": rule.cooldown_minutes,
        "status": rule.status,
        "last_triggered": rule.last_triggered.isoformat() if rule.last_triggered else None,
        "acknowledged_by": rule.acknowledged_by,
        "acknowledged_at": rule.acknowledged_at.isoformat() if rule.acknowledged_at else None,
    }


def serialize_trigger(trigger: AlertTrigger) -> dict[str, Any]:
    return {
        "id": trigger.pk,
        "rule_id": trigger.rule_id,
        "rule_name": trigger.rule.name,
        "build_id": trigger.build_id,
        "triggered_at": trigger.triggered_at.isoformat(),
        "severity": trigger.severity,
        "message": trigger.message,
        "metric_value": trigger.metric_value,
        "channels_attempted": trigger.channels_attempted,
        "channels_succeeded": trigger.channels_succeeded,
        "notification_error": trigger.notification_error,
    }


def _paginate(request, queryset) -> tuple[list, dict[str, int]]:
    """Slice a queryset by ?page and ?limit (1-100). Raises ValueError on bad input."""
    try:
        page = int(request.GET.get("page") or 1)
        limit = int(request.GET.get("limit") or 20)
    except ValueError:
        raise ValueError("page and limit must be integers")
    if page < 1:
        raise ValueError("Page must be a positive integer")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"Limit must be 1-{MAX_PAGE_SIZE}")

    paginator = Paginator(queryset, limit)
    items = list(paginator.get_page(page).object_list) if page <= paginator.num_pages else []
    return items, {
        "page": page,
        "limit": limit,
        "total": paginator.count,
        "pages": paginator.num_pages if paginator.count else 0,
    }


def _json_body(request) -> dict[str, Any]:
    """JSON object body, or the form fields for form-encoded posts."""
    if request.content_type != "application/json":
        return request.POST.dict()
    if not request.body:
        return {}
    data = json.loads(request.body)
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object")
    return data


class AlertRuleListView(View):
    """
    GET /alerts/rules/?pipeline=<id>&status=<status>
    """

    def get(self, request):
        rules = AlertRule.objects.all()
        pipeline_id = request.GET.get("pipeline")
        if pipeline_id:
            if not pipeline_id.isdigit():
                return JsonResponse({"status": "error", "message": "pipeline must be an integer"}, status=400)
            rules = rules.filter(pipeline_id=int(pipeline_id))
        status = request.GET.get("status")
        if status:
            if status not in AlertRuleStatus.values:
                return JsonResponse({"status": "error", "message": f"Unknown status: {status}"}, status=400)
            rules = rules.filter(status=status)

        return JsonResponse({"status": "ok", "rules": [serialize_rule(rule) for rule in rules]})


class AlertRuleHistoryView(View):
    """
    Trigger history of one rule, newest first.

    GET /alerts/rules/<rule_id>/history/?page=1&limit=20
    """

    def get(self, request, rule_id):
        rule = get_object_or_404(AlertRule, pk=rule_id)
        try:
            triggers, pagination = _paginate(request, AlertRuleManager.history(rule_id=rule.pk))
        except ValueError as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=400)

        return JsonResponse(
            {
                "status": "ok",
                "rule": {"id": rule.pk, "name": rule.name, "severity": rule.severity},
                "history": [serialize_trigger(t) for t in triggers],
                "pagination": pagination,
            }
        )


class AlertHistoryView(View):
    """
    Trigger history across all rules.

    GET /alerts/history/?rule=<id>&severity=high&date_from=...&date_to=...&page=1&limit=20
    """

    def get(self, request):
        filters: dict[str, Any] = {}
        rule_id = request.GET.get("rule")
        if rule_id:
            if not rule_id.isdigit():
                return JsonResponse({"status": "error", "message": "rule must be an integer"}, status=400)
            filters["rule_id"] = int(rule_id)

        severity = request.GET.get("severity")
        if severity:
            if severity not in AlertSeverity.values:
                return JsonResponse({"status": "error", "message": f"Unknown severity: {severity}"}, status=400)
            filters["severity"] = severity

        for param, key in (("date_from", "since"), ("date_to", "until")):
            raw = request.GET.get(param)
            if not raw:
                continue
            try:
                value = parse_datetime(raw)
            except ValueError:
                value = None
            if value is None:
                return JsonResponse(
                    {"status": "error", "message": f"{param} must be a valid ISO date"}, status=400
                )
            filters[key] = value

        try:
            triggers, pagination = _paginate(request, AlertRuleManager.history(**filters))
        except ValueError as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=400)

        return JsonResponse(
            {
                "status": "ok",
                "history": [serialize_trigger(t) for t in triggers],
                "pagination": pagination,
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class AlertRuleAcknowledgeView(View):
    """
    POST /alerts/rules/<rule_id>/acknowledge/

    Optional JSON body: {"acknowledged_by": "...", "notes": "..."}
    """

    def post(self, request, rule_id):
        try:
            body = _json_body(request)
        except ValueError as e:
            logger.warning(f"Invalid acknowledge payload for rule {rule_id}: {e}")
            return JsonResponse({"status": "error", "message": "Invalid JSON payload"}, status=400)

        get_object_or_404(AlertRule, pk=rule_id)
        rule = AlertRuleManager.acknowledge(
            rule_id,
            acknowledged_by=str(body.get("acknowledged_by") or ""),
            notes=str(body.get("notes") or ""),
        )
        return JsonResponse(
            {
                "status": "ok",
                "message": "Alert acknowledged successfully",
                "rule": serialize_rule(rule),
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class AlertRuleResetView(View):
    """POST /alerts/rules/<rule_id>/reset/"""

    def post(self, request, rule_id):
        get_object_or_404(AlertRule, pk=rule_id)
        rule = AlertRuleManager.reset(rule_id)
        return JsonResponse({"status": "ok", "rule": serialize_rule(rule)})


@method_decorator(csrf_exempt, name="dispatch")
class AlertRuleTestView(View):
    """
    Send a test notification for a rule to its channels.

    POST /alerts/rules/<rule_id>/test/
    """

    def post(self, request, rule_id):
        rule = get_object_or_404(AlertRule, pk=rule_id)
        if not rule.channels:
            return JsonResponse(
                {"status": "error", "message": "Rule has no notification channels"},
                status=400,
            )

        result = AlertRuleManager.send_test(rule.pk)
        return JsonResponse(
            {"status": "ok" if result.all_succeeded else "partial", **result.to_dict()}
        )
