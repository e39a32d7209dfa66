"""
Webhook and metrics views for pipelines.
"""

import json
import logging
from typing import Any

from django.conf import settings
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.pipelines.metrics import BuildWindow, MetricsAggregator, pipeline_overview
from apps.pipelines.models import Pipeline
from apps.pipelines.services import BuildIngestor

logger = logging.getLogger(__name__)

# Header carrying the provider's event name, per provider
EVENT_TYPE_HEADERS = {
    "github": "HTTP_X_GITHUB_EVENT",
    "gitlab": "HTTP_X_GITLAB_EVENT",
}


def _int_param(request, name: str, default: int | None, minimum: int = 1, maximum: int = 365):
    raw = request.GET.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer")
    if not minimum <= value <= maximum:
        raise ValueError(f"{name} must be between {minimum} and {maximum}")
    return value


@method_decorator(csrf_exempt, name="dispatch")
class ProviderWebhookView(View):
    """
    Webhook endpoint for CI/CD provider build events.

    POST /pipelines/webhooks/<provider>/
    POST /pipelines/<pipeline_id>/webhooks/<provider>/

    Providers expect an acknowledgment regardless of what happens to the
    event, so any JSON body gets a 200; the response body reports whether it
    was processed, a duplicate, or discarded.
    """

    def post(self, request, provider, pipeline_id=None):
        try:
            payload = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid JSON payload from {provider}: {e}")
            return JsonResponse(
                {"status": "error", "message": "Invalid JSON payload"},
                status=400,
            )

        header = EVENT_TYPE_HEADERS.get(provider)
        event_type = request.META.get(header) if header else None

        pipeline = None
        if pipeline_id is not None:
            pipeline = Pipeline.objects.active().filter(pk=pipeline_id).first()
            if pipeline is None:
                logger.warning(f"Webhook for unknown pipeline {pipeline_id} discarded")
                return JsonResponse({"status": "discarded", "errors": ["Pipeline not found"]})

        if getattr(settings, "PIPELINES_ASYNC_INGESTION", False):
            try:
                from apps.pipelines.tasks import ingest_webhook

                async_res = ingest_webhook.delay(provider, payload, pipeline_id, event_type)
                return JsonResponse({"status": "queued", "task_id": async_res.id})
            except Exception as enqueue_err:
                # Broker unreachable: don't fail the webhook, process inline instead.
                logger.warning(
                    "Celery ingestion enqueue failed; falling back to sync processing: %s",
                    enqueue_err,
                )

        result = BuildIngestor().ingest(provider, payload, pipeline=pipeline, event_type=event_type)

        response_data: dict[str, Any] = {
            "status": result.outcome,
            "builds_created": result.builds_created,
            "builds_updated": result.builds_updated,
            "duplicates": result.duplicates,
        }
        if result.has_errors:
            response_data["errors"] = result.errors

        logger.info(
            f"{provider} webhook: {result.outcome} "
            f"({result.builds_created} new, {result.builds_updated} updated, "
            f"{result.duplicates} duplicate)"
        )
        return JsonResponse(response_data)

    def get(self, request, provider, pipeline_id=None):
        """Health check endpoint."""
        return JsonResponse(
            {
                "status": "ok",
                "message": "Pipeline webhook endpoint is ready",
                "provider": provider,
            }
        )


class PipelineMetricsView(View):
    """
    GET /pipelines/<pipeline_id>/metrics/?days=30
    GET /pipelines/<pipeline_id>/metrics/?limit=50
    """

    def get(self, request, pipeline_id):
        pipeline = get_object_or_404(Pipeline, pk=pipeline_id)
        default_days = int(getattr(settings, "PIPELINES_METRICS_DEFAULT_DAYS", 30))

        try:
            limit = _int_param(request, "limit", None, maximum=1000)
            days = _int_param(request, "days", None if limit else default_days)
        except ValueError as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=400)

        window = BuildWindow(limit=limit)
        if days:
            window = BuildWindow.last_days(days)
            window.limit = limit

        aggregator = MetricsAggregator(pipeline.pk)
        builds = aggregator.query_builds(window)
        snapshot = aggregator.snapshot(window)

        return JsonResponse(
            {
                "status": "ok",
                "pipeline": {"id": pipeline.pk, "name": pipeline.name, "provider": pipeline.provider},
                "window": {"days": days, "limit": limit},
                "metrics": snapshot.to_dict(),
                "consecutive_failures": aggregator.consecutive_failures(window),
                "builds_considered": len(builds),
            }
        )


class MetricsOverviewView(View):
    """GET /pipelines/metrics/?days=30"""

    def get(self, request):
        default_days = int(getattr(settings, "PIPELINES_METRICS_DEFAULT_DAYS", 30))
        try:
            days = _int_param(request, "days", default_days)
        except ValueError as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=400)

        return JsonResponse({"status": "ok", **pipeline_overview(days)})
