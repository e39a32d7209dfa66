"""Celery tasks for asynchronous alert evaluation."""

from __future__ import annotations

from typing import Any

from celery import shared_task


@shared_task
def evaluate_build_alerts(build_id: int) -> dict[str, Any]:
    """Evaluate a completed build's alert rules."""
    from apps.alerts.services import AlertEvaluator
    from apps.pipelines.models import Build

    build = Build.objects.select_related("pipeline").filter(pk=build_id).first()
    if build is None:
        return {"status": "skipped", "errors": [f"Build {build_id} not found"]}

    result = AlertEvaluator().evaluate_build(build)
    return {"status": "evaluated", **result.to_dict()}
