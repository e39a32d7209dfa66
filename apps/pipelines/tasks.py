"""Celery tasks for asynchronous webhook ingestion."""

from __future__ import annotations

from typing import Any

from celery import shared_task


@shared_task
def ingest_webhook(
    provider: str,
    payload: dict[str, Any],
    pipeline_id: int | None = None,
    event_type: str | None = None,
) -> dict[str, Any]:
    """Run a queued webhook delivery through the BuildIngestor."""
    from apps.pipelines.models import Pipeline
    from apps.pipelines.services import BuildIngestor

    pipeline = None
    if pipeline_id is not None:
        pipeline = Pipeline.objects.active().filter(pk=pipeline_id).first()
        if pipeline is None:
            return {"status": "discarded", "errors": [f"Pipeline {pipeline_id} not found"]}

    result = BuildIngestor().ingest(provider, payload, pipeline=pipeline, event_type=event_type)
    return {
        "status": result.outcome,
        "builds_created": result.builds_created,
        "builds_updated": result.builds_updated,
        "duplicates": result.duplicates,
        "build_ids": list(result.build_ids),
        "errors": list(result.errors),
    }
