"""
Build ingestion services.

This module turns provider webhook bodies into canonical Build rows:
1. Selects the provider driver by provider identity
2. Parses the body into ProviderEvents (validation happens here)
3. Resolves the owning Pipeline
4. Creates or conditionally updates the Build keyed by (pipeline, external_id)
5. Emits build_changed / build_completed signals

Providers deliver at least once, so every step is idempotent: a redelivered
event either changes nothing or moves the Build forward in its lifecycle.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.pipelines.exceptions import (
    EventValidationError,
    UnknownProviderError,
    UnresolvedPipelineError,
)
from apps.pipelines.models import (
    Build,
    BuildStatus,
    Pipeline,
    is_terminal,
    status_rank,
)
from apps.pipelines.providers import BaseProviderDriver, ProviderEvent, get_provider
from apps.pipelines.signals import build_changed, build_completed

logger = logging.getLogger(__name__)

DETAIL_FIELDS = ("branch", "commit_hash", "commit_message", "author", "web_url")


@dataclass
class IngestResult:
    """Result of ingesting one webhook delivery."""

    builds_created: int = 0
    builds_updated: int = 0
    duplicates: int = 0
    validation_failures: int = 0
    unresolved: int = 0
    errors: list[str] = field(default_factory=list)
    build_ids: list[int] = field(default_factory=list)
    completed_build_ids: list[int] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.builds_created + self.builds_updated

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def outcome(self) -> str:
        if self.total_processed:
            return "processed"
        if self.duplicates and not self.has_errors:
            return "duplicate"
        return "discarded"


class BuildIngestor:
    """
    Normalizes provider events into Build rows.

    Usage:
        ingestor = BuildIngestor()
        result = ingestor.ingest("github", payload)
        # or with an already-resolved pipeline:
        result = ingestor.ingest("jenkins", payload, pipeline=pipeline)
    """

    def ingest(
        self,
        provider: str,
        payload: dict[str, Any],
        pipeline: Pipeline | None = None,
        event_type: str | None = None,
        now: datetime | None = None,
    ) -> IngestResult:
        """
        Ingest a single webhook delivery.

        Never raises for bad input: validation failures and unresolved
        pipelines are counted on the result and the delivery is discarded.

        Args:
            provider: Provider name the delivery arrived for.
            payload: Decoded JSON body.
            pipeline: Pipeline to attach builds to, skipping resolution.
            event_type: Provider event name from the delivery headers.
            now: Clock override used for missing timestamps.

        Returns:
            IngestResult with counts of created/updated/discarded builds.
        """
        result = IngestResult()
        now = now or timezone.now()

        try:
            driver = get_provider(provider)
            if not isinstance(payload, dict):
                raise EventValidationError("payload must be a JSON object")
            events = driver.parse(payload, event_type=event_type)
        except UnknownProviderError as e:
            logger.warning(f"Discarding event: {e}")
            result.errors.append(str(e))
            return result
        except EventValidationError as e:
            logger.warning(f"Discarding invalid {provider} event: {e}")
            result.validation_failures += 1
            result.errors.append(str(e))
            return result
        except Exception as e:
            logger.exception(f"Error parsing {provider} payload")
            result.validation_failures += 1
            result.errors.append(f"{provider}: malformed payload ({e})")
            return result

        if not events:
            logger.info(f"No build events in {provider} delivery (event_type={event_type})")

        for event in events:
            try:
                target = pipeline or self._resolve_pipeline(driver, event)
                self._apply_event(target, event, now, result)
            except UnresolvedPipelineError as e:
                logger.warning(f"Discarding event: {e}")
                result.unresolved += 1
                result.errors.append(str(e))
            except Exception as e:
                logger.exception(f"Error ingesting {provider} event {event.external_id}")
                result.errors.append(str(e))

        return result

    def _resolve_pipeline(self, driver: BaseProviderDriver, event: ProviderEvent) -> Pipeline:
        pipeline = Pipeline.objects.resolve(driver.name, event.native_ref)
        if pipeline is None:
            raise UnresolvedPipelineError(driver.name, event.native_ref)
        return pipeline

    def _apply_event(
        self,
        pipeline: Pipeline,
        event: ProviderEvent,
        now: datetime,
        result: IngestResult,
    ) -> Build | None:
        """Create the Build on first sighting, otherwise advance it."""
        status = event.to_canonical()

        existing = Build.objects.filter(pipeline=pipeline, external_id=event.external_id).first()
        if existing is None:
            try:
                return self._create_build(pipeline, event, status, now, result)
            except IntegrityError:
                # A concurrent delivery created the row first; treat this one as an update.
                existing = Build.objects.get(pipeline=pipeline, external_id=event.external_id)

        return self._advance_build(existing, event, status, now, result)

    def _create_build(
        self,
        pipeline: Pipeline,
        event: ProviderEvent,
        status: str,
        now: datetime,
        result: IngestResult,
    ) -> Build:
        started_at, completed_at, duration = self._timing(event, status, now)

        with transaction.atomic():
            build = Build.objects.create(
                pipeline=pipeline,
                external_id=event.external_id,
                status=status,
                started_at=started_at,
                completed_at=completed_at,
                duration=duration,
                raw_payload=event.raw_payload,
                **{attr: getattr(event, attr) for attr in DETAIL_FIELDS},
            )

        result.builds_created += 1
        result.build_ids.append(build.pk)
        logger.info(f"Created build: {build} (pipeline={pipeline.pk})")

        build_changed.send(sender=Build, build=build, created=True)
        if completed_at is not None:
            result.completed_build_ids.append(build.pk)
            build_completed.send(sender=Build, build=build)

        return build

    def _advance_build(
        self,
        build: Build,
        event: ProviderEvent,
        status: str,
        now: datetime,
        result: IngestResult,
    ) -> Build:
        """Apply an event to an existing Build if it represents forward progress."""
        if build.is_terminal or status_rank(status) < status_rank(build.status):
            logger.info(
                f"Ignoring stale {status} event for build {build} (current={build.status})"
            )
            result.duplicates += 1
            return build

        changes = self._changes(build, event, status, now)
        if not changes:
            result.duplicates += 1
            return build

        changes["raw_payload"] = event.raw_payload
        changes["updated_at"] = now

        # Conditional update: only rows still at or behind the new lifecycle
        # position (and never terminal rows) are written.
        allowed = [
            s
            for s in (BuildStatus.PENDING, BuildStatus.RUNNING)
            if status_rank(s) <= status_rank(status)
        ]
        updated = Build.objects.filter(pk=build.pk, status__in=allowed).update(**changes)
        if not updated:
            logger.info(f"Concurrent update won for build {build}; skipping {status} event")
            result.duplicates += 1
            return build

        build.refresh_from_db()
        result.builds_updated += 1
        result.build_ids.append(build.pk)
        logger.info(f"Updated build: {build} ({', '.join(sorted(changes))})")

        build_changed.send(sender=Build, build=build, created=False)
        if "completed_at" in changes and is_terminal(build.status):
            result.completed_build_ids.append(build.pk)
            build_completed.send(sender=Build, build=build)

        return build

    def _changes(self, build: Build, event: ProviderEvent, status: str, now: datetime) -> dict:
        changes: dict[str, Any] = {}

        if status != build.status:
            changes["status"] = status

        for attr in DETAIL_FIELDS:
            value = getattr(event, attr)
            if value and value != getattr(build, attr):
                changes[attr] = value

        started_at, completed_at, duration = self._timing(
            event, status, now, started_fallback=build.started_at
        )
        if started_at != build.started_at:
            changes["started_at"] = started_at
        if completed_at != build.completed_at:
            changes["completed_at"] = completed_at
        if duration != build.duration:
            changes["duration"] = duration

        return changes

    def _timing(
        self,
        event: ProviderEvent,
        status: str,
        now: datetime,
        started_fallback: datetime | None = None,
    ) -> tuple[datetime, datetime | None, int | None]:
        """Resolve (started_at, completed_at, duration) for an event.

        completed_at is only set for terminal statuses. When both timestamps
        are known, duration is always their difference in whole seconds.
        """
        reported = timedelta(seconds=event.duration) if event.duration is not None else None

        started_at = event.started_at or started_fallback
        completed_at = None

        if is_terminal(status):
            completed_at = event.completed_at
            if completed_at is None:
                if started_at is not None and reported is not None:
                    completed_at = started_at + reported
                else:
                    completed_at = now

        if started_at is None:
            if completed_at is not None and reported is not None:
                started_at = completed_at - reported
            else:
                started_at = completed_at or now

        if completed_at is None:
            return started_at, None, None

        if completed_at < started_at:
            completed_at = started_at

        return started_at, completed_at, int((completed_at - started_at).total_seconds())
