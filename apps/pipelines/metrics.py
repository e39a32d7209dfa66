"""Build metrics aggregation.

Pure functions compute a MetricsSnapshot from a list of builds; the
MetricsAggregator wraps them over the ORM for a single pipeline. Nothing here
reads the clock except where a caller omits `now`, so results are
deterministic for a given build snapshot.

Public API:
- BuildWindow
- MetricsSnapshot
- compute_snapshot / percentile / consecutive_failures / failure_count
- MetricsAggregator
- pipeline_overview
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Iterator, Sequence

from django.utils import timezone

from apps.pipelines.models import Build, BuildStatus, Pipeline

# Builds fetched per query by MetricsAggregator.iter_builds
BUILD_PAGE_SIZE = 50


@dataclass
class BuildWindow:
    """Selects builds by count (`limit`) and/or by `started_at` range."""

    limit: int | None = None
    since: datetime | None = None
    until: datetime | None = None

    @classmethod
    def last_days(cls, days: int, now: datetime | None = None) -> "BuildWindow":
        now = now or timezone.now()
        return cls(since=now - timedelta(days=days), until=now)

    @classmethod
    def last_hours(cls, hours: int, now: datetime | None = None) -> "BuildWindow":
        now = now or timezone.now()
        return cls(since=now - timedelta(hours=hours), until=now)


@dataclass
class MetricsSnapshot:
    """Metrics derived from a window of builds. Never persisted."""

    total: int = 0
    success_rate: float = 0.0
    failure_rate: float = 0.0
    average_duration: float = 0.0
    median_duration: float = 0.0
    p95_duration: float = 0.0
    p99_duration: float = 0.0
    status_distribution: dict[str, int] = field(default_factory=dict)
    daily: dict[str, dict[str, int]] = field(default_factory=dict)
    hourly: dict[int, dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Value at index floor(n*p) of an ascending sample, clamped to the last element."""
    if not sorted_values:
        return 0.0
    index = min(int(math.floor(len(sorted_values) * p)), len(sorted_values) - 1)
    return float(sorted_values[index])


def _rate(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(part / total * 100, 2)


def compute_snapshot(builds: Iterable[Build]) -> MetricsSnapshot:
    """Compute success rate, duration statistics and trend buckets."""
    builds = list(builds)
    total = len(builds)

    distribution = {status.value: 0 for status in BuildStatus}
    daily: dict[str, dict[str, int]] = {}
    hourly: dict[int, dict[str, int]] = {}

    for build in builds:
        distribution[build.status] = distribution.get(build.status, 0) + 1

        started = timezone.localtime(build.started_at) if timezone.is_aware(build.started_at) else build.started_at
        day = daily.setdefault(
            started.date().isoformat(),
            {"total": 0, **{status.value: 0 for status in BuildStatus}},
        )
        day["total"] += 1
        day[build.status] = day.get(build.status, 0) + 1

        # Hourly buckets only count finished outcomes
        if build.status in (BuildStatus.SUCCESS, BuildStatus.FAILED):
            hour = hourly.setdefault(started.hour, {"total": 0, "success": 0, "failed": 0})
            hour["total"] += 1
            hour[build.status] += 1

    durations = sorted(float(b.duration) for b in builds if b.duration is not None)
    average = round(sum(durations) / len(durations), 2) if durations else 0.0

    return MetricsSnapshot(
        total=total,
        success_rate=_rate(distribution[BuildStatus.SUCCESS], total),
        failure_rate=_rate(distribution[BuildStatus.FAILED], total),
        average_duration=average,
        median_duration=percentile(durations, 0.5),
        p95_duration=percentile(durations, 0.95),
        p99_duration=percentile(durations, 0.99),
        status_distribution=distribution,
        daily=dict(sorted(daily.items())),
        hourly=dict(sorted(hourly.items())),
    )


def consecutive_failures(builds_most_recent_first: Iterable[Build]) -> int:
    """Count leading failed builds; any other status ends the streak."""
    count = 0
    for build in builds_most_recent_first:
        if build.status != BuildStatus.FAILED:
            break
        count += 1
    return count


def failure_count(builds: Iterable[Build]) -> int:
    return sum(1 for build in builds if build.status == BuildStatus.FAILED)


class MetricsAggregator:
    """
    Metrics for one pipeline, read from the Build table.

    Usage:
        aggregator = MetricsAggregator(pipeline_id)
        snapshot = aggregator.snapshot(BuildWindow.last_days(30))
        streak = aggregator.consecutive_failures()
    """

    def __init__(self, pipeline_id: int):
        self.pipeline_id = pipeline_id

    def _queryset(self, window: BuildWindow):
        qs = Build.objects.for_pipeline(self.pipeline_id).most_recent_first()
        if window.since is not None:
            qs = qs.filter(started_at__gte=window.since)
        if window.until is not None:
            qs = qs.filter(started_at__lte=window.until)
        return qs

    def query_builds(self, window: BuildWindow | None = None) -> list[Build]:
        """Builds in the window, most recent first by started_at."""
        window = window or BuildWindow()
        qs = self._queryset(window)
        if window.limit is not None:
            qs = qs[: window.limit]
        return list(qs)

    def snapshot(self, window: BuildWindow | None = None) -> MetricsSnapshot:
        return compute_snapshot(self.query_builds(window))

    def success_rate(self, window: BuildWindow | None = None) -> float:
        return self.snapshot(window).success_rate

    def failure_count(self, window: BuildWindow | None = None) -> int:
        return failure_count(self.query_builds(window))

    def iter_builds(self, window: BuildWindow | None = None, fields: Sequence[str] = ()) -> Iterator[Build]:
        """Lazily yield builds most recent first, one LIMIT query per page."""
        window = window or BuildWindow()
        qs = self._queryset(window)
        if fields:
            qs = qs.only(*fields)
        offset = 0
        while window.limit is None or offset < window.limit:
            stop = offset + BUILD_PAGE_SIZE
            if window.limit is not None:
                stop = min(stop, window.limit)
            page = list(qs[offset:stop])
            yield from page
            if len(page) < stop - offset:
                return
            offset = stop

    def consecutive_failures(self, window: BuildWindow | None = None) -> int:
        # The scan stops at the first non-failed build, so later pages are never fetched.
        return consecutive_failures(self.iter_builds(window, fields=("status",)))


def pipeline_overview(days: int, now: datetime | None = None) -> dict[str, Any]:
    """Dashboard overview: totals across all active pipelines plus per-pipeline rates."""
    window = BuildWindow.last_days(days, now=now)
    pipelines = []
    all_builds: list[Build] = []

    for pipeline in Pipeline.objects.active():
        builds = MetricsAggregator(pipeline.pk).query_builds(window)
        all_builds.extend(builds)
        snapshot = compute_snapshot(builds)
        pipelines.append(
            {
                "pipeline_id": pipeline.pk,
                "pipeline_name": pipeline.name,
                "provider": pipeline.provider,
                "total_builds": snapshot.total,
                "success_rate": snapshot.success_rate,
                "average_duration": snapshot.average_duration,
                "last_build_status": builds[0].status if builds else None,
            }
        )

    overview = compute_snapshot(all_builds)
    return {
        "period_days": days,
        "overview": {
            "total_builds": overview.total,
            "success_rate": overview.success_rate,
            "failure_rate": overview.failure_rate,
            "average_duration": overview.average_duration,
            "status_distribution": overview.status_distribution,
        },
        "pipelines": pipelines,
        "trends": {"daily": overview.daily, "hourly": overview.hourly},
    }
