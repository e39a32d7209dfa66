from datetime import datetime, timedelta
from datetime import timezone as dt_tz

from django.db import connection
from django.test import SimpleTestCase, TestCase
from django.test.utils import CaptureQueriesContext

from apps.pipelines.metrics import (
    BUILD_PAGE_SIZE,
    BuildWindow,
    MetricsAggregator,
    compute_snapshot,
    consecutive_failures,
    failure_count,
    percentile,
    pipeline_overview,
)
from apps.pipelines.models import Build, BuildStatus, Pipeline

NOW = datetime(2024, 1, 8, 12, 0, 0, tzinfo=dt_tz.utc)


def _build(status, duration=None, started_at=NOW):
    return Build(status=status, duration=duration, started_at=started_at)


class PercentileTests(SimpleTestCase):
    def test_empty_sample(self):
        self.assertEqual(percentile([], 0.5), 0.0)

    def test_floor_index(self):
        values = [10, 20, 30, 40]
        self.assertEqual(percentile(values, 0.5), 30)
        self.assertEqual(percentile(values, 0.95), 40)

    def test_index_clamped_to_last(self):
        self.assertEqual(percentile([5], 0.99), 5)
        self.assertEqual(percentile([1, 2], 1.0), 2)

    def test_percentiles_are_ordered(self):
        samples = [[7], [3, 1], [1, 1, 1, 100], list(range(1, 101)), [9, 2, 40, 13, 13, 5]]
        for sample in samples:
            values = sorted(sample)
            with self.subTest(sample=sample):
                p50, p95, p99 = (percentile(values, p) for p in (0.5, 0.95, 0.99))
                self.assertLessEqual(p50, p95)
                self.assertLessEqual(p95, p99)


class ComputeSnapshotTests(SimpleTestCase):
    def test_empty_window(self):
        snapshot = compute_snapshot([])

        self.assertEqual(snapshot.total, 0)
        self.assertEqual(snapshot.success_rate, 0.0)
        self.assertEqual(sum(snapshot.status_distribution.values()), 0)
        self.assertEqual(set(snapshot.status_distribution), {s.value for s in BuildStatus})

    def test_rates_and_distribution(self):
        builds = [
            _build(BuildStatus.SUCCESS, 60),
            _build(BuildStatus.SUCCESS, 120),
            _build(BuildStatus.FAILED, 30),
            _build(BuildStatus.RUNNING),
            _build(BuildStatus.CANCELLED),
            _build(BuildStatus.PENDING),
        ]

        snapshot = compute_snapshot(builds)

        self.assertEqual(snapshot.total, 6)
        self.assertEqual(snapshot.success_rate, 33.33)
        self.assertEqual(snapshot.failure_rate, 16.67)
        self.assertEqual(sum(snapshot.status_distribution.values()), snapshot.total)
        self.assertGreaterEqual(snapshot.success_rate, 0)
        self.assertLessEqual(snapshot.success_rate, 100)

    def test_duration_stats_skip_missing_durations(self):
        builds = [
            _build(BuildStatus.SUCCESS, 10),
            _build(BuildStatus.SUCCESS, 20),
            _build(BuildStatus.FAILED, 30),
            _build(BuildStatus.RUNNING),
        ]

        snapshot = compute_snapshot(builds)

        self.assertEqual(snapshot.average_duration, 20.0)
        self.assertEqual(snapshot.median_duration, 20.0)
        self.assertEqual(snapshot.p95_duration, 30.0)
        self.assertEqual(snapshot.p99_duration, 30.0)

    def test_daily_and_hourly_buckets(self):
        builds = [
            _build(BuildStatus.SUCCESS, 10, NOW),
            _build(BuildStatus.FAILED, 10, NOW),
            _build(BuildStatus.CANCELLED, None, NOW - timedelta(days=1)),
        ]

        snapshot = compute_snapshot(builds)

        self.assertEqual(list(snapshot.daily), ["2024-01-07", "2024-01-08"])
        self.assertEqual(snapshot.daily["2024-01-08"]["total"], 2)
        self.assertEqual(snapshot.daily["2024-01-07"]["cancelled"], 1)
        self.assertEqual(snapshot.hourly[12], {"total": 2, "success": 1, "failed": 1})


class ConsecutiveFailuresTests(SimpleTestCase):
    def test_counts_leading_failures(self):
        statuses = [BuildStatus.FAILED, BuildStatus.FAILED, BuildStatus.SUCCESS, BuildStatus.FAILED]
        self.assertEqual(consecutive_failures([_build(s) for s in statuses]), 2)

    def test_any_other_status_resets(self):
        for status in (BuildStatus.SUCCESS, BuildStatus.PENDING, BuildStatus.CANCELLED):
            with self.subTest(status=status):
                builds = [_build(status), _build(BuildStatus.FAILED)]
                self.assertEqual(consecutive_failures(builds), 0)

    def test_all_failed_and_empty(self):
        self.assertEqual(consecutive_failures([_build(BuildStatus.FAILED)] * 4), 4)
        self.assertEqual(consecutive_failures([]), 0)

    def test_failure_count(self):
        statuses = [BuildStatus.FAILED, BuildStatus.SUCCESS, BuildStatus.FAILED]
        self.assertEqual(failure_count([_build(s) for s in statuses]), 2)


class MetricsAggregatorTests(TestCase):
    def setUp(self):
        self.pipeline = Pipeline.objects.create(name="Web", provider="github", native_ref="org/web")
        self.other = Pipeline.objects.create(name="Api", provider="gitlab", native_ref="7")
        statuses = [
            BuildStatus.SUCCESS,
            BuildStatus.FAILED,
            BuildStatus.FAILED,
            BuildStatus.FAILED,
        ]
        # Oldest first; the last three are the most recent.
        for index, status in enumerate(statuses):
            Build.objects.create(
                pipeline=self.pipeline,
                external_id=str(index),
                status=status,
                started_at=NOW - timedelta(hours=len(statuses) - index),
                duration=60 * (index + 1),
            )
        Build.objects.create(
            pipeline=self.other,
            external_id="1",
            status=BuildStatus.SUCCESS,
            started_at=NOW - timedelta(days=40),
        )
        self.aggregator = MetricsAggregator(self.pipeline.pk)

    def test_query_builds_most_recent_first(self):
        builds = self.aggregator.query_builds()

        self.assertEqual([b.external_id for b in builds], ["3", "2", "1", "0"])

    def test_window_by_count(self):
        builds = self.aggregator.query_builds(BuildWindow(limit=2))

        self.assertEqual([b.external_id for b in builds], ["3", "2"])

    def test_window_by_time(self):
        window = BuildWindow.last_hours(2, now=NOW)

        self.assertEqual(self.aggregator.failure_count(window), 2)

    def test_consecutive_failures(self):
        self.assertEqual(self.aggregator.consecutive_failures(), 3)

    def test_consecutive_failures_respects_count_window(self):
        self.assertEqual(self.aggregator.consecutive_failures(BuildWindow(limit=2)), 2)

    def test_consecutive_failures_reads_only_recent_statuses(self):
        for index in range(4, 4 + BUILD_PAGE_SIZE * 3):
            Build.objects.create(
                pipeline=self.pipeline,
                external_id=str(index),
                status=BuildStatus.SUCCESS,
                started_at=NOW - timedelta(days=2, minutes=index),
            )

        with CaptureQueriesContext(connection) as ctx:
            streak = self.aggregator.consecutive_failures()

        self.assertEqual(streak, 3)
        self.assertEqual(len(ctx.captured_queries), 1)
        sql = ctx.captured_queries[0]["sql"]
        self.assertIn("LIMIT", sql)
        self.assertNotIn("raw_payload", sql)

    def test_consecutive_failures_spans_pages(self):
        for index in range(4, 4 + BUILD_PAGE_SIZE + 5):
            Build.objects.create(
                pipeline=self.pipeline,
                external_id=str(index),
                status=BuildStatus.FAILED,
                started_at=NOW + timedelta(minutes=index),
            )

        self.assertEqual(self.aggregator.consecutive_failures(), BUILD_PAGE_SIZE + 8)

    def test_success_rate(self):
        self.assertEqual(self.aggregator.success_rate(), 25.0)

    def test_deterministic_for_same_snapshot(self):
        window = BuildWindow.last_days(7, now=NOW)

        self.assertEqual(self.aggregator.snapshot(window), self.aggregator.snapshot(window))

    def test_pipeline_overview(self):
        overview = pipeline_overview(30, now=NOW)

        self.assertEqual(overview["overview"]["total_builds"], 4)
        by_name = {p["pipeline_name"]: p for p in overview["pipelines"]}
        self.assertEqual(by_name["Web"]["last_build_status"], BuildStatus.FAILED)
        self.assertEqual(by_name["Api"]["total_builds"], 0)
        self.assertIsNone(by_name["Api"]["last_build_status"])
