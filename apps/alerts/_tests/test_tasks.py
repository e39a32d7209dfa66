from datetime import datetime
from datetime import timezone as dt_tz
from unittest.mock import patch

from django.test import TestCase

from apps.alerts.models import AlertRule, AlertTrigger
from apps.alerts.tasks import evaluate_build_alerts
from apps.notify.drivers.webhook import WebhookNotifyDriver
from apps.notify.feed import get_feed
from apps.pipelines.models import Build, Pipeline

NOW = datetime(2024, 1, 8, 12, 0, 0, tzinfo=dt_tz.utc)


class EvaluateBuildAlertsTaskTests(TestCase):
    def setUp(self):
        self.pipeline = Pipeline.objects.create(name="Web", provider="github", native_ref="org/web")
        get_feed().clear()
        self.addCleanup(get_feed().clear)

    def test_missing_build(self):
        result = evaluate_build_alerts(999)
        self.assertEqual(result["status"], "skipped")

    @patch.object(WebhookNotifyDriver, "send", return_value={"success": True})
    def test_evaluates_rules(self, mock_send):
        AlertRule.objects.create(
            pipeline=self.pipeline,
            name="Slow build",
            condition_type="build_time",
            operator=">",
            threshold=600,
            channels=["webhook"],
        )
        build = Build.objects.create(
            pipeline=self.pipeline,
            external_id="1",
            status="success",
            started_at=NOW,
            completed_at=NOW,
            duration=900,
        )

        with self.settings(NOTIFY_CHANNELS={"webhook": {"endpoint": "https://example.com/hook"}}):
            result = evaluate_build_alerts(build.pk)

        self.assertEqual(result["status"], "evaluated")
        self.assertEqual(result["triggered"], 1)
        self.assertEqual(AlertTrigger.objects.get().channels_succeeded, ["webhook"])
