import json
from datetime import datetime, timedelta
from datetime import timezone as dt_tz
from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse

from apps.alerts.models import AlertRule, AlertRuleStatus, AlertTrigger
from apps.notify.drivers.chat import ChatNotifyDriver
from apps.notify.feed import get_feed
from apps.pipelines.models import Pipeline

NOW = datetime(2024, 1, 8, 12, 0, 0, tzinfo=dt_tz.utc)


class AlertRuleViewTestCase(TestCase):
    def setUp(self):
        self.pipeline = Pipeline.objects.create(name="Web", provider="github", native_ref="org/web")
        self.rule = AlertRule.objects.create(
            pipeline=self.pipeline,
            name="Low success rate",
            condition_type="success_rate",
            operator="<",
            threshold=95,
            severity="high",
            channels=["chat"],
        )
        get_feed().clear()
        self.addCleanup(get_feed().clear)

    def _trigger(self, minutes=0, severity="high"):
        return AlertTrigger.objects.create(
            rule=self.rule,
            triggered_at=NOW + timedelta(minutes=minutes),
            severity=severity,
            message="Success Rate less than 95 (current: 80)",
            metric_value=80,
            channels_attempted=["chat"],
            channels_succeeded=["chat"],
        )


class AlertRuleListViewTests(AlertRuleViewTestCase):
    def test_lists_rules(self):
        response = self.client.get(reverse("alerts:rules"))

        self.assertEqual(response.status_code, 200)
        rules = response.json()["rules"]
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0]["condition"], "Success Rate less than 95")

    def test_filters(self):
        self.assertEqual(
            len(self.client.get(reverse("alerts:rules"), {"status": "triggered"}).json()["rules"]), 0
        )
        self.assertEqual(
            len(self.client.get(reverse("alerts:rules"), {"pipeline": self.pipeline.pk}).json()["rules"]),
            1,
        )
        self.assertEqual(self.client.get(reverse("alerts:rules"), {"status": "nope"}).status_code, 400)


class AlertRuleHistoryViewTests(AlertRuleViewTestCase):
    def test_history_newest_first(self):
        older = self._trigger(minutes=0)
        newer = self._trigger(minutes=5)

        response = self.client.get(reverse("alerts:rule_history", kwargs={"rule_id": self.rule.pk}))

        data = response.json()
        self.assertEqual([h["id"] for h in data["history"]], [newer.pk, older.pk])
        self.assertEqual(data["pagination"], {"page": 1, "limit": 20, "total": 2, "pages": 1})
        self.assertEqual(data["rule"]["name"], "Low success rate")

    def test_pagination(self):
        for minutes in range(3):
            self._trigger(minutes=minutes)

        response = self.client.get(
            reverse("alerts:rule_history", kwargs={"rule_id": self.rule.pk}), {"page": 2, "limit": 2}
        )

        data = response.json()
        self.assertEqual(len(data["history"]), 1)
        self.assertEqual(data["pagination"]["pages"], 2)

    def test_limit_validated(self):
        url = reverse("alerts:rule_history", kwargs={"rule_id": self.rule.pk})
        self.assertEqual(self.client.get(url, {"limit": 500}).status_code, 400)
        self.assertEqual(self.client.get(url, {"page": 0}).status_code, 400)

    def test_unknown_rule(self):
        response = self.client.get(reverse("alerts:rule_history", kwargs={"rule_id": 999}))
        self.assertEqual(response.status_code, 404)


class AlertHistoryViewTests(AlertRuleViewTestCase):
    def test_filters(self):
        self._trigger(minutes=0, severity="high")
        self._trigger(minutes=10, severity="critical")
        url = reverse("alerts:history")

        self.assertEqual(self.client.get(url).json()["pagination"]["total"], 2)
        self.assertEqual(self.client.get(url, {"severity": "critical"}).json()["pagination"]["total"], 1)
        since = (NOW + timedelta(minutes=5)).isoformat()
        self.assertEqual(self.client.get(url, {"date_from": since}).json()["pagination"]["total"], 1)
        self.assertEqual(self.client.get(url, {"rule": self.rule.pk}).json()["pagination"]["total"], 2)

    def test_bad_date(self):
        response = self.client.get(reverse("alerts:history"), {"date_from": "yesterday"})
        self.assertEqual(response.status_code, 400)


class AlertRuleActionViewTests(AlertRuleViewTestCase):
    def test_acknowledge(self):
        response = self.client.post(
            reverse("alerts:rule_acknowledge", kwargs={"rule_id": self.rule.pk}),
            data=json.dumps({"acknowledged_by": "oncall", "notes": "on it"}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.rule.refresh_from_db()
        self.assertEqual(self.rule.status, AlertRuleStatus.ACKNOWLEDGED)
        self.assertEqual(self.rule.acknowledged_by, "oncall")
        self.assertEqual(self.rule.acknowledgement_notes, "on it")

    def test_acknowledge_without_body(self):
        response = self.client.post(reverse("alerts:rule_acknowledge", kwargs={"rule_id": self.rule.pk}))
        self.assertEqual(response.status_code, 200)
        self.rule.refresh_from_db()
        self.assertEqual(self.rule.status, AlertRuleStatus.ACKNOWLEDGED)

    def test_acknowledge_form_encoded(self):
        response = self.client.post(
            reverse("alerts:rule_acknowledge", kwargs={"rule_id": self.rule.pk}),
            data={"acknowledged_by": "oncall", "notes": "looking"},
        )

        self.assertEqual(response.status_code, 200)
        self.rule.refresh_from_db()
        self.assertEqual(self.rule.acknowledged_by, "oncall")
        self.assertEqual(self.rule.acknowledgement_notes, "looking")

    def test_acknowledge_invalid_json(self):
        response = self.client.post(
            reverse("alerts:rule_acknowledge", kwargs={"rule_id": self.rule.pk}),
            data="{oops",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_reset(self):
        AlertRule.objects.filter(pk=self.rule.pk).update(
            status=AlertRuleStatus.TRIGGERED, last_triggered=NOW
        )

        response = self.client.post(reverse("alerts:rule_reset", kwargs={"rule_id": self.rule.pk}))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["rule"]["status"], "active")
        self.assertIsNone(response.json()["rule"]["last_triggered"])

    def test_reset_unknown_rule(self):
        response = self.client.post(reverse("alerts:rule_reset", kwargs={"rule_id": 999}))
        self.assertEqual(response.status_code, 404)

    @patch.object(ChatNotifyDriver, "send", return_value={"success": True})
    def test_send_test(self, mock_send):
        with self.settings(NOTIFY_CHANNELS={"chat": {"webhook_url": "https://hooks.example.com/x"}}):
            response = self.client.post(reverse("alerts:rule_test", kwargs={"rule_id": self.rule.pk}))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["succeeded"], ["chat"])
        self.assertFalse(AlertTrigger.objects.exists())

    def test_send_test_without_channels(self):
        self.rule.channels = []
        self.rule.save()
        response = self.client.post(reverse("alerts:rule_test", kwargs={"rule_id": self.rule.pk}))
        self.assertEqual(response.status_code, 400)
