import pytest
from django.utils import timezone

from apps.alerts.models import AlertRule, AlertRuleStatus, AlertTrigger
from apps.pipelines.models import Pipeline


@pytest.fixture
def rule(db):
    pipeline = Pipeline.objects.create(name="Web", provider="github", native_ref="org/web")
    return AlertRule.objects.create(
        pipeline=pipeline,
        name="Slow builds",
        condition_type="build_time",
        operator=">",
        threshold=600,
        channels=["chat"],
    )


@pytest.mark.django_db
class TestAdminPages:
    def test_rule_list_loads(self, admin_client, rule):
        response = admin_client.get("/admin/alerts/alertrule/")
        assert response.status_code == 200

    def test_rule_change_page_loads(self, admin_client, rule):
        response = admin_client.get(f"/admin/alerts/alertrule/{rule.pk}/change/")
        assert response.status_code == 200

    def test_trigger_list_loads(self, admin_client, rule):
        AlertTrigger.objects.create(
            rule=rule,
            severity="medium",
            message="Build Time greater than 600 (current: 900)",
            channels_attempted=["chat", "email"],
            channels_succeeded=["email"],
            notification_error="chat: HTTP 500",
        )
        response = admin_client.get("/admin/alerts/alerttrigger/")
        assert response.status_code == 200

    def test_pipeline_and_channel_lists_load(self, admin_client):
        assert admin_client.get("/admin/pipelines/pipeline/").status_code == 200
        assert admin_client.get("/admin/pipelines/build/").status_code == 200
        assert admin_client.get("/admin/notify/notificationchannel/").status_code == 200


@pytest.mark.django_db
class TestRuleActions:
    def test_acknowledge_selected(self, admin_client, rule):
        response = admin_client.post(
            "/admin/alerts/alertrule/",
            {"action": "acknowledge_selected", "_selected_action": [rule.pk]},
        )
        assert response.status_code == 302
        rule.refresh_from_db()
        assert rule.status == AlertRuleStatus.ACKNOWLEDGED
        assert rule.acknowledged_by == "admin"

    def test_reset_selected(self, admin_client, rule):
        AlertRule.objects.filter(pk=rule.pk).update(
            status=AlertRuleStatus.TRIGGERED, last_triggered=timezone.now()
        )
        response = admin_client.post(
            "/admin/alerts/alertrule/",
            {"action": "reset_selected", "_selected_action": [rule.pk]},
        )
        assert response.status_code == 302
        rule.refresh_from_db()
        assert rule.status == AlertRuleStatus.ACTIVE
        assert rule.last_triggered is None

    def test_acknowledge_object_action(self, admin_client, rule):
        response = admin_client.post(
            f"/admin/alerts/alertrule/{rule.pk}/actions/acknowledge_rule/"
        )
        assert response.status_code == 302
        rule.refresh_from_db()
        assert rule.status == AlertRuleStatus.ACKNOWLEDGED
