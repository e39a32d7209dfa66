import json
from unittest.mock import patch

from django.test import Client, TestCase, override_settings
from django.urls import reverse

from apps.pipelines.models import Build, BuildStatus, Pipeline


class ProviderWebhookViewTests(TestCase):
    """Tests for the provider webhook view."""

    def setUp(self):
        self.client = Client()
        self.pipeline = Pipeline.objects.create(name="Deploy", provider="jenkins", native_ref="job1")
        self.url = reverse("pipelines:webhook", kwargs={"provider": "jenkins"})
        self.payload = {"job": "job1", "build": {"number": 7, "status": "SUCCESS", "duration_ms": 120000}}

    def _post(self, url, payload, **headers):
        return self.client.post(
            url, data=json.dumps(payload), content_type="application/json", **headers
        )

    def test_processed(self):
        response = self._post(self.url, self.payload)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["status"], "processed")
        self.assertEqual(data["builds_created"], 1)
        self.assertEqual(Build.objects.get().duration, 120)

    def test_duplicate_delivery(self):
        self._post(self.url, self.payload)
        response = self._post(self.url, self.payload)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "duplicate")
        self.assertEqual(Build.objects.count(), 1)

    def test_invalid_payload_still_acknowledged(self):
        response = self._post(self.url, {"job": "job1"})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["status"], "discarded")
        self.assertIn("errors", data)

    def test_unresolved_pipeline_still_acknowledged(self):
        self.payload["job"] = "unknown-job"

        response = self._post(self.url, self.payload)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "discarded")

    def test_unknown_provider_still_acknowledged(self):
        url = reverse("pipelines:webhook", kwargs={"provider": "travis"})

        response = self._post(url, self.payload)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "discarded")

    def test_invalid_json(self):
        response = self.client.post(self.url, data="not json", content_type="application/json")

        self.assertEqual(response.status_code, 400)

    def test_non_utf8_body(self):
        response = self.client.post(self.url, data=b"\xff\xfe\xfa", content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["status"], "error")

    def test_pipeline_scoped_url(self):
        github = Pipeline.objects.create(name="Web", provider="github", native_ref="org/web")
        url = reverse(
            "pipelines:pipeline_webhook", kwargs={"pipeline_id": github.pk, "provider": "github"}
        )
        payload = {"status": "completed", "conclusion": "failure", "run_id": "42", "head_sha": "abc123"}

        response = self._post(url, payload)

        self.assertEqual(response.json()["status"], "processed")
        build = Build.objects.get(pipeline=github)
        self.assertEqual(build.external_id, "42")
        self.assertEqual(build.status, BuildStatus.FAILED)

    def test_pipeline_scoped_url_unknown_pipeline(self):
        url = reverse("pipelines:pipeline_webhook", kwargs={"pipeline_id": 999, "provider": "github"})

        response = self._post(url, {"run_id": 1, "status": "queued"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "discarded")

    def test_github_event_header_is_used(self):
        Pipeline.objects.create(name="Web", provider="github", native_ref="org/web")
        url = reverse("pipelines:webhook", kwargs={"provider": "github"})
        payload = {
            "ref": "refs/heads/main",
            "head_commit": {"id": "deadbeefcafebabe"},
            "repository": {"full_name": "org/web"},
        }

        response = self._post(url, payload, HTTP_X_GITHUB_EVENT="push")

        self.assertEqual(response.json()["status"], "processed")
        self.assertEqual(Build.objects.get().external_id, "push-deadbeef")

    @override_settings(PIPELINES_ASYNC_INGESTION=True)
    def test_async_ingestion_queues_task(self):
        with patch("apps.pipelines.tasks.ingest_webhook.delay") as mock_delay:
            mock_delay.return_value.id = "task-1"
            response = self._post(self.url, self.payload)

        self.assertEqual(response.json(), {"status": "queued", "task_id": "task-1"})
        mock_delay.assert_called_once_with("jenkins", self.payload, None, None)
        self.assertEqual(Build.objects.count(), 0)

    @override_settings(PIPELINES_ASYNC_INGESTION=True)
    def test_async_ingestion_falls_back_when_broker_down(self):
        with patch("apps.pipelines.tasks.ingest_webhook.delay", side_effect=OSError("no broker")):
            response = self._post(self.url, self.payload)

        self.assertEqual(response.json()["status"], "processed")

    def test_get_health_check(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")


class MetricsViewTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.pipeline = Pipeline.objects.create(name="Deploy", provider="jenkins", native_ref="job1")

    def test_pipeline_metrics(self):
        self.client.post(
            reverse("pipelines:webhook", kwargs={"provider": "jenkins"}),
            data=json.dumps({"job": "job1", "build": {"number": 1, "status": "FAILURE"}}),
            content_type="application/json",
        )

        response = self.client.get(
            reverse("pipelines:pipeline_metrics", kwargs={"pipeline_id": self.pipeline.pk})
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["metrics"]["total"], 1)
        self.assertEqual(data["metrics"]["failure_rate"], 100.0)
        self.assertEqual(data["consecutive_failures"], 1)

    def test_pipeline_metrics_with_limit(self):
        url = reverse("pipelines:pipeline_metrics", kwargs={"pipeline_id": self.pipeline.pk})

        response = self.client.get(url, {"limit": "10"})

        self.assertEqual(response.json()["window"], {"days": None, "limit": 10})

    def test_invalid_days(self):
        url = reverse("pipelines:pipeline_metrics", kwargs={"pipeline_id": self.pipeline.pk})

        self.assertEqual(self.client.get(url, {"days": "abc"}).status_code, 400)
        self.assertEqual(self.client.get(url, {"days": "0"}).status_code, 400)

    def test_unknown_pipeline(self):
        url = reverse("pipelines:pipeline_metrics", kwargs={"pipeline_id": 999})

        self.assertEqual(self.client.get(url).status_code, 404)

    def test_overview(self):
        response = self.client.get(reverse("pipelines:metrics_overview"), {"days": "7"})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["period_days"], 7)
        self.assertEqual(data["pipelines"][0]["pipeline_name"], "Deploy")
