from django.test import TestCase

from apps.pipelines.models import Build, BuildStatus, Pipeline
from apps.pipelines.tasks import ingest_webhook

JENKINS_PAYLOAD = {
    "name": "job1",
    "build": {
        "number": 7,
        "phase": "COMPLETED",
        "status": "SUCCESS",
        "timestamp": 1704708000000,
        "duration_ms": 120000,
    },
}


class IngestWebhookTaskTests(TestCase):
    def setUp(self):
        self.pipeline = Pipeline.objects.create(name="Deploy", provider="jenkins", native_ref="job1")

    def test_ingests_delivery(self):
        result = ingest_webhook("jenkins", JENKINS_PAYLOAD)

        self.assertEqual(result["status"], "processed")
        self.assertEqual(result["builds_created"], 1)
        build = Build.objects.get(pk=result["build_ids"][0])
        self.assertEqual(build.pipeline, self.pipeline)
        self.assertEqual(build.status, BuildStatus.SUCCESS)

    def test_scoped_to_pipeline(self):
        other = Pipeline.objects.create(name="Other", provider="jenkins", native_ref="elsewhere")

        result = ingest_webhook("jenkins", JENKINS_PAYLOAD, pipeline_id=other.pk)

        self.assertEqual(result["builds_created"], 1)
        self.assertEqual(Build.objects.get().pipeline, other)

    def test_unknown_pipeline_discarded(self):
        result = ingest_webhook("jenkins", JENKINS_PAYLOAD, pipeline_id=999)

        self.assertEqual(result["status"], "discarded")
        self.assertFalse(Build.objects.exists())
