import json
import tempfile
from io import StringIO
from pathlib import Path

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from apps.pipelines.models import Build, BuildStatus, Pipeline


class ReplayWebhookCommandTests(TestCase):
    def setUp(self):
        self.pipeline = Pipeline.objects.create(name="Deploy", provider="jenkins", native_ref="job1")
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write(self, data) -> str:
        path = Path(self.tmpdir.name) / "payload.json"
        path.write_text(json.dumps(data))
        return str(path)

    def test_replays_list_of_deliveries(self):
        path = self._write(
            [
                {"job": "job1", "build": {"number": 1, "phase": "STARTED", "building": True}},
                {"job": "job1", "build": {"number": 1, "status": "FAILURE", "duration_ms": 60000}},
            ]
        )
        out = StringIO()

        call_command("replay_webhook", "jenkins", path, stdout=out)

        build = Build.objects.get()
        self.assertEqual(build.status, BuildStatus.FAILED)
        self.assertIn("[1] processed: 1 created", out.getvalue())
        self.assertIn("[2] processed: 0 created, 1 updated", out.getvalue())

    def test_json_output(self):
        path = self._write({"job": "unknown", "build": {"number": 1, "status": "SUCCESS"}})
        out = StringIO()

        call_command("replay_webhook", "jenkins", path, "--json", stdout=out)

        results = json.loads(out.getvalue())
        self.assertEqual(results[0]["outcome"], "discarded")
        self.assertEqual(len(results[0]["errors"]), 1)

    def test_explicit_pipeline(self):
        path = self._write({"job": "other", "build": {"number": 3, "status": "SUCCESS"}})

        call_command("replay_webhook", "jenkins", path, "--pipeline", str(self.pipeline.pk), stdout=StringIO())

        self.assertEqual(Build.objects.get().pipeline, self.pipeline)

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command("replay_webhook", "jenkins", "/nonexistent/payload.json", stdout=StringIO())

    def test_unknown_pipeline(self):
        path = self._write({"job": "job1", "build": {"number": 1}})
        with self.assertRaises(CommandError):
            call_command("replay_webhook", "jenkins", path, "--pipeline", "999", stdout=StringIO())
