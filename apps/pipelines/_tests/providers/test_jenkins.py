from django.test import SimpleTestCase

from apps.pipelines.exceptions import EventValidationError
from apps.pipelines.models import BuildStatus
from apps.pipelines.providers import JenkinsDriver, map_jenkins_status


class MapJenkinsStatusTests(SimpleTestCase):
    def test_building_flag_wins(self):
        self.assertEqual(map_jenkins_status(True, "SUCCESS"), BuildStatus.RUNNING)

    def test_result_table(self):
        cases = [
            ("SUCCESS", BuildStatus.SUCCESS),
            ("FAILURE", BuildStatus.FAILED),
            ("UNSTABLE", BuildStatus.FAILED),
            ("ABORTED", BuildStatus.CANCELLED),
            ("NOT_BUILT", BuildStatus.CANCELLED),
            ("IN_PROGRESS", BuildStatus.RUNNING),
            ("RUNNING", BuildStatus.RUNNING),
            ("success", BuildStatus.SUCCESS),
            ("SOMETHING_ELSE", BuildStatus.PENDING),
            (None, BuildStatus.PENDING),
        ]
        for result, expected in cases:
            with self.subTest(result=result):
                self.assertEqual(map_jenkins_status(False, result), expected)


class JenkinsDriverTests(SimpleTestCase):
    def setUp(self):
        self.driver = JenkinsDriver()

    def test_parse_completed_build(self):
        payload = {"job": "job1", "build": {"number": 7, "status": "SUCCESS", "duration_ms": 120000}}

        event = self.driver.parse(payload)[0]

        self.assertEqual(event.native_ref, "job1")
        self.assertEqual(event.external_id, "7")
        self.assertEqual(event.duration, 120.0)
        self.assertEqual(event.to_canonical(), BuildStatus.SUCCESS)

    def test_started_phase_without_result_is_running(self):
        payload = {
            "name": "job1",
            "build": {"number": 8, "phase": "STARTED", "timestamp": 1704708000000},
        }

        event = self.driver.parse(payload)[0]

        self.assertEqual(event.to_canonical(), BuildStatus.RUNNING)
        self.assertIsNone(event.duration)
        self.assertEqual(event.started_at.year, 2024)

    def test_scm_details(self):
        payload = {
            "job": "job1",
            "build": {
                "number": 9,
                "result": "FAILURE",
                "scm": {"branch": "origin/main", "commit": "abc123"},
            },
        }

        event = self.driver.parse(payload)[0]

        self.assertEqual(event.branch, "origin/main")
        self.assertEqual(event.commit_hash, "abc123")
        self.assertEqual(event.to_canonical(), BuildStatus.FAILED)

    def test_missing_job_raises(self):
        with self.assertRaises(EventValidationError):
            self.driver.parse({"build": {"number": 1}})

    def test_missing_build_number_raises(self):
        with self.assertRaises(EventValidationError):
            self.driver.parse({"job": "job1", "build": {"status": "SUCCESS"}})
