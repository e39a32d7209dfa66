"""
Jenkins driver.

Handles build notifications from the Jenkins Notification plugin and
similar job-level webhooks.

Jenkins exposes a boolean "building" flag next to a result code that is only
set once the build finishes.
"""

from dataclasses import dataclass
from typing import Any

from apps.pipelines.models import BuildStatus
from apps.pipelines.providers.base import BaseProviderDriver, ProviderEvent

JENKINS_RESULT_MAP = {
    "SUCCESS": BuildStatus.SUCCESS,
    "FAILURE": BuildStatus.FAILED,
    "UNSTABLE": BuildStatus.FAILED,
    "ABORTED": BuildStatus.CANCELLED,
    "NOT_BUILT": BuildStatus.CANCELLED,
    "IN_PROGRESS": BuildStatus.RUNNING,
    "RUNNING": BuildStatus.RUNNING,
}


def map_jenkins_status(building: bool, result: str | None) -> str:
    """Map the (building, result) pair to a canonical status."""
    if building:
        return BuildStatus.RUNNING
    return JENKINS_RESULT_MAP.get((result or "").upper(), BuildStatus.PENDING)


@dataclass
class JenkinsBuildEvent(ProviderEvent):
    building: bool = False
    result: str = ""

    provider = "jenkins"

    def to_canonical(self) -> str:
        return map_jenkins_status(self.building, self.result)


class JenkinsDriver(BaseProviderDriver):
    """
    Driver for Jenkins build webhooks.

    Accepts:
    {
        "name": "job1",              # or "job"
        "url": "job/job1/",
        "build": {
            "number": 7,
            "phase": "COMPLETED",    # QUEUED / STARTED / COMPLETED / FINALIZED
            "status": "SUCCESS",     # or "result"
            "building": false,
            "timestamp": 1704708000000,
            "duration_ms": 120000,   # or "duration" (milliseconds)
            "full_url": "...",
            "scm": {"branch": "main", "commit": "..."}
        }
    }
    """

    name = "jenkins"

    def parse(self, payload: dict[str, Any], event_type: str | None = None) -> list[ProviderEvent]:
        job = payload.get("job") or payload.get("name")
        if not job:
            self._require(payload, "job")
        build = self._require_object(payload, "build")
        number = self._require(build, "number", "build")

        result = str(build.get("status") or build.get("result") or "")
        phase = str(build.get("phase") or "").upper()
        building = bool(build.get("building")) or (phase == "STARTED" and not result)

        duration_ms = build.get("duration_ms", build.get("duration"))
        duration = None
        if duration_ms not in (None, "") and not building:
            try:
                duration = float(duration_ms) / 1000
            except (TypeError, ValueError):
                duration = None

        scm = self._object(build, "scm")

        return [
            JenkinsBuildEvent(
                native_ref=str(job),
                external_id=str(number),
                building=building,
                result=result,
                branch=self._strip_ref(scm.get("branch") or build.get("branch")),
                commit_hash=str(scm.get("commit") or ""),
                commit_message=f"Jenkins build #{number}",
                author=str(build.get("user") or ""),
                web_url=str(build.get("full_url") or ""),
                started_at=self._parse_timestamp(build.get("timestamp")),
                duration=duration,
                raw_payload=payload,
            )
        ]
