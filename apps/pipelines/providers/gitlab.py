"""
GitLab CI driver.

Handles pipeline, job ("build") and push webhooks.
See: https://docs.gitlab.com/ee/user/project/integrations/webhook_events.html

GitLab reports a single status enum for both pipelines and jobs.
"""

from dataclasses import dataclass
from typing import Any

from apps.pipelines.models import BuildStatus
from apps.pipelines.providers.base import BaseProviderDriver, ProviderEvent

GITLAB_STATUS_MAP = {
    "success": BuildStatus.SUCCESS,
    "failed": BuildStatus.FAILED,
    "canceled": BuildStatus.CANCELLED,
    "cancelled": BuildStatus.CANCELLED,
    "skipped": BuildStatus.CANCELLED,
    "running": BuildStatus.RUNNING,
    "pending": BuildStatus.PENDING,
    "created": BuildStatus.PENDING,
    "preparing": BuildStatus.PENDING,
    "scheduled": BuildStatus.PENDING,
    "manual": BuildStatus.PENDING,
    "waiting_for_resource": BuildStatus.PENDING,
}


def map_gitlab_status(status: str | None) -> str:
    return GITLAB_STATUS_MAP.get((status or "").lower(), BuildStatus.PENDING)


@dataclass
class GitLabJobEvent(ProviderEvent):
    status: str = ""

    provider = "gitlab"

    def to_canonical(self) -> str:
        return map_gitlab_status(self.status)


class GitLabCIDriver(BaseProviderDriver):
    """
    Driver for GitLab CI webhooks.

    Pipeline events carry the pipeline in `object_attributes`:
    {
        "object_kind": "pipeline",
        "object_attributes": {"id": 31, "status": "success", "ref": "main",
                              "sha": "...", "created_at": "...", "finished_at": "...",
                              "duration": 63},
        "project": {"id": 1, "name": "repo", "web_url": "..."},
        "user": {"name": "..."},
        "commit": {"id": "...", "message": "..."},
        "builds": [...]
    }

    Older hooks without `object_attributes` report one build per job in `builds`.
    """

    name = "gitlab"

    def parse(self, payload: dict[str, Any], event_type: str | None = None) -> list[ProviderEvent]:
        kind = self._require(payload, "object_kind")

        if kind == "push":
            return self._parse_push(payload)
        if kind == "build":
            return [self._parse_job_hook(payload)]
        if kind == "pipeline":
            project = self._require_object(payload, "project")
            project_id = self._require(project, "id", "project")
            if isinstance(payload.get("object_attributes"), dict):
                return [self._parse_pipeline(payload, str(project_id))]
            builds = payload.get("builds") or []
            return [
                self._parse_job(job, payload, str(project_id))
                for job in builds
                if isinstance(job, dict)
            ]
        return []

    def _parse_pipeline(self, payload: dict[str, Any], project_id: str) -> GitLabJobEvent:
        attrs = payload["object_attributes"]
        pipeline_id = self._require(attrs, "id", "object_attributes")
        status = self._require(attrs, "status", "object_attributes")
        commit = self._object(payload, "commit")
        user = self._object(payload, "user")
        project = self._object(payload, "project")

        web_url = attrs.get("url") or ""
        if not web_url and project.get("web_url"):
            web_url = f"{project['web_url']}/-/pipelines/{pipeline_id}"

        return GitLabJobEvent(
            native_ref=project_id,
            external_id=str(pipeline_id),
            status=str(status),
            branch=str(attrs.get("ref") or ""),
            commit_hash=str(attrs.get("sha") or commit.get("id") or ""),
            commit_message=str(commit.get("message") or ""),
            author=str(user.get("name") or user.get("username") or ""),
            web_url=str(web_url),
            started_at=self._parse_timestamp(attrs.get("created_at")),
            completed_at=self._parse_timestamp(attrs.get("finished_at")),
            duration=self._seconds(attrs.get("duration")),
            raw_payload=payload,
        )

    def _parse_job(self, job: dict[str, Any], payload: dict[str, Any], project_id: str) -> GitLabJobEvent:
        job_id = self._require(job, "id", "builds[]")
        status = self._require(job, "status", "builds[]")
        commit = self._object(job, "commit") or self._object(payload, "commit")
        user = self._object(job, "user")

        return GitLabJobEvent(
            native_ref=project_id,
            external_id=str(job_id),
            status=str(status),
            branch=str(job.get("ref") or ""),
            commit_hash=str(commit.get("id") or ""),
            commit_message=str(commit.get("message") or ""),
            author=str(user.get("name") or ""),
            started_at=self._parse_timestamp(job.get("started_at") or job.get("created_at")),
            completed_at=self._parse_timestamp(job.get("finished_at")),
            duration=self._seconds(job.get("duration")),
            raw_payload=job,
        )

    def _parse_job_hook(self, payload: dict[str, Any]) -> GitLabJobEvent:
        job_id = self._require(payload, "build_id")
        status = self._require(payload, "build_status")
        project_id = payload.get("project_id") or self._object(payload, "project").get("id")
        commit = self._object(payload, "commit")
        user = self._object(payload, "user")

        return GitLabJobEvent(
            native_ref=str(project_id or ""),
            external_id=str(job_id),
            status=str(status),
            branch=str(payload.get("ref") or ""),
            commit_hash=str(payload.get("sha") or commit.get("sha") or ""),
            commit_message=str(commit.get("message") or ""),
            author=str(user.get("name") or ""),
            started_at=self._parse_timestamp(payload.get("build_started_at")),
            completed_at=self._parse_timestamp(payload.get("build_finished_at")),
            duration=self._seconds(payload.get("build_duration")),
            raw_payload=payload,
        )

    def _parse_push(self, payload: dict[str, Any]) -> list[ProviderEvent]:
        project_id = payload.get("project_id") or self._object(payload, "project").get("id")
        sha = payload.get("checkout_sha") or payload.get("after")
        commits = [c for c in payload.get("commits") or [] if isinstance(c, dict)]
        head = next((c for c in commits if c.get("id") == sha), commits[-1] if commits else {})
        sha = sha or head.get("id")
        if not sha:
            self._require(payload, "checkout_sha")

        author = self._object(head, "author")
        return [
            GitLabJobEvent(
                native_ref=str(project_id or ""),
                external_id=self._synthesize_push_id(str(sha)),
                status="pending",
                branch=self._strip_ref(payload.get("ref")),
                commit_hash=str(sha),
                commit_message=str(head.get("message") or ""),
                author=str(author.get("name") or payload.get("user_name") or ""),
                web_url=str(head.get("url") or ""),
                started_at=self._parse_timestamp(head.get("timestamp")),
                raw_payload=payload,
            )
        ]

    def _seconds(self, value: Any) -> float | None:
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None
