"""
Azure DevOps driver.

Handles pipeline run state-change, build-complete and git push service hooks.
See: https://learn.microsoft.com/en-us/azure/devops/service-hooks/events

Runs report a (state, result) pair; result is only set once state is
"completed".
"""

from dataclasses import dataclass
from typing import Any

from apps.pipelines.models import BuildStatus
from apps.pipelines.providers.base import BaseProviderDriver, ProviderEvent

AZURE_STATE_MAP = {
    "inprogress": BuildStatus.RUNNING,
    "canceling": BuildStatus.RUNNING,
    "notstarted": BuildStatus.PENDING,
    "postponed": BuildStatus.PENDING,
}

AZURE_RESULT_MAP = {
    "succeeded": BuildStatus.SUCCESS,
    "failed": BuildStatus.FAILED,
    "partiallysucceeded": BuildStatus.FAILED,
    "canceled": BuildStatus.CANCELLED,
    "skipped": BuildStatus.CANCELLED,
}

PUSH_EVENT_TYPES = ("git.push",)


def map_azure_status(state: str | None, result: str | None) -> str:
    state = (state or "").lower()
    if state == "completed":
        return AZURE_RESULT_MAP.get((result or "").lower(), BuildStatus.FAILED)
    return AZURE_STATE_MAP.get(state, BuildStatus.PENDING)


@dataclass
class AzureRunEvent(ProviderEvent):
    state: str = ""
    result: str = ""

    provider = "azure"

    def to_canonical(self) -> str:
        return map_azure_status(self.state, self.result)


class AzureDevOpsDriver(BaseProviderDriver):
    """
    Driver for Azure DevOps service hooks.

    {
        "eventType": "ms.vss-pipelines.run-state-changed-event",
        "resource": {
            "id": 12,
            "name": "CI",
            "state": "completed",
            "result": "succeeded",
            "startTime": "...",
            "finishTime": "...",
            "sourceBranch": "refs/heads/main",
            "sourceVersion": "...",
            "project": {"id": "..."}
        },
        "resourceContainers": {"project": {"id": "..."}}
    }

    Build-complete events use `status` in place of `state`.
    """

    name = "azure"

    def parse(self, payload: dict[str, Any], event_type: str | None = None) -> list[ProviderEvent]:
        kind = event_type or payload.get("eventType") or ""
        resource = self._require_object(payload, "resource")

        if kind in PUSH_EVENT_TYPES:
            return self._parse_push(payload, resource)
        return [self._parse_run(payload, resource)]

    def _project_id(self, payload: dict[str, Any], resource: dict[str, Any]) -> str:
        project = self._object(resource, "project")
        if not project:
            project = self._object(self._object(resource, "repository"), "project")
        if not project:
            project = self._object(self._object(payload, "resourceContainers"), "project")
        return str(project.get("id") or "")

    def _parse_run(self, payload: dict[str, Any], resource: dict[str, Any]) -> AzureRunEvent:
        run = self._object(resource, "run") or resource
        run_id = self._require(run, "id", "resource")
        state = run.get("state") or run.get("status")
        if not state:
            self._require(run, "state", "resource")

        links = self._object(self._object(run, "_links"), "web")

        return AzureRunEvent(
            native_ref=self._project_id(payload, resource),
            external_id=str(run_id),
            state=str(state),
            result=str(run.get("result") or ""),
            branch=self._strip_ref(run.get("sourceBranch")),
            commit_hash=str(run.get("sourceVersion") or ""),
            commit_message=f"Azure DevOps: {run['name']}" if run.get("name") else "",
            author=str(self._object(run, "requestedFor").get("displayName") or ""),
            web_url=str(links.get("href") or run.get("url") or ""),
            started_at=self._parse_timestamp(run.get("startTime") or run.get("createdDate")),
            completed_at=self._parse_timestamp(run.get("finishTime") or run.get("finishedDate")),
            raw_payload=payload,
        )

    def _parse_push(self, payload: dict[str, Any], resource: dict[str, Any]) -> list[ProviderEvent]:
        commits = [c for c in resource.get("commits") or [] if isinstance(c, dict)]
        if not commits:
            self._require(resource, "commits", "resource")

        ref_updates = resource.get("refUpdates")
        if not isinstance(ref_updates, list):
            ref_updates = []
        first_update = ref_updates[0] if ref_updates and isinstance(ref_updates[0], dict) else {}
        branch = self._strip_ref(first_update.get("name"))
        project_id = self._project_id(payload, resource)

        events: list[ProviderEvent] = []
        for commit in commits:
            commit_id = str(self._require(commit, "commitId", "resource.commits[]"))
            author = self._object(commit, "author")
            events.append(
                AzureRunEvent(
                    native_ref=project_id,
                    external_id=self._synthesize_push_id(commit_id),
                    state="notStarted",
                    branch=branch,
                    commit_hash=commit_id,
                    commit_message=str(commit.get("comment") or ""),
                    author=str(author.get("name") or ""),
                    web_url=str(commit.get("url") or ""),
                    started_at=self._parse_timestamp(author.get("date")),
                    raw_payload=commit,
                )
            )
        return events
