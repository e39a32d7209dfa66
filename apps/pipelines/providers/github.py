"""
GitHub Actions driver.

Handles `workflow_run`, `push` and `pull_request` webhooks.
See: https://docs.github.com/en/webhooks/webhook-events-and-payloads#workflow_run

A workflow run reports its lifecycle as a (status, conclusion) pair; the
conclusion is only meaningful once status is "completed".
"""

from dataclasses import dataclass
from typing import Any

from apps.pipelines.models import BuildStatus
from apps.pipelines.providers.base import BaseProviderDriver, ProviderEvent

GITHUB_STATUS_MAP = {
    "in_progress": BuildStatus.RUNNING,
    "queued": BuildStatus.PENDING,
    "waiting": BuildStatus.PENDING,
    "requested": BuildStatus.PENDING,
    "pending": BuildStatus.PENDING,
}

GITHUB_CONCLUSION_MAP = {
    "success": BuildStatus.SUCCESS,
    "failure": BuildStatus.FAILED,
    "timed_out": BuildStatus.FAILED,
    "startup_failure": BuildStatus.FAILED,
    "action_required": BuildStatus.FAILED,
    "cancelled": BuildStatus.CANCELLED,
    "skipped": BuildStatus.CANCELLED,
    "neutral": BuildStatus.CANCELLED,
    "stale": BuildStatus.CANCELLED,
}

# Pull request actions that start a new CI run
PULL_REQUEST_ACTIONS = ("opened", "synchronize", "reopened")


def map_github_status(status: str | None, conclusion: str | None) -> str:
    """Map a workflow run (status, conclusion) pair to a canonical status."""
    status = (status or "").lower()
    if status == "completed":
        return GITHUB_CONCLUSION_MAP.get((conclusion or "").lower(), BuildStatus.FAILED)
    return GITHUB_STATUS_MAP.get(status, BuildStatus.PENDING)


@dataclass
class GitHubRunEvent(ProviderEvent):
    status: str = ""
    conclusion: str = ""

    provider = "github"

    def to_canonical(self) -> str:
        return map_github_status(self.status, self.conclusion)


class GitHubActionsDriver(BaseProviderDriver):
    """
    Driver for GitHub Actions webhooks.

    Workflow run events look like:
    {
        "action": "completed",
        "workflow_run": {
            "id": 42,
            "status": "completed",
            "conclusion": "failure",
            "head_branch": "main",
            "head_sha": "abc123...",
            "run_started_at": "...",
            "updated_at": "...",
            "html_url": "...",
            "actor": {"login": "octocat"},
            "repository": {"full_name": "org/repo"}
        },
        "repository": {"full_name": "org/repo"}
    }

    The bare run object (without the `workflow_run` wrapper, `run_id` as id)
    is accepted too.
    """

    name = "github"

    def parse(self, payload: dict[str, Any], event_type: str | None = None) -> list[ProviderEvent]:
        kind = event_type or self._infer_kind(payload)

        if kind == "push":
            return [self._parse_push(payload)]
        if kind == "pull_request":
            if payload.get("action") not in PULL_REQUEST_ACTIONS:
                return []
            return [self._parse_pull_request(payload)]
        return [self._parse_workflow_run(payload)]

    def _infer_kind(self, payload: dict[str, Any]) -> str:
        if "workflow_run" in payload:
            return "workflow_run"
        if "head_commit" in payload and "ref" in payload:
            return "push"
        if "pull_request" in payload:
            return "pull_request"
        return "workflow_run"

    def _repository(self, *sources: dict[str, Any]) -> str:
        for source in sources:
            repo = source.get("repository")
            if isinstance(repo, dict) and repo.get("full_name"):
                return str(repo["full_name"])
            if isinstance(repo, str) and repo:
                return repo
        return ""

    def _parse_workflow_run(self, payload: dict[str, Any]) -> GitHubRunEvent:
        run = payload.get("workflow_run", payload)
        if not isinstance(run, dict):
            run = {}

        run_id = run.get("id") or run.get("run_id")
        if run_id in (None, ""):
            self._require(run, "id", "workflow_run")
        self._require(run, "status", "workflow_run")

        status = str(run["status"])
        conclusion = str(run.get("conclusion") or "")
        started_at = self._parse_timestamp(run.get("run_started_at") or run.get("created_at"))
        completed_at = None
        if status.lower() == "completed":
            completed_at = self._parse_timestamp(run.get("updated_at") or run.get("completed_at"))

        actor = self._object(run, "actor")

        return GitHubRunEvent(
            native_ref=self._repository(run, payload),
            external_id=str(run_id),
            status=status,
            conclusion=conclusion,
            branch=str(run.get("head_branch") or ""),
            commit_hash=str(run.get("head_sha") or ""),
            commit_message=f"GitHub Actions: {run['name']}" if run.get("name") else "",
            author=str(actor.get("login") or ""),
            web_url=str(run.get("html_url") or ""),
            started_at=started_at,
            completed_at=completed_at,
            raw_payload=payload,
        )

    def _parse_push(self, payload: dict[str, Any]) -> GitHubRunEvent:
        head_commit = self._require_object(payload, "head_commit")
        commit_id = str(self._require(head_commit, "id", "head_commit"))
        author = self._object(head_commit, "author")

        return GitHubRunEvent(
            native_ref=self._repository(payload),
            external_id=self._synthesize_push_id(commit_id),
            status="queued",
            branch=self._strip_ref(payload.get("ref")),
            commit_hash=commit_id,
            commit_message=str(head_commit.get("message") or ""),
            author=str(author.get("name") or author.get("username") or ""),
            web_url=str(head_commit.get("url") or ""),
            started_at=self._parse_timestamp(head_commit.get("timestamp")),
            raw_payload=payload,
        )

    def _parse_pull_request(self, payload: dict[str, Any]) -> GitHubRunEvent:
        pull_request = self._require_object(payload, "pull_request")
        number = self._require(pull_request, "number", "pull_request")
        head = self._object(pull_request, "head")
        user = self._object(pull_request, "user")

        return GitHubRunEvent(
            native_ref=self._repository(payload),
            external_id=f"pr-{number}",
            status="queued",
            branch=str(head.get("ref") or ""),
            commit_hash=str(head.get("sha") or ""),
            commit_message=f"PR: {pull_request.get('title', '')}",
            author=str(user.get("login") or ""),
            web_url=str(pull_request.get("html_url") or ""),
            started_at=self._parse_timestamp(pull_request.get("updated_at")),
            raw_payload=payload,
        )
