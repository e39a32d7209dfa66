"""
Provider drivers for ingesting build events from CI/CD systems.
"""

from apps.pipelines.exceptions import UnknownProviderError
from apps.pipelines.providers.azure import AzureDevOpsDriver, AzureRunEvent, map_azure_status
from apps.pipelines.providers.base import BaseProviderDriver, ProviderEvent
from apps.pipelines.providers.github import GitHubActionsDriver, GitHubRunEvent, map_github_status
from apps.pipelines.providers.gitlab import GitLabCIDriver, GitLabJobEvent, map_gitlab_status
from apps.pipelines.providers.jenkins import JenkinsBuildEvent, JenkinsDriver, map_jenkins_status

__all__ = [
    "BaseProviderDriver",
    "ProviderEvent",
    "GitHubActionsDriver",
    "GitHubRunEvent",
    "GitLabCIDriver",
    "GitLabJobEvent",
    "JenkinsDriver",
    "JenkinsBuildEvent",
    "AzureDevOpsDriver",
    "AzureRunEvent",
    "map_github_status",
    "map_gitlab_status",
    "map_jenkins_status",
    "map_azure_status",
    "PROVIDER_REGISTRY",
    "get_provider",
]

# Registry of available provider drivers, keyed by PipelineProvider value
PROVIDER_REGISTRY: dict[str, type[BaseProviderDriver]] = {
    "github": GitHubActionsDriver,
    "gitlab": GitLabCIDriver,
    "jenkins": JenkinsDriver,
    "azure": AzureDevOpsDriver,
}


def get_provider(name: str) -> BaseProviderDriver:
    """
    Get a provider driver instance by name.

    Args:
        name: Provider name (e.g., "github", "jenkins").

    Returns:
        Driver instance.

    Raises:
        UnknownProviderError: If no driver is registered under that name.
    """
    if name not in PROVIDER_REGISTRY:
        raise UnknownProviderError(
            f"Unknown provider: {name}. Available: {', '.join(PROVIDER_REGISTRY.keys())}"
        )
    return PROVIDER_REGISTRY[name]()
