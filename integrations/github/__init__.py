"""GitHub OAuth connect flow, REST client and issue transformation."""

from integrations.github.api_client import GitHubApiClient, build_issue_params
from integrations.github.config import GitHubSettings, load_github_settings
from integrations.github.flow import OAuthFlowService, FlowState
from integrations.github.oauth import GitHubOAuthClient
from integrations.github.transform import transform_issue, transform_issues

__all__ = [
    "GitHubApiClient",
    "GitHubOAuthClient",
    "GitHubSettings",
    "OAuthFlowService",
    "FlowState",
    "build_issue_params",
    "load_github_settings",
    "transform_issue",
    "transform_issues",
]
