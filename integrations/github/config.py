"""GitHub integration settings.

Environment Variables:
    GITHUB_CLIENT_ID: OAuth app client id (required for the OAuth flow)
    GITHUB_CLIENT_SECRET: OAuth app client secret (required for the OAuth flow)
    GITHUB_OAUTH_BASE_URL: OAuth endpoints (default: https://github.com/login/oauth)
    GITHUB_API_BASE_URL: REST API root (default: https://api.github.com)
    GITHUB_OAUTH_REDIRECT_URI: Callback URL registered with GitHub (default: derived from the request)
    FRONTEND_URL: Browser app root; callbacks land on {FRONTEND_URL}/github-callback
    GITHUB_RATE_LIMIT_BUFFER: Remaining-quota threshold that triggers a warning (default: 100)
    GITHUB_HTTP_TIMEOUT: Seconds per GitHub request (default: 30)
"""

import os
from dataclasses import dataclass
from typing import Optional

from env_utils import load_env, get_int_env, get_float_env

STATE_TTL_SECONDS = 10 * 60
FLOW_TTL_SECONDS = 5 * 60
OAUTH_SCOPES = "repo,user:email,read:user"
USER_AGENT = "TaskHub-App/1.0"
GITHUB_ACCEPT = "application/vnd.github.v3+json"


@dataclass
class GitHubSettings:
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    oauth_base_url: str = "https://github.com/login/oauth"
    api_base_url: str = "https://api.github.com"
    redirect_uri: Optional[str] = None
    frontend_url: str = "http://localhost:3000"
    rate_limit_buffer: int = 100
    http_timeout: float = 30.0
    state_ttl_seconds: int = STATE_TTL_SECONDS
    flow_ttl_seconds: int = FLOW_TTL_SECONDS

    @property
    def frontend_callback_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/github-callback"

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


def load_github_settings() -> GitHubSettings:
    """Build settings from the environment (after loading .env)."""
    load_env()
    return GitHubSettings(
        client_id=os.getenv("GITHUB_CLIENT_ID") or None,
        client_secret=os.getenv("GITHUB_CLIENT_SECRET") or None,
        oauth_base_url=os.getenv("GITHUB_OAUTH_BASE_URL", "https://github.com/login/oauth").rstrip("/"),
        api_base_url=os.getenv("GITHUB_API_BASE_URL", "https://api.github.com").rstrip("/"),
        redirect_uri=os.getenv("GITHUB_OAUTH_REDIRECT_URI") or None,
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        rate_limit_buffer=get_int_env("GITHUB_RATE_LIMIT_BUFFER", 100),
        http_timeout=get_float_env("GITHUB_HTTP_TIMEOUT", 30.0),
    )
