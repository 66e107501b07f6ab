"""GitHub OAuth app client.

Builds authorization URLs, exchanges authorization codes for access tokens
and reads the account and repositories behind a token.
https://docs.github.com/en/apps/oauth-apps/building-oauth-apps/authorizing-oauth-apps
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from integrations.errors import ConfigurationError, ExternalApiError
from integrations.github.api_client import GitHubApiClient
from integrations.github.config import GitHubSettings, OAUTH_SCOPES, USER_AGENT
from integrations.github.types import GitHubAccount, Repository

logger = logging.getLogger(__name__)


class GitHubOAuthClient:
    """OAuth endpoints plus the account-level API calls the flow needs."""

    def __init__(
        self,
        settings: GitHubSettings,
        api_client: GitHubApiClient,
        http_client: Optional[httpx.Client] = None,
    ):
        self.settings = settings
        self.api = api_client
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=settings.http_timeout)

    def _require_credentials(self) -> None:
        if not self.settings.oauth_configured:
            raise ConfigurationError("GitHub OAuth credentials not configured")

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        self._require_credentials()
        params = urlencode({
            "client_id": self.settings.client_id,
            "redirect_uri": redirect_uri,
            "scope": OAUTH_SCOPES,
            "state": state,
            "allow_signup": "true",
        })
        return f"{self.settings.oauth_base_url}/authorize?{params}"

    def exchange_code(self, code: str, state: str) -> dict:
        """Exchange an authorization code for an access token.

        GitHub reports most exchange failures (bad or reused code) as a 200
        with an ``error`` field, so both shapes are treated as failures.

        Raises:
            ConfigurationError: Client id or secret not set
            ExternalApiError: On transport, HTTP or OAuth-level errors
        """
        self._require_credentials()
        try:
            response = self._http.post(
                f"{self.settings.oauth_base_url}/access_token",
                json={
                    "client_id": self.settings.client_id,
                    "client_secret": self.settings.client_secret,
                    "code": code,
                    "state": state,
                },
                headers={
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                },
            )
        except httpx.HTTPError as e:
            raise ExternalApiError(f"GitHub OAuth request failed: {e}") from e

        if not response.is_success:
            raise ExternalApiError(
                f"GitHub OAuth error: {response.status_code}",
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalApiError("GitHub OAuth returned a non-JSON response") from e

        if not isinstance(data, dict):
            raise ExternalApiError(
                "GitHub OAuth returned an unexpected payload",
                upstream_status=response.status_code,
            )

        if data.get("error") or not data.get("access_token"):
            reason = data.get("error_description") or data.get("error") or "no access token returned"
            raise ExternalApiError(f"GitHub OAuth error: {reason}", upstream_status=response.status_code)

        return {
            "access_token": data["access_token"],
            "token_type": data.get("token_type"),
            "scope": data.get("scope"),
        }

    def get_user(self, access_token: str) -> GitHubAccount:
        response = self.api.request("/user", access_token)
        data = response.data
        if not isinstance(data, dict) or data.get("id") is None or not data.get("login"):
            raise ExternalApiError(
                "GitHub /user response is missing the account id or login",
                upstream_status=response.status_code,
            )
        return GitHubAccount.from_api(data)

    def list_repositories(self, access_token: str, options: Optional[dict] = None) -> list[Repository]:
        return self.api.list_user_repositories(access_token, options)

    def validate_token(self, access_token: str) -> bool:
        try:
            self.api.request("/user", access_token)
            return True
        except ExternalApiError as e:
            if e.upstream_status == 401:
                logger.warning("GitHub token is invalid or revoked")
                return False
            raise

    def close(self) -> None:
        if self._owns_http:
            self._http.close()
