"""Authenticated wrapper around the GitHub REST API.

The client is stateless between calls: the access token is passed per request
and never cached here. Every successful call returns the parsed JSON body
together with the pagination cursors from the ``Link`` header and the quota
counters from the ``x-ratelimit-*`` headers.
https://docs.github.com/en/rest
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from integrations.errors import ExternalApiError, RateLimitExceededError
from integrations.github.config import GITHUB_ACCEPT, USER_AGENT
from integrations.github.types import ApiResponse, Pagination, RateLimit, Repository

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.github.com"

_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')
_PAGE_RE = re.compile(r"[?&]page=(\d+)")

ISSUE_QUERY_DEFAULTS = {
    "state": "open",  # open | closed | all
    "sort": "updated",  # created | updated | comments
    "direction": "desc",
    "per_page": 30,
    "page": 1,
}
REPOSITORY_LIST_DEFAULTS = {
    "sort": "updated",
    "direction": "desc",
    "per_page": 100,
    "page": 1,
    "type": "all",  # all | owner | public | private | member
}
ISSUE_QUERY_KEYS = (
    "state",
    "sort",
    "direction",
    "per_page",
    "page",
    "since",  # ISO 8601
    "labels",  # comma-separated
    "assignee",  # login, "none" or "*"
    "milestone",  # number, "none" or "*"
)


def parse_link_header(link_header: Optional[str]) -> Pagination:
    """Extract next/prev/first/last page numbers from a Link header."""
    pagination = Pagination()
    if not link_header:
        return pagination

    for url, rel in _LINK_RE.findall(link_header):
        page_match = _PAGE_RE.search(url)
        if not page_match:
            continue
        page = int(page_match.group(1))
        if rel == "next":
            pagination.next_page = page
        elif rel == "prev":
            pagination.prev_page = page
        elif rel == "first":
            pagination.first_page = page
        elif rel == "last":
            pagination.last_page = page
    return pagination


def _header_int(headers: httpx.Headers, name: str, default: int) -> int:
    try:
        return int(headers.get(name, ""))
    except ValueError:
        return default


def parse_rate_limit(headers: httpx.Headers) -> RateLimit:
    """Extract quota counters from x-ratelimit-* headers."""
    return RateLimit(
        limit=_header_int(headers, "x-ratelimit-limit", 5000),
        remaining=_header_int(headers, "x-ratelimit-remaining", 0),
        reset=_header_int(headers, "x-ratelimit-reset", 0),
        used=_header_int(headers, "x-ratelimit-used", 0),
    )


def build_issue_params(filters: Optional[dict] = None) -> dict:
    """Build the issue-listing query, dropping empty filters.

    GitHub treats ``labels=`` as a real (empty) filter, so blank strings and
    None must never reach the outbound query.
    """
    filters = filters or {}
    params = {}
    for key in ISSUE_QUERY_KEYS:
        value = filters.get(key, ISSUE_QUERY_DEFAULTS.get(key))
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        params[key] = value
    return params


class GitHubApiClient:
    """Thin, stateless GitHub REST client.

    Usage:
        client = GitHubApiClient()
        response = client.request("/user/repos", token, params={"per_page": 100})
        response.data, response.pagination.next_page, response.rate_limit.remaining
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE,
        rate_limit_buffer: int = 100,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.rate_limit_buffer = rate_limit_buffer
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def _resolve_url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        if not path_or_url.startswith("/"):
            path_or_url = f"/{path_or_url}"
        return f"{self.base_url}{path_or_url}"

    def request(
        self,
        path_or_url: str,
        access_token: str,
        method: str = "GET",
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> ApiResponse:
        """Make an authenticated request to the GitHub API.

        Args:
            path_or_url: API path (e.g. "/user/repos") or absolute URL
            access_token: OAuth access token for this call
            method: HTTP method
            params: Query parameters
            json: JSON request body
            headers: Extra headers, merged over the defaults

        Returns:
            ApiResponse with data, pagination and rate_limit

        Raises:
            RateLimitExceededError: 403 with the remaining quota at 0
            ExternalApiError: Any other non-2xx status or transport failure
        """
        url = self._resolve_url(path_or_url)
        request_headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": GITHUB_ACCEPT,
            "User-Agent": USER_AGENT,
        }
        if headers:
            request_headers.update(headers)

        try:
            response = self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"GitHub request {method} {url} failed: {e}")
            raise ExternalApiError(f"GitHub request failed: {e}") from e

        if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            reset = _header_int(response.headers, "x-ratelimit-reset", 0)
            reset_at = datetime.fromtimestamp(reset, tz=timezone.utc).replace(tzinfo=None)
            logger.warning(f"GitHub rate limit exhausted until {reset_at.isoformat()}")
            raise RateLimitExceededError(reset_at)

        if not response.is_success:
            message = self._error_message(response)
            logger.error(f"GitHub API error {response.status_code} for {method} {url}: {message}")
            raise ExternalApiError(
                f"GitHub API error {response.status_code}: {message}",
                upstream_status=response.status_code,
            )

        data = None
        if response.status_code != 204 and response.content:
            try:
                data = response.json()
            except ValueError as e:
                raise ExternalApiError(
                    "GitHub returned a non-JSON response",
                    upstream_status=response.status_code,
                ) from e

        rate_limit = parse_rate_limit(response.headers)
        if self.is_near_rate_limit(rate_limit) and "x-ratelimit-remaining" in response.headers:
            logger.warning(
                f"GitHub rate limit low: {rate_limit.remaining}/{rate_limit.limit} remaining"
            )

        return ApiResponse(
            data=data,
            pagination=parse_link_header(response.headers.get("link")),
            rate_limit=rate_limit,
            status_code=response.status_code,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or "Unknown error"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return "Unknown error"

    def is_near_rate_limit(self, rate_limit: RateLimit) -> bool:
        return rate_limit.remaining <= self.rate_limit_buffer

    def get_all_pages(
        self,
        path: str,
        access_token: str,
        params: Optional[dict] = None,
        max_pages: int = 10,
    ) -> list:
        """Fetch every page of a list endpoint by following rel="next".

        Args:
            path: API path
            access_token: OAuth access token
            params: Query parameters for the first page
            max_pages: Hard cap on requests made

        Returns:
            Combined list of all items across pages
        """
        params = dict(params or {})
        params.setdefault("per_page", 100)
        all_items = []

        for _ in range(max_pages):
            response = self.request(path, access_token, params=params)
            all_items.extend(response.data or [])
            if not response.pagination.has_next:
                break
            params["page"] = response.pagination.next_page

        return all_items

    def list_repository_issues(
        self,
        owner: str,
        repo: str,
        access_token: str,
        filters: Optional[dict] = None,
    ) -> ApiResponse:
        """List raw issue records (pull requests included) for a repository."""
        response = self.request(
            f"/repos/{owner}/{repo}/issues",
            access_token,
            params=build_issue_params(filters),
        )
        if not isinstance(response.data, list):
            raise ExternalApiError(
                f"Unexpected issue listing payload for {owner}/{repo}",
                upstream_status=response.status_code,
            )
        return response

    def list_user_repositories(self, access_token: str, options: Optional[dict] = None) -> list[Repository]:
        """List repositories visible to the token.

        Args:
            access_token: OAuth access token
            options: sort, direction, per_page, page, type; ``fetch_all`` follows
                every rel="next" link instead of returning one page

        Returns:
            List of Repository projections
        """
        options = dict(options or {})
        fetch_all = bool(options.pop("fetch_all", False))
        params = {
            key: options.get(key) or default
            for key, default in REPOSITORY_LIST_DEFAULTS.items()
        }

        if fetch_all:
            params.pop("page")
            items = self.get_all_pages("/user/repos", access_token, params=params)
        else:
            items = self.request("/user/repos", access_token, params=params).data or []

        repositories = [Repository.from_api(item) for item in items]
        logger.info(f"Found {len(repositories)} GitHub repositories")
        return repositories

    def get_issue(self, owner: str, repo: str, issue_number: int, access_token: str) -> dict:
        return self.request(f"/repos/{owner}/{repo}/issues/{issue_number}", access_token).data

    def get_repository(self, owner: str, repo: str, access_token: str) -> dict:
        return self.request(f"/repos/{owner}/{repo}", access_token).data

    def get_rate_limit(self, access_token: str) -> dict:
        """Return the core quota from /rate_limit."""
        data = self.request("/rate_limit", access_token).data or {}
        return data.get("rate") or data.get("resources", {}).get("core", {})

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __del__(self):
        """Clean up HTTP client."""
        if getattr(self, "_owns_client", False) and hasattr(self, "_client"):
            self._client.close()
