"""In-process stand-in for the GitHub OAuth and REST endpoints used in tests."""
import re
import time

import httpx

from integrations.github.api_client import GitHubApiClient
from integrations.github.config import GitHubSettings

OAUTH_BASE = "https://github.test/login/oauth"
API_BASE = "https://api.github.test"

_ISSUES_PATH = re.compile(r"/repos/([^/]+)/([^/]+)/issues")


def make_issue(number, title=None, labels=(), state="open", pull_request=False,
               due_on=None, assignees=(), issue_id=None):
    issue = {
        "id": issue_id or 100000 + number,
        "number": number,
        "title": title or f"Issue {number}",
        "body": f"Body of issue {number}",
        "html_url": f"https://github.com/octocat/hello/issues/{number}",
        "state": state,
        "labels": [{"name": name} for name in labels],
        "assignees": [{"login": login} for login in assignees],
        "user": {"login": "octocat", "avatar_url": "https://avatars.test/octocat"},
        "milestone": {"title": "v1", "due_on": due_on, "state": "open"} if due_on else None,
        "comments": 0,
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z",
        "closed_at": None,
    }
    if pull_request:
        issue["pull_request"] = {"url": f"https://api.github.test/repos/octocat/hello/pulls/{number}"}
    return issue


def make_repo(full_name, repo_id, has_issues=True, open_issues_count=0):
    owner, name = full_name.split("/")
    return {
        "id": repo_id,
        "full_name": full_name,
        "name": name,
        "private": False,
        "language": "Python",
        "open_issues_count": open_issues_count,
        "has_issues": has_issues,
        "owner": {"login": owner, "avatar_url": f"https://avatars.test/{owner}", "type": "User"},
        "description": None,
        "html_url": f"https://github.com/{full_name}",
        "updated_at": "2024-01-02T00:00:00Z",
    }


class FakeGitHub:
    """Routes requests for both hosts; records every request it sees."""

    def __init__(self):
        self.user = {
            "id": 9001,
            "login": "octocat",
            "name": "The Octocat",
            "email": None,
            "avatar_url": "https://avatars.test/octocat",
            "html_url": "https://github.com/octocat",
        }
        self.access_token = "gho_test_token"
        self.oauth_error = None
        self.token_payload = None
        self.rate_limited = False
        self.repos = []
        self.issues = {}
        self.requests = []

    def settings(self, **overrides) -> GitHubSettings:
        values = dict(
            client_id="test-client-id",
            client_secret="test-client-secret",
            oauth_base_url=OAUTH_BASE,
            api_base_url=API_BASE,
            frontend_url="http://frontend.test",
        )
        values.update(overrides)
        return GitHubSettings(**values)

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def api_client(self) -> GitHubApiClient:
        return GitHubApiClient(API_BASE, client=self.http_client())

    def issue_requests(self):
        return [r for r in self.requests if _ISSUES_PATH.fullmatch(r.url.path)]

    def _json(self, status_code, body):
        return httpx.Response(
            status_code,
            json=body,
            headers={
                "x-ratelimit-limit": "5000",
                "x-ratelimit-remaining": "4999",
                "x-ratelimit-reset": str(int(time.time()) + 3600),
                "x-ratelimit-used": "1",
            },
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == "github.test":
            if path == "/login/oauth/access_token":
                if self.token_payload is not None:
                    return httpx.Response(200, json=self.token_payload)
                if self.oauth_error:
                    return httpx.Response(200, json={
                        "error": self.oauth_error,
                        "error_description": "The code passed is incorrect or expired.",
                    })
                return httpx.Response(200, json={
                    "access_token": self.access_token,
                    "token_type": "bearer",
                    "scope": "repo,user:email,read:user",
                })
            return httpx.Response(404)

        if self.rate_limited:
            return httpx.Response(
                403,
                json={"message": "API rate limit exceeded"},
                headers={
                    "x-ratelimit-limit": "5000",
                    "x-ratelimit-remaining": "0",
                    "x-ratelimit-reset": str(int(time.time()) + 120),
                },
            )

        if path == "/user":
            return self._json(200, self.user)
        if path == "/user/repos":
            return self._json(200, self.repos)

        match = _ISSUES_PATH.fullmatch(path)
        if match:
            issues = self.issues.get(f"{match.group(1)}/{match.group(2)}")
            if issues is None:
                return self._json(404, {"message": "Not Found"})
            per_page = int(request.url.params.get("per_page", 30))
            return self._json(200, issues[:per_page])

        return self._json(404, {"message": "Not Found"})


class ManualClock:
    """Monotonic-style clock that only moves when told to."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
