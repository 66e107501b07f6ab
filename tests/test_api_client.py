"""Tests for the GitHub REST client: error mapping, paging and quota parsing."""
import time
from datetime import datetime

import httpx
import pytest

from integrations.errors import ExternalApiError, RateLimitExceededError
from integrations.github.api_client import (
    GitHubApiClient,
    build_issue_params,
    parse_link_header,
    parse_rate_limit,
)
from github_fakes import API_BASE, make_issue


def _client(handler, **kwargs):
    return GitHubApiClient(API_BASE, client=httpx.Client(transport=httpx.MockTransport(handler)), **kwargs)


class TestParsing:
    def test_link_header_pages(self):
        header = (
            '<https://api.github.com/user/repos?page=3&per_page=100>; rel="next", '
            '<https://api.github.com/user/repos?page=5&per_page=100>; rel="last", '
            '<https://api.github.com/user/repos?page=1&per_page=100>; rel="first", '
            '<https://api.github.com/user/repos?page=1&per_page=100>; rel="prev"'
        )
        pagination = parse_link_header(header)
        assert pagination.next_page == 3
        assert pagination.last_page == 5
        assert pagination.first_page == 1
        assert pagination.prev_page == 1
        assert pagination.has_next and pagination.has_prev
        assert pagination.has_first and pagination.has_last

    def test_missing_link_header_means_single_page(self):
        pagination = parse_link_header(None)
        assert not pagination.has_next
        assert not pagination.has_prev
        assert pagination.to_dict()["last_page"] is None

    def test_rate_limit_headers(self):
        headers = httpx.Headers({
            "x-ratelimit-limit": "60",
            "x-ratelimit-remaining": "12",
            "x-ratelimit-reset": "1700000000",
            "x-ratelimit-used": "48",
        })
        rate_limit = parse_rate_limit(headers)
        assert rate_limit.limit == 60
        assert rate_limit.remaining == 12
        assert rate_limit.used == 48
        assert rate_limit.reset_at == datetime(2023, 11, 14, 22, 13, 20)

    def test_rate_limit_defaults(self):
        rate_limit = parse_rate_limit(httpx.Headers({}))
        assert rate_limit.limit == 5000
        assert rate_limit.remaining == 0

    def test_issue_params_defaults(self):
        assert build_issue_params() == {
            "state": "open",
            "sort": "updated",
            "direction": "desc",
            "per_page": 30,
            "page": 1,
        }

    def test_issue_params_strip_blank_filters(self):
        params = build_issue_params({
            "state": "closed",
            "labels": "",
            "assignee": "   ",
            "milestone": None,
            "since": "2024-01-01T00:00:00Z",
            "unknown": "dropped",
        })
        assert params["state"] == "closed"
        assert params["since"] == "2024-01-01T00:00:00Z"
        assert "labels" not in params
        assert "assignee" not in params
        assert "milestone" not in params
        assert "unknown" not in params


class TestRequest:
    def test_success_returns_data_and_metadata(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["accept"] = request.headers["Accept"]
            return httpx.Response(
                200,
                json=[{"id": 1}],
                headers={
                    "link": '<https://api.github.test/user/repos?page=2>; rel="next"',
                    "x-ratelimit-remaining": "4000",
                },
            )

        response = _client(handler).request("user/repos", "tok", params={"per_page": 5})
        assert response.data == [{"id": 1}]
        assert response.pagination.next_page == 2
        assert response.rate_limit.remaining == 4000
        assert seen["url"] == f"{API_BASE}/user/repos?per_page=5"
        assert seen["auth"] == "Bearer tok"
        assert seen["accept"] == "application/vnd.github.v3+json"

    def test_absolute_urls_pass_through(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, json={})

        _client(handler).request("https://other.test/path", "tok")
        assert urls == ["https://other.test/path"]

    def test_error_uses_upstream_message(self):
        client = _client(lambda r: httpx.Response(404, json={"message": "Not Found"}))
        with pytest.raises(ExternalApiError) as exc_info:
            client.request("/repos/a/b", "tok")
        assert exc_info.value.upstream_status == 404
        assert "Not Found" in exc_info.value.message
        assert exc_info.value.status_code == 502

    def test_exhausted_quota_raises_rate_limit_error(self):
        reset = int(time.time()) + 90
        client = _client(lambda r: httpx.Response(
            403,
            json={"message": "API rate limit exceeded"},
            headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(reset)},
        ))
        with pytest.raises(RateLimitExceededError) as exc_info:
            client.request("/user", "tok")
        error = exc_info.value
        assert error.status_code == 429
        assert 0 < error.retry_after_seconds() <= 91
        assert "reset_at" in error.to_dict()["details"]

    def test_forbidden_with_quota_left_is_plain_api_error(self):
        client = _client(lambda r: httpx.Response(
            403,
            json={"message": "Resource not accessible"},
            headers={"x-ratelimit-remaining": "10"},
        ))
        with pytest.raises(ExternalApiError) as exc_info:
            client.request("/user", "tok")
        assert not isinstance(exc_info.value, RateLimitExceededError)
        assert exc_info.value.upstream_status == 403

    def test_transport_failure_has_no_upstream_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalApiError) as exc_info:
            _client(handler).request("/user", "tok")
        assert exc_info.value.upstream_status is None

    def test_near_rate_limit_uses_buffer(self):
        client = _client(lambda r: httpx.Response(200, json={}), rate_limit_buffer=50)
        response = client.request("/user", "tok")
        assert client.is_near_rate_limit(response.rate_limit)


class TestListing:
    def test_get_all_pages_follows_next_links(self):
        pages = {
            "1": ([{"id": 1}, {"id": 2}], '<https://api.github.test/user/repos?page=2>; rel="next"'),
            "2": ([{"id": 3}], None),
        }

        def handler(request):
            items, link = pages[request.url.params.get("page", "1")]
            headers = {"link": link} if link else {}
            return httpx.Response(200, json=items, headers=headers)

        items = _client(handler).get_all_pages("/user/repos", "tok")
        assert [item["id"] for item in items] == [1, 2, 3]

    def test_get_all_pages_respects_cap(self):
        calls = []

        def handler(request):
            calls.append(request)
            page = int(request.url.params.get("page", "1"))
            return httpx.Response(
                200,
                json=[{"id": page}],
                headers={"link": f'<https://api.github.test/x?page={page + 1}>; rel="next"'},
            )

        items = _client(handler).get_all_pages("/x", "tok", max_pages=3)
        assert len(items) == 3
        assert len(calls) == 3

    def test_list_repository_issues_sends_filters(self, fake_github):
        fake_github.issues["octocat/hello"] = [make_issue(1), make_issue(2)]
        client = fake_github.api_client()

        response = client.list_repository_issues("octocat", "hello", "tok", {"state": "all", "labels": ""})

        assert len(response.data) == 2
        params = fake_github.requests[-1].url.params
        assert params["state"] == "all"
        assert "labels" not in params

    def test_list_repository_issues_rejects_non_list_payload(self):
        client = _client(lambda r: httpx.Response(200, json={"message": "odd"}))
        with pytest.raises(ExternalApiError):
            client.list_repository_issues("octocat", "hello", "tok")
