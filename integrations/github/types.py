"""Normalized GitHub records.

GitHub payloads are loosely-typed JSON; everything downstream of the API
client works with these dataclasses instead.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass
class Pagination:
    """Page numbers parsed from a ``Link`` header."""

    next_page: Optional[int] = None
    prev_page: Optional[int] = None
    first_page: Optional[int] = None
    last_page: Optional[int] = None

    @property
    def has_next(self) -> bool:
        return self.next_page is not None

    @property
    def has_prev(self) -> bool:
        return self.prev_page is not None

    @property
    def has_first(self) -> bool:
        return self.first_page is not None

    @property
    def has_last(self) -> bool:
        return self.last_page is not None

    def to_dict(self) -> dict:
        return {
            "has_next": self.has_next,
            "has_prev": self.has_prev,
            "has_first": self.has_first,
            "has_last": self.has_last,
            "next_page": self.next_page,
            "prev_page": self.prev_page,
            "first_page": self.first_page,
            "last_page": self.last_page,
        }


@dataclass
class RateLimit:
    """Quota counters from ``x-ratelimit-*`` headers."""

    limit: int = 5000
    remaining: int = 0
    reset: int = 0  # epoch seconds
    used: int = 0

    @property
    def reset_at(self) -> datetime:
        return datetime.fromtimestamp(self.reset, tz=timezone.utc).replace(tzinfo=None)

    def to_dict(self) -> dict:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset": self.reset,
            "reset_at": self.reset_at.isoformat(),
            "used": self.used,
        }


@dataclass
class ApiResponse:
    """Body of a successful GitHub call plus its paging and quota metadata."""

    data: Any
    pagination: Pagination = field(default_factory=Pagination)
    rate_limit: RateLimit = field(default_factory=RateLimit)
    status_code: int = 200


@dataclass
class GitHubAccount:
    """The GitHub identity behind an access token."""

    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "GitHubAccount":
        return cls(
            id=data["id"],
            username=data["login"],
            name=data.get("name"),
            email=data.get("email"),
            avatar_url=data.get("avatar_url"),
            html_url=data.get("html_url"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Repository:
    """The subset of a GitHub repository the import flow needs."""

    id: int
    full_name: str
    name: str
    private: bool = False
    language: Optional[str] = None
    open_issues_count: int = 0
    has_issues: bool = True
    owner: dict = field(default_factory=dict)
    description: Optional[str] = None
    html_url: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Repository":
        owner = data.get("owner") or {}
        return cls(
            id=data["id"],
            full_name=data["full_name"],
            name=data.get("name") or data["full_name"].split("/")[-1],
            private=bool(data.get("private", False)),
            language=data.get("language"),
            open_issues_count=data.get("open_issues_count") or 0,
            has_issues=bool(data.get("has_issues", True)),
            owner={
                "login": owner.get("login"),
                "avatar_url": owner.get("avatar_url"),
                "type": owner.get("type"),
            },
            description=data.get("description"),
            html_url=data.get("html_url"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExternalIssue:
    """A GitHub issue mapped onto local task fields.

    Produced by ``integrations.github.transform.transform_issue``; never
    persisted as-is.
    """

    github_issue_id: int
    github_issue_number: int
    title: str
    description: str = ""
    github_issue_url: Optional[str] = None
    github_state: str = "open"
    github_labels: list[str] = field(default_factory=list)
    github_assignees: list[str] = field(default_factory=list)
    completed: bool = False
    due_date: Optional[datetime] = None
    priority: str = "medium"
    author: Optional[dict] = None
    milestone: Optional[dict] = None
    comments_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    closed_at: Optional[str] = None

    def to_dict(self) -> dict:
        result = asdict(self)
        result["due_date"] = self.due_date.isoformat() if self.due_date else None
        return result
