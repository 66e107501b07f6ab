"""Map raw GitHub issue payloads onto local task fields.

All GitHub-specific quirks (labels as objects or strings, milestones, pull
requests listed as issues) are absorbed here so the importer only ever sees
``ExternalIssue`` records.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from integrations.github.types import ExternalIssue

DEFAULT_PRIORITY = "medium"

# Checked label by label in the issue's own order; the first hit wins.
PRIORITY_LABELS = {
    "priority: high": "high",
    "critical": "high",
    "urgent": "high",
    "priority: low": "low",
    "enhancement": "low",
}


def is_pull_request(raw: dict) -> bool:
    """GitHub's issue listing includes pull requests, marked by this key."""
    return bool(raw.get("pull_request"))


def label_names(labels: Optional[Iterable]) -> list[str]:
    names = []
    for label in labels or []:
        if isinstance(label, dict):
            name = label.get("name")
        else:
            name = label
        if name:
            names.append(str(name))
    return names


def infer_priority(labels: Iterable[str]) -> str:
    for name in labels:
        priority = PRIORITY_LABELS.get(name.strip().lower())
        if priority:
            return priority
    return DEFAULT_PRIORITY


def parse_github_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp into a naive UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def transform_issue(raw: dict) -> ExternalIssue:
    """Transform a GitHub issue into task fields."""
    milestone = raw.get("milestone")
    due_date = parse_github_datetime(milestone.get("due_on")) if milestone else None
    labels = label_names(raw.get("labels"))
    user = raw.get("user") or {}

    return ExternalIssue(
        github_issue_id=raw["id"],
        github_issue_number=raw["number"],
        title=raw.get("title") or "",
        description=raw.get("body") or "",
        github_issue_url=raw.get("html_url"),
        github_state=raw.get("state", "open"),
        github_labels=labels,
        github_assignees=[a.get("login") for a in raw.get("assignees") or [] if a.get("login")],
        completed=raw.get("state") == "closed",
        due_date=due_date,
        priority=infer_priority(labels),
        author={
            "username": user.get("login"),
            "avatar_url": user.get("avatar_url"),
            "html_url": user.get("html_url"),
        } if user else None,
        milestone={
            "title": milestone.get("title"),
            "description": milestone.get("description"),
            "due_on": milestone.get("due_on"),
            "state": milestone.get("state"),
        } if milestone else None,
        comments_count=raw.get("comments") or 0,
        created_at=raw.get("created_at"),
        updated_at=raw.get("updated_at"),
        closed_at=raw.get("closed_at"),
    )


def transform_issues(raw_issues: Iterable[dict]) -> list[ExternalIssue]:
    """Drop pull requests, then transform the remaining issues in order."""
    return [transform_issue(raw) for raw in raw_issues if not is_pull_request(raw)]
