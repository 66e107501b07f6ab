"""Import GitHub issues into the local task store.

Each import runs inside one database transaction: every issue is checked
against tasks already synced for the user, new ones are inserted, and the
whole batch commits or rolls back together. Re-running an import therefore
only ever adds issues that are not yet present.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from integrations.errors import IssueImportError, ValidationError
from integrations.github.api_client import GitHubApiClient
from integrations.github.transform import transform_issues
from integrations.github.types import ExternalIssue
from models import GitHubIntegration, Project, Task
from services.github_integration_service import upsert_repository_config

logger = logging.getLogger(__name__)

PREVIEW_PAGE_SIZE = 10
DEFAULT_IMPORT_PAGE_SIZE = 50
MAX_IMPORT_PAGE_SIZE = 100
ISSUE_STATES = ("open", "closed", "all")


@dataclass
class ImportResult:
    """Outcome of one import run."""
    repository: str
    project_id: int
    total_found: int = 0
    imported_task_ids: list[int] = field(default_factory=list)
    skipped_issue_numbers: list[int] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported_task_ids)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_issue_numbers)

    def to_dict(self) -> dict:
        return {
            "imported_count": self.imported_count,
            "skipped_count": self.skipped_count,
            "total_found": self.total_found,
            "repository": self.repository,
            "project_id": self.project_id,
            "imported_task_ids": self.imported_task_ids,
        }


def parse_repo_full_name(repo_full_name: Optional[str]) -> tuple[str, str]:
    """Split "owner/repo", rejecting anything else."""
    parts = (repo_full_name or "").strip().split("/")
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise ValidationError(
            "repo_full_name must look like 'owner/repo'",
            details={"repo_full_name": repo_full_name},
        )
    return parts[0].strip(), parts[1].strip()


def normalize_filters(
    filters: Optional[dict],
    default_per_page: int,
    max_per_page: int = MAX_IMPORT_PAGE_SIZE,
) -> dict:
    """Validate state/labels/per_page and drop blank values.

    ``per_page`` is clamped into 1..max_per_page; a blank or unparsable value
    falls back to default_per_page. An unparsable ``page`` is dropped.
    """
    normalized = {}
    for key, value in (filters or {}).items():
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        normalized[key] = value

    state = normalized.get("state")
    if state is not None and state not in ISSUE_STATES:
        raise ValidationError(
            f"state must be one of {', '.join(ISSUE_STATES)}",
            details={"state": state},
        )

    labels = normalized.get("labels")
    if labels is not None:
        if isinstance(labels, (list, tuple)):
            labels = ",".join(str(label) for label in labels)
        labels = ",".join(part.strip() for part in str(labels).split(",") if part.strip())
        if labels:
            normalized["labels"] = labels
        else:
            normalized.pop("labels")

    try:
        per_page = int(normalized.get("per_page", default_per_page))
    except (TypeError, ValueError):
        per_page = default_per_page
    normalized["per_page"] = max(1, min(per_page, max_per_page))

    if "page" in normalized:
        try:
            normalized["page"] = max(1, int(normalized["page"]))
        except (TypeError, ValueError):
            normalized.pop("page")
    return normalized


class IssueImportService:
    """Fetches, previews and imports a repository's issues.

    Args:
        api_client: GitHub REST client
        notify: Optional fire-and-forget sink called as ``notify(event, payload)``
            after a successful import
    """

    def __init__(
        self,
        api_client: GitHubApiClient,
        notify: Optional[Callable[[str, dict], None]] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.api = api_client
        self.notify = notify
        self._now = now

    def fetch_issues(
        self,
        owner: str,
        repo: str,
        access_token: str,
        filters: dict,
    ) -> list[ExternalIssue]:
        """Fetch one page of issues, with pull requests removed."""
        response = self.api.list_repository_issues(owner, repo, access_token, filters)
        issues = transform_issues(response.data)
        dropped = len(response.data) - len(issues)
        if dropped:
            logger.debug(f"Dropped {dropped} pull requests from {owner}/{repo} listing")
        return issues

    @staticmethod
    def _synced_issue_ids(db: Session, user_id: int, issue_ids: Iterable[int]) -> set[int]:
        issue_ids = list(issue_ids)
        if not issue_ids:
            return set()
        rows = (
            db.query(Task.github_issue_id)
            .filter(
                Task.user_id == user_id,
                Task.github_issue_id.in_(issue_ids),
            )
            .all()
        )
        return {row[0] for row in rows}

    def preview(
        self,
        db: Session,
        user_id: int,
        access_token: str,
        owner: str,
        repo: str,
        filters: Optional[dict] = None,
    ) -> dict:
        """Show what an import would do, without writing anything.

        Always fetches a fixed page of PREVIEW_PAGE_SIZE issues.
        """
        query = normalize_filters(filters, PREVIEW_PAGE_SIZE)
        query["per_page"] = PREVIEW_PAGE_SIZE
        issues = self.fetch_issues(owner, repo, access_token, query)
        existing = self._synced_issue_ids(db, user_id, (i.github_issue_id for i in issues))

        previews = []
        for issue in issues:
            item = issue.to_dict()
            item["already_imported"] = issue.github_issue_id in existing
            previews.append(item)

        existing_count = sum(1 for item in previews if item["already_imported"])
        return {
            "repository": f"{owner}/{repo}",
            "total_issues": len(previews),
            "new_issues": len(previews) - existing_count,
            "existing_issues": existing_count,
            "issues": previews,
        }

    def import_issues(
        self,
        db: Session,
        user_id: int,
        integration: GitHubIntegration,
        access_token: str,
        repo_full_name: Optional[str],
        project_id: Optional[int],
        filters: Optional[dict] = None,
    ) -> ImportResult:
        """Import one page of issues into a project, skipping synced ones.

        Raises:
            ValidationError: Bad repo name, filters, or unknown project
            RateLimitExceededError / ExternalApiError: GitHub fetch failed
            IssueImportError: The insert transaction failed and was rolled back
        """
        owner, repo = parse_repo_full_name(repo_full_name)
        repo_full_name = f"{owner}/{repo}"
        if project_id is None:
            raise ValidationError("project_id is required")
        project = (
            db.query(Project)
            .filter(Project.id == project_id, Project.user_id == user_id)
            .first()
        )
        if project is None:
            raise ValidationError("Project not found", details={"project_id": project_id})

        query = normalize_filters(filters, DEFAULT_IMPORT_PAGE_SIZE)
        issues = self.fetch_issues(owner, repo, access_token, query)
        result = ImportResult(repository=repo_full_name, project_id=project.id, total_found=len(issues))

        synced_at = self._now()
        seen_in_batch: set[int] = set()
        try:
            for issue in issues:
                if issue.github_issue_id in seen_in_batch or self._task_exists(db, user_id, issue.github_issue_id):
                    logger.info(f"Task already exists for issue #{issue.github_issue_number}")
                    result.skipped_issue_numbers.append(issue.github_issue_number)
                    continue

                task = self._task_from_issue(issue, user_id, project.id, repo_full_name, synced_at)
                db.add(task)
                db.flush()
                seen_in_batch.add(issue.github_issue_id)
                result.imported_task_ids.append(task.id)
                logger.info(f"Created task {task.id} from GitHub issue #{issue.github_issue_number}: {issue.title}")

            upsert_repository_config(
                db,
                integration,
                repo_full_name,
                project_id=project.id,
                commit=False,
            )
            integration.last_sync_at = synced_at
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Import of {repo_full_name} rolled back: {e}")
            raise IssueImportError(
                "Failed to create tasks from GitHub issues",
                details={"repository": repo_full_name},
            ) from e
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Imported {result.imported_count} issues from {repo_full_name} "
            f"({result.skipped_count} skipped, {result.total_found} found)"
        )
        self._notify("tasks_imported", {
            "user_id": user_id,
            "project_id": project.id,
            **result.to_dict(),
        })
        return result

    @staticmethod
    def _task_exists(db: Session, user_id: int, github_issue_id: int) -> bool:
        return (
            db.query(Task.id)
            .filter(Task.user_id == user_id, Task.github_issue_id == github_issue_id)
            .first()
            is not None
        )

    @staticmethod
    def _task_from_issue(
        issue: ExternalIssue,
        user_id: int,
        project_id: int,
        repo_full_name: str,
        synced_at: datetime,
    ) -> Task:
        return Task(
            user_id=user_id,
            project_id=project_id,
            title=issue.title[:500],
            description=issue.description,
            completed=issue.completed,
            priority=issue.priority,
            due_date=issue.due_date,
            github_issue_id=issue.github_issue_id,
            github_issue_number=issue.github_issue_number,
            github_repo_name=repo_full_name,
            github_issue_url=issue.github_issue_url,
            github_labels=issue.github_labels,
            github_state=issue.github_state,
            github_assignees=issue.github_assignees,
            synced_from_github=True,
            last_github_sync=synced_at,
        )

    def _notify(self, event: str, payload: dict) -> None:
        if self.notify is None:
            return
        try:
            self.notify(event, payload)
        except Exception as e:
            logger.warning(f"Notification '{event}' failed: {e}")
