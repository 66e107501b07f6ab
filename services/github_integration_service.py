"""Persistence for linked GitHub accounts and their repository settings.

One active integration per (user, GitHub account). Disconnecting only flips
``is_active``; tasks imported earlier stay behind as ordinary local tasks.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from integrations.encryption import decrypt_token, encrypt_token
from integrations.errors import IntegrationNotFoundError
from integrations.github.types import GitHubAccount
from models import GitHubIntegration, GitHubRepository, Task

logger = logging.getLogger(__name__)


def _apply_account(integration: GitHubIntegration, account: GitHubAccount, encrypted: str) -> None:
    integration.github_username = account.username
    integration.avatar_url = account.avatar_url
    integration.encrypted_token = encrypted
    integration.is_active = True
    integration.updated_at = datetime.utcnow()


def _find_integration(db: Session, user_id: int, github_user_id: int) -> Optional[GitHubIntegration]:
    return (
        db.query(GitHubIntegration)
        .filter(
            GitHubIntegration.user_id == user_id,
            GitHubIntegration.github_user_id == github_user_id,
        )
        .first()
    )


def upsert_integration(
    db: Session,
    user_id: int,
    account: GitHubAccount,
    access_token: str,
) -> GitHubIntegration:
    """Insert or update the integration for (user, GitHub account).

    A previously disconnected row is reactivated with the new token.
    """
    encrypted = encrypt_token(access_token)

    integration = _find_integration(db, user_id, account.id)
    if integration is None:
        integration = GitHubIntegration(user_id=user_id, github_user_id=account.id)
        db.add(integration)
    _apply_account(integration, account, encrypted)

    try:
        db.commit()
    except IntegrityError:
        # A concurrent connect inserted the same pair first; update that row.
        db.rollback()
        integration = _find_integration(db, user_id, account.id)
        if integration is None:
            raise
        _apply_account(integration, account, encrypted)
        db.commit()

    db.refresh(integration)
    logger.info(f"GitHub integration {integration.id} saved for user {user_id} ({account.username})")
    return integration


def get_active_integration(db: Session, user_id: int) -> Optional[GitHubIntegration]:
    return (
        db.query(GitHubIntegration)
        .filter(
            GitHubIntegration.user_id == user_id,
            GitHubIntegration.is_active == True,
        )
        .order_by(GitHubIntegration.updated_at.desc(), GitHubIntegration.id.desc())
        .first()
    )


def require_active_integration(db: Session, user_id: int) -> GitHubIntegration:
    integration = get_active_integration(db, user_id)
    if integration is None:
        raise IntegrationNotFoundError()
    return integration


def get_access_token(integration: GitHubIntegration) -> str:
    return decrypt_token(integration.encrypted_token)


def get_integration_stats(db: Session, user_id: int) -> dict:
    """Aggregate repository and synced-task counts for the active integration.

    Returns ``{"connected": False}`` instead of failing when nothing is linked.
    """
    integration = get_active_integration(db, user_id)
    if integration is None:
        return {"connected": False}

    repo_names = sorted({
        repo.repo_full_name
        for repo in list_repository_configs(db, integration.id)
    })

    total_tasks = open_tasks = closed_tasks = 0
    last_sync = None
    if repo_names:
        row = (
            db.query(
                func.count(Task.id),
                func.sum(case((Task.completed == False, 1), else_=0)),
                func.sum(case((Task.completed == True, 1), else_=0)),
                func.max(Task.last_github_sync),
            )
            .filter(
                Task.user_id == user_id,
                Task.synced_from_github == True,
                Task.github_repo_name.in_(repo_names),
            )
            .one()
        )
        total_tasks = int(row[0] or 0)
        open_tasks = int(row[1] or 0)
        closed_tasks = int(row[2] or 0)
        last_sync = row[3]

    return {
        "connected": True,
        "integration_id": integration.id,
        "github_username": integration.github_username,
        "avatar_url": integration.avatar_url,
        "connected_since": integration.created_at.isoformat() if integration.created_at else None,
        "last_activity": integration.updated_at.isoformat() if integration.updated_at else None,
        "total_repositories": len(repo_names),
        "total_synced_tasks": total_tasks,
        "open_tasks": open_tasks,
        "closed_tasks": closed_tasks,
        "last_sync": last_sync.isoformat() if last_sync else None,
    }


def disconnect(db: Session, user_id: int) -> int:
    """Deactivate every active integration of the user. Returns how many."""
    integrations = (
        db.query(GitHubIntegration)
        .filter(
            GitHubIntegration.user_id == user_id,
            GitHubIntegration.is_active == True,
        )
        .all()
    )
    for integration in integrations:
        integration.is_active = False
        integration.updated_at = datetime.utcnow()
    db.commit()
    logger.info(f"Deactivated {len(integrations)} GitHub integration(s) for user {user_id}")
    return len(integrations)


def upsert_repository_config(
    db: Session,
    integration: GitHubIntegration,
    repo_full_name: str,
    repo_id: Optional[int] = None,
    project_id: Optional[int] = None,
    sync_enabled: bool = True,
    commit: bool = True,
) -> GitHubRepository:
    """Create or update a repository's configuration.

    A missing project_id or repo_id keeps whatever is already stored. With
    ``commit=False`` the change is only flushed, leaving the caller's
    transaction open.
    """
    repo = (
        db.query(GitHubRepository)
        .filter(
            GitHubRepository.integration_id == integration.id,
            GitHubRepository.repo_full_name == repo_full_name,
        )
        .first()
    )
    if repo is None:
        repo = GitHubRepository(integration_id=integration.id, repo_full_name=repo_full_name)
        db.add(repo)

    if repo_id is not None:
        repo.repo_id = repo_id
    if project_id is not None:
        repo.project_id = project_id
    repo.sync_enabled = sync_enabled
    repo.updated_at = datetime.utcnow()

    if commit:
        db.commit()
        db.refresh(repo)
    else:
        db.flush()
    return repo


def list_repository_configs(db: Session, integration_id: int) -> list[GitHubRepository]:
    return (
        db.query(GitHubRepository)
        .filter(GitHubRepository.integration_id == integration_id)
        .order_by(GitHubRepository.updated_at.desc())
        .all()
    )


def remove_repository_config(db: Session, integration_id: int, repo_full_name: str) -> bool:
    repo = (
        db.query(GitHubRepository)
        .filter(
            GitHubRepository.integration_id == integration_id,
            GitHubRepository.repo_full_name == repo_full_name,
        )
        .first()
    )
    if repo is None:
        return False
    db.delete(repo)
    db.commit()
    return True


def list_synced_tasks(db: Session, user_id: int, repo_full_name: str) -> list[Task]:
    return (
        db.query(Task)
        .filter(
            Task.user_id == user_id,
            Task.github_repo_name == repo_full_name,
            Task.synced_from_github == True,
        )
        .order_by(Task.github_issue_number.asc())
        .all()
    )
