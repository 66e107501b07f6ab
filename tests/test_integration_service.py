"""Tests for the stored GitHub link and its repository settings."""
from datetime import datetime

import pytest

from integrations.errors import IntegrationNotFoundError
from integrations.github.types import GitHubAccount
from models import GitHubRepository, Task
from services import github_integration_service as svc


@pytest.fixture
def account():
    return GitHubAccount(id=9001, username="octocat", avatar_url="https://avatars.test/octocat")


@pytest.fixture
def integration(db, account):
    return svc.upsert_integration(db, 1, account, "gho_test_token")


def _synced_task(number, repo="octocat/hello", completed=False, user_id=1, synced_at=None):
    return Task(
        user_id=user_id,
        title=f"Issue {number}",
        completed=completed,
        github_issue_id=100000 + number,
        github_issue_number=number,
        github_repo_name=repo,
        synced_from_github=True,
        last_github_sync=synced_at or datetime(2024, 5, 1, 10, 0, 0),
    )


def test_active_integration_and_token(db, integration):
    active = svc.get_active_integration(db, 1)
    assert active.id == integration.id
    assert svc.get_access_token(active) == "gho_test_token"
    assert "encrypted_token" not in active.to_dict()


def test_require_active_integration_without_link(db):
    with pytest.raises(IntegrationNotFoundError) as exc_info:
        svc.require_active_integration(db, 1)
    assert exc_info.value.status_code == 404


def test_integrations_are_per_user(db, integration):
    assert svc.get_active_integration(db, 2) is None


def test_stats_when_not_connected(db):
    assert svc.get_integration_stats(db, 1) == {"connected": False}


def test_stats_count_configured_repositories(db, integration, project):
    svc.upsert_repository_config(db, integration, "octocat/hello", project_id=project.id)
    db.add_all([
        _synced_task(1),
        _synced_task(2),
        _synced_task(3, completed=True, synced_at=datetime(2024, 5, 2, 9, 0, 0)),
        _synced_task(4, repo="octocat/unconfigured"),
        _synced_task(5, user_id=2),
        Task(user_id=1, title="Local task"),
    ])
    db.commit()

    stats = svc.get_integration_stats(db, 1)

    assert stats["connected"] is True
    assert stats["github_username"] == "octocat"
    assert stats["total_repositories"] == 1
    assert stats["total_synced_tasks"] == 3
    assert stats["open_tasks"] == 2
    assert stats["closed_tasks"] == 1
    assert stats["last_sync"] == "2024-05-02T09:00:00"


def test_disconnect_keeps_imported_tasks(db, integration):
    db.add(_synced_task(1))
    db.commit()

    assert svc.disconnect(db, 1) == 1
    assert svc.get_active_integration(db, 1) is None
    assert svc.get_integration_stats(db, 1) == {"connected": False}
    assert db.query(Task).count() == 1
    assert svc.disconnect(db, 1) == 0


def test_reconnect_reactivates(db, integration, account):
    svc.disconnect(db, 1)
    again = svc.upsert_integration(db, 1, account, "gho_new_token")
    assert again.id == integration.id
    assert again.is_active is True
    assert svc.get_access_token(again) == "gho_new_token"


def test_repository_config_upsert_keeps_project_when_absent(db, integration, project):
    created = svc.upsert_repository_config(db, integration, "octocat/hello", repo_id=42, project_id=project.id)
    updated = svc.upsert_repository_config(db, integration, "octocat/hello", sync_enabled=False)

    assert updated.id == created.id
    assert updated.project_id == project.id
    assert updated.repo_id == 42
    assert updated.sync_enabled is False
    assert updated.to_dict()["project_name"] == "Inbox"
    assert db.query(GitHubRepository).count() == 1


def test_repository_config_without_commit_can_roll_back(db, integration):
    svc.upsert_repository_config(db, integration, "octocat/hello", commit=False)
    assert len(svc.list_repository_configs(db, integration.id)) == 1
    db.rollback()
    assert svc.list_repository_configs(db, integration.id) == []


def test_remove_repository_config(db, integration):
    svc.upsert_repository_config(db, integration, "octocat/hello")
    assert svc.remove_repository_config(db, integration.id, "octocat/hello") is True
    assert svc.remove_repository_config(db, integration.id, "octocat/hello") is False


def test_list_synced_tasks_orders_by_issue_number(db):
    db.add_all([_synced_task(9), _synced_task(2), _synced_task(5, repo="octocat/other")])
    db.commit()

    tasks = svc.list_synced_tasks(db, 1, "octocat/hello")
    assert [t.github_issue_number for t in tasks] == [2, 9]
