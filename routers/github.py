"""Routers for the GitHub integration: OAuth connect, repositories, issue import."""
import logging
from functools import lru_cache
from typing import Optional, Union
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database import get_db
from integrations.errors import ConfigurationError, ExchangeFailedError, StateExpiredError
from integrations.github.api_client import GitHubApiClient
from integrations.github.config import GitHubSettings, load_github_settings
from integrations.github.flow import OAuthFlowService
from integrations.github.oauth import GitHubOAuthClient
from integrations.state_store import InMemoryTTLStore, TTLStore
from routers.utils import get_current_user_id, get_project_or_404
from services import github_integration_service as integration_service
from services.github_import_service import IssueImportService, parse_repo_full_name

logger = logging.getLogger(__name__)

router = APIRouter()

# Pending OAuth states and handoff records live only in this process.
_state_store = InMemoryTTLStore()
_flow_store = InMemoryTTLStore()


class ConnectRequest(BaseModel):
    flow_id: Optional[str] = None


class ImportOptions(BaseModel):
    state: Optional[str] = None
    labels: Optional[str] = None
    assignee: Optional[str] = None
    milestone: Optional[str] = None
    since: Optional[str] = None
    sort: Optional[str] = None
    direction: Optional[str] = None
    per_page: Optional[Union[int, str]] = None
    page: Optional[Union[int, str]] = None


class ImportRequest(BaseModel):
    repo_full_name: Optional[str] = None
    project_id: Optional[int] = None
    options: ImportOptions = Field(default_factory=ImportOptions)


class RepositoryConfigRequest(BaseModel):
    project_id: Optional[int] = None
    repo_id: Optional[int] = None
    sync_enabled: bool = True


# ============================================================================
# Dependencies (overridden in tests)
# ============================================================================


@lru_cache
def get_github_settings() -> GitHubSettings:
    return load_github_settings()


@lru_cache
def _shared_api_client(base_url: str, rate_limit_buffer: int, timeout: float) -> GitHubApiClient:
    return GitHubApiClient(base_url, rate_limit_buffer=rate_limit_buffer, timeout=timeout)


def get_api_client(settings: GitHubSettings = Depends(get_github_settings)) -> GitHubApiClient:
    return _shared_api_client(settings.api_base_url, settings.rate_limit_buffer, settings.http_timeout)


def get_state_store() -> TTLStore:
    return _state_store


def get_flow_store() -> TTLStore:
    return _flow_store


def get_oauth_client(
    settings: GitHubSettings = Depends(get_github_settings),
    api_client: GitHubApiClient = Depends(get_api_client),
):
    oauth = GitHubOAuthClient(settings, api_client)
    try:
        yield oauth
    finally:
        oauth.close()


def get_flow_service(
    settings: GitHubSettings = Depends(get_github_settings),
    oauth: GitHubOAuthClient = Depends(get_oauth_client),
    states: TTLStore = Depends(get_state_store),
    flows: TTLStore = Depends(get_flow_store),
) -> OAuthFlowService:
    return OAuthFlowService(
        oauth=oauth,
        states=states,
        flows=flows,
        upsert_integration=integration_service.upsert_integration,
        state_ttl=settings.state_ttl_seconds,
        flow_ttl=settings.flow_ttl_seconds,
    )


def log_import_event(event: str, payload: dict) -> None:
    """Default notification sink until a real-time channel is attached."""
    logger.info(
        f"{event}: user {payload.get('user_id')} imported {payload.get('imported_count')} "
        f"issues from {payload.get('repository')}"
    )


def get_import_service(api_client: GitHubApiClient = Depends(get_api_client)) -> IssueImportService:
    return IssueImportService(api_client, notify=log_import_event)


def _callback_redirect(settings: GitHubSettings, **params) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.frontend_callback_url}?{urlencode(params)}",
        status_code=302,
    )


# ============================================================================
# OAuth connect flow
# ============================================================================


@router.get("/auth/external")
def initiate_github_auth(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    settings: GitHubSettings = Depends(get_github_settings),
    flow: OAuthFlowService = Depends(get_flow_service),
):
    """Start the connect flow and return the GitHub authorization URL."""
    redirect_uri = settings.redirect_uri or str(request.url_for("github_oauth_callback"))
    auth = flow.generate_auth_url(user_id, redirect_uri)
    return {"success": True, "authorization_url": auth.authorization_url}


@router.get("/auth/external/callback", name="github_oauth_callback")
def github_oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: GitHubSettings = Depends(get_github_settings),
    flow: OAuthFlowService = Depends(get_flow_service),
):
    """GitHub redirects here; bounce the browser to the frontend either way."""
    if not settings.oauth_configured:
        logger.error("GitHub OAuth callback received but client credentials are not configured")
        return _callback_redirect(settings, error=ConfigurationError.code)

    if error:
        if state:
            flow.states.delete(state)
        logger.warning(f"GitHub authorization declined: {error}")
        return _callback_redirect(settings, error="access_denied")

    try:
        result = flow.handle_callback(code, state)
    except (StateExpiredError, ExchangeFailedError) as e:
        return _callback_redirect(settings, error=e.code)

    return _callback_redirect(
        settings,
        success="true",
        username=result.username,
        flow_id=result.flow_id,
    )


@router.post("/integrations/external/connect")
def connect_github(
    payload: ConnectRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    flow: OAuthFlowService = Depends(get_flow_service),
):
    """Redeem the flow id from the callback and persist the integration."""
    integration = flow.finalize_connect(db, payload.flow_id, user_id)
    return {
        "success": True,
        "message": "GitHub account connected",
        "data": integration.to_dict(),
    }


# ============================================================================
# Integration lifecycle
# ============================================================================


@router.get("/integrations/external/status")
def github_status(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": integration_service.get_integration_stats(db, user_id)}


@router.delete("/integrations/external")
def disconnect_github(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Deactivate the link; previously imported tasks are kept."""
    count = integration_service.disconnect(db, user_id)
    return {
        "success": True,
        "message": "Disconnected successfully",
        "data": {"deactivated": count},
    }


# ============================================================================
# Repositories
# ============================================================================


@router.get("/integrations/external/repositories")
def list_github_repositories(
    fetch_all: bool = False,
    sort: Optional[str] = None,
    direction: Optional[str] = None,
    repo_type: Optional[str] = Query(None, alias="type"),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    api_client: GitHubApiClient = Depends(get_api_client),
):
    """Repositories with issues enabled, marked with their local configuration."""
    integration = integration_service.require_active_integration(db, user_id)
    token = integration_service.get_access_token(integration)

    repositories = api_client.list_user_repositories(token, {
        "fetch_all": fetch_all,
        "sort": sort,
        "direction": direction,
        "type": repo_type,
    })
    configured = {
        repo.repo_full_name: repo
        for repo in integration_service.list_repository_configs(db, integration.id)
    }

    data = []
    for repository in repositories:
        if not repository.has_issues:
            continue
        item = repository.to_dict()
        config = configured.get(repository.full_name)
        item["configured"] = config is not None
        item["project_id"] = config.project_id if config else None
        data.append(item)
    return {"success": True, "data": data}


@router.put("/integrations/external/repositories/{owner}/{repo}")
def configure_github_repository(
    owner: str,
    repo: str,
    payload: RepositoryConfigRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Link a repository to a project for later imports."""
    integration = integration_service.require_active_integration(db, user_id)
    owner, repo = parse_repo_full_name(f"{owner}/{repo}")
    if payload.project_id is not None:
        get_project_or_404(payload.project_id, user_id, db)

    config = integration_service.upsert_repository_config(
        db,
        integration,
        f"{owner}/{repo}",
        repo_id=payload.repo_id,
        project_id=payload.project_id,
        sync_enabled=payload.sync_enabled,
    )
    return {"success": True, "data": config.to_dict()}


@router.delete("/integrations/external/repositories/{owner}/{repo}")
def remove_github_repository(
    owner: str,
    repo: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    integration = integration_service.require_active_integration(db, user_id)
    removed = integration_service.remove_repository_config(db, integration.id, f"{owner}/{repo}")
    if not removed:
        raise HTTPException(status_code=404, detail="Repository configuration not found")
    return {"success": True, "data": {"removed": True, "repository": f"{owner}/{repo}"}}


@router.get("/integrations/external/repositories/{owner}/{repo}/tasks")
def list_github_repository_tasks(
    owner: str,
    repo: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Tasks previously imported from this repository."""
    tasks = integration_service.list_synced_tasks(db, user_id, f"{owner}/{repo}")
    return {"success": True, "data": [task.to_dict() for task in tasks]}


# ============================================================================
# Issues
# ============================================================================


@router.get("/integrations/external/repositories/{owner}/{repo}/issues/preview")
def preview_github_issues(
    owner: str,
    repo: str,
    state: Optional[str] = None,
    labels: Optional[str] = None,
    per_page: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    importer: IssueImportService = Depends(get_import_service),
):
    """First page of issues, each flagged with whether it was imported already."""
    integration = integration_service.require_active_integration(db, user_id)
    token = integration_service.get_access_token(integration)
    preview = importer.preview(
        db,
        user_id,
        token,
        owner,
        repo,
        {"state": state, "labels": labels, "per_page": per_page},
    )
    return {"success": True, "data": preview}


@router.post("/integrations/external/import-issues")
def import_github_issues(
    payload: ImportRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    importer: IssueImportService = Depends(get_import_service),
):
    """Import a page of issues as tasks; issues already imported are skipped."""
    integration = integration_service.require_active_integration(db, user_id)
    token = integration_service.get_access_token(integration)
    result = importer.import_issues(
        db,
        user_id,
        integration,
        token,
        payload.repo_full_name,
        payload.project_id,
        payload.options.model_dump(exclude_none=True),
    )
    return {
        "success": True,
        "message": f"Imported {result.imported_count} issues.",
        "data": result.to_dict(),
    }
