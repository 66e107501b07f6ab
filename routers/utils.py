"""Utility functions for routers."""
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session
from models import Project


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """Resolve the caller from the X-User-Id header set by the session layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")


def get_project_or_404(project_id: int, user_id: int, db: Session) -> Project:
    project = (
        db.query(Project)
        .filter(Project.id == project_id, Project.user_id == user_id)
        .first()
    )
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project
