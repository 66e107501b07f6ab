"""Routers for Task CRUD operations."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel
from datetime import datetime

from database import get_db
from models import Task
from routers.utils import get_current_user_id, get_project_or_404

PRIORITIES = ("low", "medium", "high")


class TaskCreate(BaseModel):
    project_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    priority: str = "medium"
    due_date: Optional[datetime] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None


class TaskResponse(BaseModel):
    id: int
    user_id: int
    project_id: Optional[int]
    title: str
    description: Optional[str]
    completed: bool
    priority: str
    due_date: Optional[datetime]
    github_issue_id: Optional[int] = None
    github_issue_number: Optional[int] = None
    github_repo_name: Optional[str] = None
    github_issue_url: Optional[str] = None
    github_labels: Optional[List[str]] = None
    github_state: Optional[str] = None
    github_assignees: Optional[List[str]] = None
    synced_from_github: bool = False
    last_github_sync: Optional[datetime] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


router = APIRouter()


def get_task_or_404(task_id: int, user_id: int, db: Session) -> Task:
    task = db.query(Task).filter(Task.id == task_id, Task.user_id == user_id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _check_priority(priority: Optional[str]):
    if priority is not None and priority not in PRIORITIES:
        raise HTTPException(status_code=400, detail=f"priority must be one of {', '.join(PRIORITIES)}")


@router.get("/projects/{project_id}/tasks", response_model=List[TaskResponse])
def list_project_tasks(
    project_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    get_project_or_404(project_id, user_id, db)
    return (
        db.query(Task)
        .filter(Task.project_id == project_id, Task.user_id == user_id)
        .order_by(Task.created_at.asc(), Task.id.asc())
        .all()
    )


@router.get("/tasks", response_model=List[TaskResponse])
def list_tasks(
    completed: Optional[bool] = None,
    synced_from_github: Optional[bool] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    query = db.query(Task).filter(Task.user_id == user_id)
    if completed is not None:
        query = query.filter(Task.completed == completed)
    if synced_from_github is not None:
        query = query.filter(Task.synced_from_github == synced_from_github)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


@router.post("/tasks", response_model=TaskResponse)
def create_task(
    task: TaskCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _check_priority(task.priority)
    if task.project_id is not None:
        get_project_or_404(task.project_id, user_id, db)

    db_task = Task(
        user_id=user_id,
        project_id=task.project_id,
        title=task.title,
        description=task.description,
        priority=task.priority,
        due_date=task.due_date,
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)
    return db_task


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_task_or_404(task_id, user_id, db)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    update: TaskUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    task = get_task_or_404(task_id, user_id, db)
    _check_priority(update.priority)

    if update.title is not None:
        task.title = update.title
    if update.description is not None:
        task.description = update.description
    if update.completed is not None:
        task.completed = update.completed
    if update.priority is not None:
        task.priority = update.priority
    if update.due_date is not None:
        task.due_date = update.due_date

    db.commit()
    db.refresh(task)
    return task


@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    task = get_task_or_404(task_id, user_id, db)
    db.delete(task)
    db.commit()
    return {"deleted": True, "task_id": task_id}
