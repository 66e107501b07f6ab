"""SQLAlchemy models for the task hub."""
from datetime import datetime
from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    JSON,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from database import Base


# SQLite only auto-increments INTEGER PRIMARY KEY columns.
BigIntegerPK = BigInteger().with_variant(Integer, "sqlite")


def _iso(value):
    return value.isoformat() if value else None


class Project(Base):
    """Project grouping a user's tasks."""
    __tablename__ = "projects"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    tasks = relationship("Task", back_populates="project")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "created_at": _iso(self.created_at),
        }


class Task(Base):
    """Task, optionally synced from a GitHub issue."""
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_github_issue", "user_id", "github_issue_id"),
        Index("ix_tasks_github_repo_name", "github_repo_name"),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    project_id = Column(BigInteger, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, default=False, nullable=False)
    priority = Column(String(20), default="medium", nullable=False)  # low | medium | high
    due_date = Column(DateTime, nullable=True)

    # GitHub linkage, null for tasks created locally
    github_issue_id = Column(BigInteger, nullable=True)
    github_issue_number = Column(Integer, nullable=True)
    github_repo_name = Column(String(255), nullable=True)  # "owner/repo"
    github_issue_url = Column(Text, nullable=True)
    github_labels = Column(JSON, nullable=True)
    github_state = Column(String(20), nullable=True)  # open | closed
    github_assignees = Column(JSON, nullable=True)
    synced_from_github = Column(Boolean, default=False, nullable=False)
    last_github_sync = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "priority": self.priority,
            "due_date": _iso(self.due_date),
            "github_issue_id": self.github_issue_id,
            "github_issue_number": self.github_issue_number,
            "github_repo_name": self.github_repo_name,
            "github_issue_url": self.github_issue_url,
            "github_labels": self.github_labels or [],
            "github_state": self.github_state,
            "github_assignees": self.github_assignees or [],
            "synced_from_github": self.synced_from_github,
            "last_github_sync": _iso(self.last_github_sync),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ============================================================================
# GitHub integration models
# ============================================================================


class GitHubIntegration(Base):
    """A user's linked GitHub account."""
    __tablename__ = "github_integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "github_user_id", name="uq_github_integrations_user_account"),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    github_user_id = Column(BigInteger, nullable=False)
    github_username = Column(String(255), nullable=False)
    encrypted_token = Column(Text, nullable=False)  # Fernet-encrypted access token
    avatar_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    repositories = relationship(
        "GitHubRepository",
        back_populates="integration",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        # Never expose encrypted_token in API responses
        return {
            "id": self.id,
            "user_id": self.user_id,
            "github_user_id": self.github_user_id,
            "github_username": self.github_username,
            "avatar_url": self.avatar_url,
            "is_active": self.is_active,
            "last_sync_at": _iso(self.last_sync_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class GitHubRepository(Base):
    """Per-repository configuration under an integration."""
    __tablename__ = "github_repositories"
    __table_args__ = (
        UniqueConstraint("integration_id", "repo_full_name", name="uq_github_repositories_integration_repo"),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    integration_id = Column(
        BigInteger,
        ForeignKey("github_integrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    repo_full_name = Column(String(255), nullable=False)
    repo_id = Column(BigInteger, nullable=True)
    project_id = Column(BigInteger, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    sync_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    integration = relationship("GitHubIntegration", back_populates="repositories")
    project = relationship("Project")

    def to_dict(self):
        return {
            "id": self.id,
            "integration_id": self.integration_id,
            "repo_full_name": self.repo_full_name,
            "repo_id": self.repo_id,
            "project_id": self.project_id,
            "project_name": self.project.name if self.project else None,
            "sync_enabled": self.sync_enabled,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
