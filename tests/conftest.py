"""
Pytest configuration and shared fixtures.

Usage:
    # Run all tests
    pytest tests/ -v

    # Run one module
    pytest tests/test_import_service.py -v
"""
import os
import sys
from pathlib import Path

import pytest
from cryptography.fernet import Fernet
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Must be set before database/models are imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["INTEGRATION_ENCRYPTION_KEY"] = Fernet.generate_key().decode()

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from database import build_engine
from models import Base, Project
from github_fakes import FakeGitHub


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def project(db):
    project = Project(user_id=1, name="Inbox", description="Imported work")
    db.add(project)
    db.commit()
    db.refresh(project)
    return project
