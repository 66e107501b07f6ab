"""Engine and session factory for the task hub.

DATABASE_URL wins when set; otherwise the URL is assembled from the POSTGRES_*
variables. SQLite URLs get the same-thread check disabled because FastAPI runs
sync endpoints in a threadpool.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from env_utils import load_env


def get_database_url() -> str:
    """Construct database URL from environment variables."""
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    return "postgresql://{user}:{password}@{host}:{port}/{db}".format(
        user=os.getenv("POSTGRES_USER", "taskhub"),
        password=os.getenv("POSTGRES_PASSWORD", "taskhub"),
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=os.getenv("POSTGRES_PORT", "5432"),
        db=os.getenv("POSTGRES_DB", "taskhub"),
    )


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return create_engine(url, connect_args=connect_args, **kwargs)
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


load_env()
DATABASE_URL = get_database_url()
engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
