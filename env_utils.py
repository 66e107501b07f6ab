"""Shared environment loading utilities."""
from pathlib import Path
import os

from dotenv import load_dotenv


def load_env() -> Path:
    """Load .env from the project root if present."""
    root = Path(os.getenv("PROJECT_ROOT", Path(__file__).parent)).resolve()
    env_path = root / ".env"
    load_dotenv(env_path)
    return env_path


def get_int_env(name: str, default: int) -> int:
    """Read an integer env var, falling back to default on missing/garbage."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default
