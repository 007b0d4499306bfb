from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Study Queue"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'study_queue.db'}"
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # HTTP server (studyqueue serve)
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Queue pagination
    queue_default_limit: int = 20
    queue_max_limit: int = 100

    # NeedScore weights (must sum to 1.0)
    need_overdue_weight: float = 0.40
    need_mastery_weight: float = 0.30
    need_fragility_weight: float = 0.20
    need_novelty_weight: float = 0.10
    need_grace_days: float = 1.0  # Days overdue at which the overdue factor reaches ~0.63

    model_config = {"env_prefix": "STUDY_QUEUE_", "env_file": ".env"}


settings = Settings()
