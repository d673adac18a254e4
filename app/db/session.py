from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings


def make_engine(url: str) -> Engine:
    """
    Postgres in production, a SQLite file in tests and local runs.
    SQLite connections are shared across threads by the test client and the
    registry job, and wait on the file lock instead of failing fast.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    else:
        connect_args = {}
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args=connect_args,
        future=True,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        future=True,
    )


settings = get_settings()

engine = make_engine(settings.database_url)  # fail fast if DATABASE_URL is missing

SessionLocal = make_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
