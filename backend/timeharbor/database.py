"""Database engine, session factory and declarative base."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from timeharbor.config import settings


def build_engine(database_url: str, timeout_seconds: float, **kwargs):
    """
    Create an engine whose connections never wait longer than ``timeout_seconds``.

    SQLite gets a busy timeout; PostgreSQL gets a connect timeout plus a
    server-side statement timeout so a stuck query surfaces as an error.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
    elif database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
        kwargs.setdefault("pool_timeout", timeout_seconds)
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(database_url, connect_args=connect_args, **kwargs)


engine = build_engine(settings.database_url, settings.store_timeout_seconds)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
