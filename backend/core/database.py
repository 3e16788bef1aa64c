# backend/core/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import os

from .config import settings

DATABASE_URL = os.getenv("DATABASE_URL", settings.database_url)


def build_engine(url: str, **overrides):
    """Create an engine with the pool and SQLite settings this service expects."""
    engine_kwargs = {
        "echo": settings.log_sql_queries,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        # isolation_level=None hands transaction control to the "begin" hook below
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": 30,
            "isolation_level": None,
        }
        if url in {"sqlite://", "sqlite:///:memory:"}:
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = settings.db_pool_size
        engine_kwargs["max_overflow"] = settings.db_max_overflow

    engine_kwargs.update(overrides)
    new_engine = create_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):
        configure_sqlite_locking(new_engine)

    return new_engine


def configure_sqlite_locking(target_engine):
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    Writers then queue on the busy timeout instead of failing a lock upgrade,
    which keeps conditional updates race-free on the test database.
    """

    @event.listens_for(target_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(target_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
