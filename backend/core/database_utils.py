# backend/core/database_utils.py

from sqlalchemy import text
from sqlalchemy.orm import Session


def dialect_name(db: Session) -> str:
    """Name of the SQL dialect behind a session ("postgresql", "sqlite", ...)."""
    return db.get_bind().dialect.name


def ping_database(db: Session) -> bool:
    """Round-trip a trivial query; used by the health endpoint."""
    db.execute(text("SELECT 1")).fetchone()
    return True
