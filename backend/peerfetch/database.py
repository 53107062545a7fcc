"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
small helpers used by the application, scripts and tests.
"""

from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlmodel import SQLModel, create_engine, Session

from .config import settings

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args)


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    This function is intended for local development and lightweight
    scripts; production deployments should rely on a proper migration
    tool (alembic) instead.
    """
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(engine)
    _ensure_profile_columns()


def _ensure_profile_columns():
    """Ensure late-added profile columns exist on older DB files.

    `linkedin_url` and `branch_name` were added after the first release;
    the ALTER is idempotent and a duplicate-column error is ignored.
    """
    with engine.connect() as conn:
        for col in ("linkedin_url VARCHAR", "branch_name VARCHAR"):
            try:
                conn.exec_driver_sql(f"ALTER TABLE \"user\" ADD COLUMN {col}")
                conn.commit()
            except (OperationalError, ProgrammingError):
                conn.rollback()


def drop_all_tables():
    """Drop every table known to the metadata. Used by tests."""
    SQLModel.metadata.drop_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
