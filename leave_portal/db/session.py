"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from leave_portal.core.config import settings
from leave_portal.db.base import Base

engine_kwargs = {"pool_pre_ping": True, "echo": False}
if settings.DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_sqlite_schema() -> None:
    """Create all tables for local sqlite runs (real databases use Alembic)."""
    import leave_portal.models  # noqa: F401  (registers models on Base.metadata)

    if "sqlite" in settings.DATABASE_URL:
        Base.metadata.create_all(bind=engine)

