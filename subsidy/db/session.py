"""Engine and session factory built from settings."""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from subsidy.core.config import get_settings
from subsidy.db.base import Base


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite gets foreign keys and thread sharing enabled."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, echo=echo, connect_args=connect_args, future=True)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


settings = get_settings()
engine = create_db_engine(settings.database_url, settings.database_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine = None) -> None:
    """Create all tables (development and tests; production uses Alembic)."""
    # Register every model on the metadata
    import subsidy.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
