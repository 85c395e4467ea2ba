"""
Database configuration and session management for SQLAlchemy.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from janusleaf.core.config import DATABASE_URL


def build_engine(url: str) -> Engine:
    """
    Creates an engine for the given URL.

    SQLite connections are shared across the poller threads, so the same-thread
    check is disabled and foreign keys are switched on for cascading deletes.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}

    new_engine = create_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Engine & Session
engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)

# Declarative Base
Base = declarative_base()


def import_models() -> None:
    """Imports every model module so they register with the Base metadata."""
    import janusleaf.auth.models  # noqa: F401
    import janusleaf.journals.models  # noqa: F401
    import janusleaf.analysis.models  # noqa: F401
    import janusleaf.inspiration.models  # noqa: F401


def create_tables(bind: Engine = engine) -> None:
    import_models()
    Base.metadata.create_all(bind=bind)


# Dependency for FastAPI Routes
def get_db():
    """
    Yields a database session for use in FastAPI dependency injection.
    Ensures the session is closed after the request lifecycle.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_insert(db):
    """INSERT construct with ON CONFLICT support for the session's dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Upsert is not supported on dialect '{dialect}'")
    return insert
