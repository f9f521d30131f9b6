# /rollcall/db/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..core.config import get_settings
from .base_class import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is switched on per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    Creates an engine for `database_url`.
    SQLite connections get `check_same_thread=False` and foreign keys enabled.
    """
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(database_url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(get_settings().database_url)

# Each instance of this class is one database session.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = None):
    """Creates all tables that do not exist yet."""
    # Importing the registry makes sure every model is attached to Base.
    from . import base  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


# Dependency to get a DB session. Used by the API routers.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
