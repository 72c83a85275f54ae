"""Database connection and session factory.

Naive datetimes loaded from the store are tagged as UTC so comparisons
against timezone-aware values never mix the two.
"""

from datetime import timezone

from sqlalchemy import create_engine, event, DateTime, TypeDecorator
from sqlalchemy.orm import sessionmaker

from .config import settings


class UTCDateTime(TypeDecorator):
    """DateTime type that ensures UTC timezone on load."""
    impl = DateTime
    cache_ok = True

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {"connect_timeout": 10},
    }


def _sqlite_connect(dbapi_conn, connection_record):
    # pysqlite: let SQLAlchemy own BEGIN so SAVEPOINTs work
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _sqlite_begin(conn):
    # Take the write lock up front; a second writer waits on the busy timeout
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def configure_sqlite(eng):
    """Attach the SQLite connection and transaction listeners to an engine."""
    event.listen(eng, "connect", _sqlite_connect)
    event.listen(eng, "begin", _sqlite_begin)
    return eng


def _postgres_connect(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("SET timezone = 'UTC'")
    cursor.close()


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
if settings.is_sqlite:
    configure_sqlite(engine)
else:
    event.listen(engine, "connect", _postgres_connect)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
