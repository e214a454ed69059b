from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from family_points.config import DATABASE_URL, SQLITE_BUSY_TIMEOUT_SECONDS

# Execution option that makes a SQLite transaction take the write lock at BEGIN.
WRITE_LOCK_OPTION = "sqlite_immediate"


def build_engine(url: str = DATABASE_URL, busy_timeout: float = SQLITE_BUSY_TIMEOUT_SECONDS) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": busy_timeout})

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    # Writers lock up front so they queue on the busy timeout instead of
    # deadlocking on lock upgrade. Readers stay deferred.
    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        if connection.get_execution_options().get(WRITE_LOCK_OPTION):
            connection.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            connection.exec_driver_sql("BEGIN")

    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_sessionmaker(engine)
