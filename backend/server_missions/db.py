# backend/server_missions/db.py
import os
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

# --- SQLAlchemy Base ---------------------------------------------------------
class Base(DeclarativeBase):
    pass

# --- Engine / Session --------------------------------------------------------
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg://missions:devpass@db:5432/server_missions",
)


def make_engine(url: str) -> Engine:
    """Build an engine; SQLite gets a busy timeout and write-locking transactions."""
    if url.startswith("sqlite"):
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            future=True,
        )
        _serialize_sqlite_writers(eng)
        return eng
    # pool_pre_ping avoids “stale” connections on container restarts
    return create_engine(url, pool_pre_ping=True, future=True)


def _serialize_sqlite_writers(eng: Engine) -> None:
    # pysqlite defers BEGIN until the first write, so a transaction that reads
    # first can fail to upgrade its lock. BEGIN IMMEDIATE takes the write lock
    # up front and concurrent writers wait on the busy timeout instead.
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)

# FastAPI dependency
def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Used by the /health/db route
def healthcheck() -> dict:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok"}
