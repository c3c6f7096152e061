"""
Database engine and session management.

Provides the engine/session factory pair the unit of work is built on.
SQLite (in-memory or file) is supported for development and tests;
PostgreSQL is the production target.

Most code never touches this module directly - it goes through a
SqlAlchemyUnitOfWork, which owns one session per request.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .tables import Base


logger = logging.getLogger(__name__)


class DatabaseConnectionError(Exception):
    """Raised when the database can't be reached."""
    pass


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory(url: str) -> bool:
    return _is_sqlite(url) and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"))


def build_engine(
    url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for the given URL.

    Pool options only apply to server databases. SQLite gets a
    thread-shareable connection instead, and an in-memory database gets
    a single static connection so every session sees the same data.
    """
    if _is_sqlite(url):
        options = {"connect_args": {"check_same_thread": False}}
        if _is_memory(url):
            options["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **options)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """SQLite ignores foreign keys unless asked on every connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "in_memory": _is_memory(url)}
    )
    return engine


class Database:
    """
    Engine plus session factory.

    One instance per process (see src/api/dependencies.py); tests build
    their own against in-memory SQLite.
    """

    def __init__(self, url: str, echo: bool = False, **pool_options) -> None:
        self.url = url
        self.engine = build_engine(url, echo=echo, **pool_options)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def session(self) -> Session:
        return self._session_factory()

    def create_all(self) -> None:
        """Create any missing tables. Existing tables are left untouched."""
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ensured", extra={"dialect": self.dialect})

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    def check_connection(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database connection check failed", extra={"error": str(e)})
            return False

    def dispose(self) -> None:
        self.engine.dispose()
        logger.debug("Database engine disposed")


def connect(url: str, echo: bool = False, create_schema: bool = False, **pool_options) -> Database:
    """
    Build a Database and optionally create its schema.

    Raises DatabaseConnectionError if the schema can't be created, so a
    misconfigured URL fails at startup rather than on the first request.
    """
    database = Database(url, echo=echo, **pool_options)
    if create_schema:
        try:
            database.create_all()
        except Exception as e:
            logger.error("Failed to create database schema", extra={"error": str(e)})
            raise DatabaseConnectionError(f"Database initialization failed: {e}")
    return database


def mask_url(url: Optional[str]) -> str:
    """Hide the password part of a database URL for logs."""
    if not url or "@" not in url or "://" not in url:
        return url or ""
    scheme, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
