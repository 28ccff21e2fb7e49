"""SQLAlchemy engine and session lifecycle.

SQLite is used for local development and tests, any SQLAlchemy URL with
on-conflict upsert support (PostgreSQL, MySQL) works in production.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from courserag.storage.tables import Base


class Database:
    """Owns one engine and session factory for the lifetime of the process."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self._url = make_url(url)
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if self._url.get_backend_name() == "sqlite":
            # FastAPI runs sync handlers on worker threads
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self._url.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = 10
            engine_kwargs["max_overflow"] = 20
            engine_kwargs["pool_pre_ping"] = True
        self._engine = create_engine(self._url, **engine_kwargs)
        self._sessionmaker = sessionmaker(bind=self._engine, autoflush=False, expire_on_commit=False)

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    def session(self) -> Session:
        return self._sessionmaker()

    def create_all(self) -> None:
        if self._url.get_backend_name() == "sqlite" and self._url.database not in (None, "", ":memory:"):
            Path(self._url.database).parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(self._engine)

    def ping(self) -> None:
        with self._engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self._engine.dispose()
