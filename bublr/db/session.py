"""
Database handle with an explicit lifecycle.

The application lifespan constructs one ``Database`` per process, calls
``init()`` on startup and ``close()`` on shutdown, and hands it to the
document store. Nothing here connects at import time.

Pool parameters (PostgreSQL only):
- pool_size: persistent connections (10 suits a 4-worker uvicorn)
- max_overflow: extra connections allowed at peak
- pool_timeout: seconds to wait for a free connection
- pool_recycle: recycle period, avoids server-side idle disconnects
- pool_pre_ping: liveness check before use
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from bublr.config import Settings, settings as default_settings
from bublr.db.base_class import Base

logger = logging.getLogger("bublr.db")


class Database:
    def __init__(self, url: str, config: Optional[Settings] = None):
        self.url = url
        self._config = config or default_settings
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @classmethod
    def from_settings(cls, config: Settings) -> "Database":
        return cls(config.database_url, config)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database.init() has not been called")
        return self._engine

    def init(self) -> None:
        if self._engine is not None:
            return
        cfg = self._config
        if self.url.startswith("sqlite"):
            self._engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                echo=cfg.DB_ECHO,
            )
            _enable_sqlite_foreign_keys(self._engine)
        else:
            self._engine = create_engine(
                self.url,
                pool_pre_ping=True,
                pool_size=cfg.DB_POOL_SIZE,
                max_overflow=cfg.DB_MAX_OVERFLOW,
                pool_timeout=cfg.DB_POOL_TIMEOUT,
                pool_recycle=cfg.DB_POOL_RECYCLE,
                echo=cfg.DB_ECHO,
            )
        _install_slow_query_log(self._engine, cfg.SLOW_QUERY_THRESHOLD_MS)
        self._sessionmaker = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine
        )
        logger.info("Database engine initialised (%s)", self._engine.url.get_backend_name())

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._sessionmaker = None

    def create_all(self) -> None:
        import bublr.models  # noqa: F401  (register tables on Base.metadata)

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope: commit on success, roll back on error."""
        if self._sessionmaker is None:
            raise RuntimeError("Database.init() has not been called")
        db = self._sessionmaker()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def _install_slow_query_log(engine: Engine, threshold_ms: int) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        total_ms = (time.perf_counter() - conn.info["query_start_time"].pop()) * 1000
        if total_ms >= threshold_ms:
            stmt_preview = statement[:500] + "..." if len(statement) > 500 else statement
            logger.warning(
                "Slow query detected",
                extra={
                    "duration_ms": round(total_ms, 2),
                    "statement": stmt_preview,
                    "threshold_ms": threshold_ms,
                },
            )


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # ON DELETE CASCADE on postsearchterm needs this under SQLite
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
