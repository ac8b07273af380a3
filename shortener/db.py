from __future__ import annotations

import logging
import os
import time

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def make_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    kwargs: dict = {}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each session sees an empty database.
            kwargs["poolclass"] = StaticPool
        else:
            data_dir = os.path.dirname(url.database)
            if data_dir:
                os.makedirs(data_dir, exist_ok=True)
    return create_engine(database_url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def wait_for_database(engine: Engine, max_attempts: int = 30, sleep_seconds: float = 1) -> None:
    """Polls the database with SELECT 1 until it answers or the attempts run out."""
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except Exception as e:
            last_err = e
            logger.warning("Database not reachable yet: %s", e)
            time.sleep(sleep_seconds)

    raise RuntimeError(f"Database not reachable after {max_attempts} attempts") from last_err
