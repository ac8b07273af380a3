from shortener.config import Settings
from shortener.store.base import LinkStore
from shortener.store.memory_store import MemoryLinkStore


def build_store(settings: Settings) -> LinkStore:
    """Creates the store selected by ``settings.store_backend``."""
    if settings.store_backend == "memory":
        return MemoryLinkStore()
    if settings.store_backend == "redis":
        from shortener.store.redis_store import RedisLinkStore

        return RedisLinkStore.from_url(settings.redis_url)

    from shortener.db import make_engine, wait_for_database
    from shortener.store.sql_store import SqlLinkStore

    engine = make_engine(settings.database_url)
    wait_for_database(engine)
    return SqlLinkStore(engine)
