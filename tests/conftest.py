import threading
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from redis import WatchError

from shortener.config import Settings
from shortener.db import make_engine
from shortener.main import create_app
from shortener.service import LinkService
from shortener.store.memory_store import MemoryLinkStore
from shortener.store.redis_store import RedisLinkStore
from shortener.store.sql_store import SqlLinkStore


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class DummyPipeline:
    def __init__(self, redis: "DummyRedis") -> None:
        self.redis = redis
        self.watched: dict[str, int] = {}
        self.queued: list[tuple[str, str]] = []
        self.in_multi = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.reset()

    def watch(self, key):
        self.watched[key] = self.redis.revisions.get(key, 0)
        if self.redis.on_watch is not None:
            hook, self.redis.on_watch = self.redis.on_watch, None
            hook(self.redis)

    def get(self, key):
        return self.redis.get(key)

    def multi(self):
        self.in_multi = True

    def set(self, key, value):
        self.queued.append((key, value))

    def execute(self):
        with self.redis.lock:
            for key, revision in self.watched.items():
                if self.redis.revisions.get(key, 0) != revision:
                    raise WatchError("Watched variable changed.")
            for key, value in self.queued:
                self.redis.set(key, value)
        return [True] * len(self.queued)

    def reset(self):
        self.watched.clear()
        self.queued.clear()
        self.in_multi = False


class DummyRedis:
    """In-memory stand-in for the subset of redis-py the link store uses."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.revisions: dict[str, int] = {}
        self.on_watch = None
        self.lock = threading.RLock()

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False):
        with self.lock:
            if nx and key in self.data:
                return None
            self.data[key] = value
            self.revisions[key] = self.revisions.get(key, 0) + 1
        return True

    def exists(self, *keys):
        return sum(1 for k in keys if k in self.data)

    def pipeline(self):
        return DummyPipeline(self)

    def close(self):
        pass


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return Settings(store_backend="memory", base_url="http://sho.rt")


@pytest.fixture
def memory_store():
    return MemoryLinkStore()


@pytest.fixture
def service(memory_store, settings, clock):
    return LinkService(memory_store, settings, clock=clock)


@pytest.fixture
def sql_store():
    store = SqlLinkStore(make_engine("sqlite://"))
    yield store
    store.close()


@pytest.fixture
def dummy_redis():
    return DummyRedis()


@pytest.fixture
def redis_store(dummy_redis):
    return RedisLinkStore(dummy_redis)


@pytest.fixture
def app(memory_store, settings):
    return create_app(settings=settings, store=memory_store)


@pytest_asyncio.fixture
async def async_client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
