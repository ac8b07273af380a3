from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from redis import Redis, RedisError, WatchError

from shortener.errors import DuplicateKeyError, NotFoundError, StoreFaultError, VersionConflictError
from shortener.schemas import LinkRecord
from shortener.store.base import LinkStore

logger = logging.getLogger(__name__)

LINK_PREFIX = "link:"


def link_key(code: str) -> str:
    return f"{LINK_PREFIX}{code}"


class RedisLinkStore(LinkStore):
    """
    Key-value store: each record is one JSON document under ``link:{code}``.

    Inserts use SET NX. Click updates WATCH the key, compare the stored
    version and write inside MULTI/EXEC, so a concurrent writer aborts the
    transaction instead of being overwritten.
    """

    def __init__(self, client: Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisLinkStore":
        return cls(Redis.from_url(url, decode_responses=True))

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except WatchError:
            raise
        except RedisError as exc:
            logger.error("Link store failed to %s: %s", action, exc)
            raise StoreFaultError() from exc

    def find_by_code(self, code: str) -> LinkRecord | None:
        with self._guard("find link"):
            raw = self.client.get(link_key(code))
        if raw is None:
            return None
        return LinkRecord.model_validate_json(raw)

    def exists(self, code: str) -> bool:
        with self._guard("check link"):
            return bool(self.client.exists(link_key(code)))

    def insert(self, record: LinkRecord) -> None:
        with self._guard("insert link"):
            created = self.client.set(link_key(record.short_code), record.model_dump_json(), nx=True)
        if not created:
            raise DuplicateKeyError(record.short_code)

    def update(self, record: LinkRecord) -> LinkRecord:
        key = link_key(record.short_code)
        stored = record.model_copy(update={"version": record.version + 1})
        with self._guard("update link"), self.client.pipeline() as pipe:
            try:
                pipe.watch(key)
                raw = pipe.get(key)
                if raw is None:
                    raise NotFoundError()
                if LinkRecord.model_validate_json(raw).version != record.version:
                    raise VersionConflictError(record.short_code)
                pipe.multi()
                pipe.set(key, stored.model_dump_json())
                pipe.execute()
            except WatchError as exc:
                raise VersionConflictError(record.short_code) from exc
        return stored

    def close(self) -> None:
        self.client.close()
