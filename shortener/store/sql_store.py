from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone

from sqlalchemy import Engine, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from shortener.db import Base, make_session_factory
from shortener.errors import DuplicateKeyError, NotFoundError, StoreFaultError, VersionConflictError
from shortener.models import ClickEventRow, LinkRow
from shortener.schemas import UNKNOWN_LOCATION, ClickEvent, GeoInfo, LinkRecord
from shortener.store.base import LinkStore

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo; everything we write is UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _event_row(code: str, event: ClickEvent) -> ClickEventRow:
    geo = event.geo_info
    return ClickEventRow(
        link_code=code,
        timestamp=event.timestamp,
        referrer=event.referrer,
        ip=geo.ip if geo else None,
        country=geo.country if geo else None,
        city=geo.city if geo else None,
    )


def _event_from_row(row: ClickEventRow) -> ClickEvent:
    geo = None
    if row.ip is not None or row.country is not None or row.city is not None:
        geo = GeoInfo(
            ip=row.ip,
            country=row.country or UNKNOWN_LOCATION,
            city=row.city or UNKNOWN_LOCATION,
        )
    return ClickEvent(timestamp=_aware(row.timestamp), referrer=row.referrer, geo_info=geo)


def _record_from_row(row: LinkRow) -> LinkRecord:
    return LinkRecord(
        original_url=row.original_url,
        short_code=row.short_code,
        created_at=_aware(row.created_at),
        expires_at=_aware(row.expires_at),
        is_custom=row.is_custom,
        clicks=row.clicks,
        click_events=[_event_from_row(e) for e in row.click_events],
        version=row.version,
    )


class SqlLinkStore(LinkStore):
    """
    Relational store. The primary key on ``links.short_code`` enforces
    uniqueness; click updates are a compare-and-swap on ``links.version``
    that runs in the same transaction as the inserted click events.

    An in-memory SQLite database lives on a single shared connection, so
    access to it is serialized with a lock.
    """

    def __init__(self, engine: Engine, create_tables: bool = True) -> None:
        self.engine = engine
        self.session_factory = make_session_factory(engine)
        self._lock = threading.Lock() if isinstance(engine.pool, StaticPool) else nullcontext()
        if create_tables:
            with self._guard("create tables"):
                Base.metadata.create_all(bind=engine)

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            with self._lock:
                yield
        except SQLAlchemyError as exc:
            logger.error("Link store failed to %s: %s", action, exc)
            raise StoreFaultError() from exc

    def find_by_code(self, code: str) -> LinkRecord | None:
        with self._guard("find link"), self.session_factory() as db:
            row = db.get(LinkRow, code)
            return _record_from_row(row) if row is not None else None

    def exists(self, code: str) -> bool:
        with self._guard("check link"), self.session_factory() as db:
            found = db.scalar(select(LinkRow.short_code).where(LinkRow.short_code == code))
            return found is not None

    def insert(self, record: LinkRecord) -> None:
        row = LinkRow(
            short_code=record.short_code,
            original_url=record.original_url,
            created_at=record.created_at,
            expires_at=record.expires_at,
            is_custom=record.is_custom,
            clicks=record.clicks,
            version=record.version,
            click_events=[_event_row(record.short_code, e) for e in record.click_events],
        )
        with self._guard("insert link"), self.session_factory() as db:
            db.add(row)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateKeyError(record.short_code) from exc

    def update(self, record: LinkRecord) -> LinkRecord:
        code = record.short_code
        with self._guard("update link"), self.session_factory.begin() as db:
            result = db.execute(
                update(LinkRow)
                .where(LinkRow.short_code == code, LinkRow.version == record.version)
                .values(clicks=record.clicks, version=record.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                if db.get(LinkRow, code) is None:
                    raise NotFoundError()
                raise VersionConflictError(code)

            # Events are append-only, so everything past the stored count is new.
            stored = db.scalar(
                select(func.count()).select_from(ClickEventRow).where(ClickEventRow.link_code == code)
            )
            for event in record.click_events[stored:]:
                db.add(_event_row(code, event))

        return record.model_copy(update={"version": record.version + 1})

    def close(self) -> None:
        self.engine.dispose()
