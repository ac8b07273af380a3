from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import AnyUrl, TypeAdapter, ValidationError

from shortener import codes
from shortener.analytics import ClickContext, apply_click
from shortener.config import Settings
from shortener.errors import (
    DuplicateKeyError,
    ExhaustedError,
    ExpiredError,
    InvalidShortcodeFormatError,
    InvalidUrlError,
    InvalidValidityError,
    NotFoundError,
    ShortcodeConflictError,
    StoreFaultError,
    VersionConflictError,
)
from shortener.geo import GeoResolver, UnknownGeoResolver
from shortener.schemas import LinkRecord, LinkStats
from shortener.store.base import LinkStore

logger = logging.getLogger(__name__)

_url_adapter = TypeAdapter(AnyUrl)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_url(original_url: object) -> str:
    """Accepts absolute URLs only; returns the URL without surrounding whitespace."""
    if not isinstance(original_url, str) or not original_url.strip():
        raise InvalidUrlError()
    original_url = original_url.strip()
    try:
        _url_adapter.validate_python(original_url)
    except ValidationError as exc:
        raise InvalidUrlError() from exc
    return original_url


def resolve_validity(validity_minutes: object, default: int) -> int:
    if validity_minutes is None:
        return default
    if isinstance(validity_minutes, bool) or not isinstance(validity_minutes, int):
        raise InvalidValidityError()
    if validity_minutes <= 0:
        raise InvalidValidityError()
    return validity_minutes


def compute_expires_at(created_at: datetime, validity_minutes: int) -> datetime:
    try:
        return created_at + timedelta(minutes=validity_minutes)
    except OverflowError as exc:
        raise InvalidValidityError() from exc


class LinkService:
    """
    Create, resolve and inspect short links.

    The service holds no mutable state of its own; the store is the only
    shared resource, and it is the store's unique insert and conditional
    update that keep concurrent callers correct. Existence pre-checks here
    only give a cheaper failure path.
    """

    def __init__(
        self,
        store: LinkStore,
        settings: Settings,
        geo_resolver: GeoResolver | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.settings = settings
        self.geo_resolver = geo_resolver or UnknownGeoResolver()
        self.clock = clock

    def create_short_link(
        self,
        original_url: str,
        validity_minutes: int | None = None,
        custom_code: str | None = None,
    ) -> LinkRecord:
        original_url = validate_url(original_url)
        validity = resolve_validity(validity_minutes, self.settings.default_validity_minutes)

        if custom_code is not None and not codes.validate_format(custom_code):
            logger.warning("Invalid custom shortcode format: %r", custom_code)
            raise InvalidShortcodeFormatError()

        created_at = self.clock()
        expires_at = compute_expires_at(created_at, validity)

        if custom_code is not None:
            record = self._insert_custom(original_url, custom_code, created_at, expires_at)
        else:
            record = self._insert_generated(original_url, created_at, expires_at)

        logger.info("Created short URL: %s for %s", record.short_code, original_url)
        return record

    def _insert_custom(
        self, original_url: str, code: str, created_at: datetime, expires_at: datetime
    ) -> LinkRecord:
        if self.store.exists(code):
            logger.warning("Custom shortcode already exists: %s", code)
            raise ShortcodeConflictError()

        record = LinkRecord(
            original_url=original_url,
            short_code=code,
            created_at=created_at,
            expires_at=expires_at,
            is_custom=True,
        )
        try:
            self.store.insert(record)
        except DuplicateKeyError as exc:
            logger.warning("Custom shortcode taken concurrently: %s", code)
            raise ShortcodeConflictError() from exc
        return record

    def _insert_generated(
        self, original_url: str, created_at: datetime, expires_at: datetime
    ) -> LinkRecord:
        max_attempts = self.settings.max_generation_attempts
        for _ in range(max_attempts):
            code = codes.generate_unique(self.store, self.settings.code_length, max_attempts)
            record = LinkRecord(
                original_url=original_url,
                short_code=code,
                created_at=created_at,
                expires_at=expires_at,
                is_custom=False,
            )
            try:
                self.store.insert(record)
            except DuplicateKeyError:
                logger.info("Generated shortcode %s taken concurrently, regenerating", code)
                continue
            return record

        logger.error("Generated shortcodes kept colliding on insert after %d attempts", max_attempts)
        raise ExhaustedError()

    def resolve_and_record_click(
        self,
        code: str,
        referrer: str | None = None,
        client_ip: str | None = None,
    ) -> str:
        """
        Returns the redirect target for ``code`` and records one click.

        Each attempt re-reads the record and re-checks expiry, so a retry
        after a lost update never counts a click on a link that has expired
        in the meantime.
        """
        geo = self.geo_resolver.resolve(client_ip)

        for _ in range(self.settings.max_update_attempts):
            record = self.store.find_by_code(code)
            if record is None:
                logger.warning("Short URL not found: %s", code)
                raise NotFoundError()

            now = self.clock()
            if record.is_expired_at(now):
                logger.info("Short URL expired: %s (expired at %s)", code, record.expires_at)
                raise ExpiredError()

            clicked = apply_click(record, ClickContext(timestamp=now, referrer=referrer, geo=geo))
            try:
                stored = self.store.update(clicked)
            except VersionConflictError:
                logger.debug("Concurrent click on %s, retrying", code)
                continue

            logger.info(
                "Redirecting %s to %s (click count: %d)", code, stored.original_url, stored.clicks
            )
            return stored.original_url

        logger.error(
            "Could not record click on %s after %d attempts",
            code,
            self.settings.max_update_attempts,
        )
        raise StoreFaultError("Too much contention recording click")

    def get_stats(self, code: str) -> LinkStats:
        record = self.store.find_by_code(code)
        if record is None:
            logger.warning("Stats not found for: %s", code)
            raise NotFoundError()

        logger.info("Retrieved stats for %s", code)
        return LinkStats(**record.model_dump(), is_expired=record.is_expired_at(self.clock()))

    def short_url_for(self, record: LinkRecord) -> str:
        return f"{self.settings.base_url}/{record.short_code}"
