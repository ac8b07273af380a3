from datetime import datetime

from pydantic import BaseModel, Field, field_validator

DIRECT_REFERRER = "direct"
UNKNOWN_LOCATION = "Unknown"


class GeoInfo(BaseModel):
    ip: str | None = None
    country: str = UNKNOWN_LOCATION
    city: str = UNKNOWN_LOCATION


class ClickEvent(BaseModel):
    timestamp: datetime
    referrer: str = DIRECT_REFERRER
    geo_info: GeoInfo | None = None


class LinkRecord(BaseModel):
    original_url: str
    short_code: str
    created_at: datetime
    expires_at: datetime
    is_custom: bool = False
    clicks: int = Field(default=0, ge=0)
    click_events: list[ClickEvent] = Field(default_factory=list)
    # Optimistic concurrency token, owned by the store.
    version: int = 0

    def is_expired_at(self, now: datetime) -> bool:
        return now >= self.expires_at


class LinkStats(LinkRecord):
    is_expired: bool


class ShortenRequest(BaseModel):
    url: str
    validity: int | None = None
    shortcode: str | None = None

    @field_validator("shortcode")
    @classmethod
    def blank_shortcode_means_generated(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class ShortenResponse(BaseModel):
    original_url: str
    short_code: str
    short_url: str
    created_at: datetime
    expires_at: datetime
    is_custom: bool


class StatsResponse(BaseModel):
    short_code: str
    original_url: str
    created_at: datetime
    expires_at: datetime
    is_expired: bool
    clicks: int
    click_events: list[ClickEvent]
