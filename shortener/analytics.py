from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from shortener.schemas import DIRECT_REFERRER, ClickEvent, GeoInfo, LinkRecord


@dataclass(frozen=True)
class ClickContext:
    timestamp: datetime
    referrer: str | None = None
    geo: GeoInfo | None = None


def build_click_event(context: ClickContext) -> ClickEvent:
    return ClickEvent(
        timestamp=context.timestamp,
        referrer=context.referrer or DIRECT_REFERRER,
        geo_info=context.geo,
    )


def apply_click(record: LinkRecord, context: ClickContext) -> LinkRecord:
    """
    Returns a copy of ``record`` with one more click and the matching event
    appended. Does no I/O and leaves ``record`` untouched.
    """
    event = build_click_event(context)
    return record.model_copy(
        update={
            "clicks": record.clicks + 1,
            "click_events": [*record.click_events, event],
        }
    )
