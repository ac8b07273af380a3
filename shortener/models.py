from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shortener.db import Base


class LinkRow(Base):
    __tablename__ = "links"

    short_code: Mapped[str] = mapped_column(String(12), primary_key=True)
    original_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    click_events: Mapped[list["ClickEventRow"]] = relationship(
        back_populates="link",
        order_by="ClickEventRow.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class ClickEventRow(Base):
    __tablename__ = "click_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_code: Mapped[str] = mapped_column(
        ForeignKey("links.short_code"), index=True, nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    referrer: Mapped[str] = mapped_column(String(2048), nullable=False, default="direct")
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)

    link: Mapped[LinkRow] = relationship(back_populates="click_events")
