"""
SQLAlchemy ORM models for persistent storage.

The catalog table is populated by the sync pipeline and read by the rest of
the application. System settings hold the per-cadence update checkpoints.
"""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    One printing of a card in the local catalog.

    Rows are inserted by the weekly catalog cycle and never updated by it.
    Prices are refreshed in place by the daily price cycle.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    name_localized: Mapped[str | None] = mapped_column(String(255), nullable=True)
    set_code: Mapped[str] = mapped_column(String(16), index=True)
    set_name: Mapped[str] = mapped_column(String(255))
    rarity: Mapped[str] = mapped_column(String(32))
    colors: Mapped[list[str]] = mapped_column(JSON, default=list)
    mana_cost: Mapped[str | None] = mapped_column(String(128), nullable=True)
    mana_value: Mapped[float] = mapped_column(Float, default=0.0)
    type_line: Mapped[str] = mapped_column(String(255), default="")
    oracle_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    scryfall_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    collector_number: Mapped[str] = mapped_column(String(32), default="")
    is_online_only: Mapped[bool] = mapped_column(Boolean, default=False)
    released_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Prices are independently nullable
    price_eur: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_eur_foil: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_usd_foil: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<CardDB(uuid={self.uuid}, name={self.name}, set={self.set_code})>"


class SystemSettingDB(Base):
    """
    Generic key/value setting.

    Used for the cadence checkpoints ("last_card_update", "last_price_update"),
    stored as ISO-8601 timestamps.
    """

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<SystemSettingDB(key={self.key}, value={self.value})>"
