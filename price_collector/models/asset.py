from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Double, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from price_collector.db import Base


class Asset(Base):
    """Activo del catalogo, identificado por su id externo de CoinGecko."""

    __tablename__ = "assets"
    __table_args__ = (UniqueConstraint("external_id", name="uq_assets_external_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    external_id: Mapped[str] = mapped_column(String(120), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(40), nullable=True)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    current_price: Mapped[float | None] = mapped_column(Double, nullable=True)
    market_cap: Mapped[float | None] = mapped_column(Double, nullable=True)
    total_volume: Mapped[float | None] = mapped_column(Double, nullable=True)
    price_change_24h: Mapped[float | None] = mapped_column(Double, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    market_cap_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    history: Mapped[list["PricePoint"]] = relationship(
        "PricePoint",
        back_populates="asset",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"Asset(id={self.id!r}, external_id={self.external_id!r})"
