from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Double, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from price_collector.db import Base


class PricePoint(Base):
    """Punto de la serie historica de un activo en una divisa."""

    __tablename__ = "price_history"
    __table_args__ = (
        UniqueConstraint("asset_id", "vs_currency", "ts", name="uq_price_history_point"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    asset_id: Mapped[int] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vs_currency: Mapped[str] = mapped_column(String(10), nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price: Mapped[float] = mapped_column(Double, nullable=False)
    market_cap: Mapped[float | None] = mapped_column(Double, nullable=True)
    total_volume: Mapped[float | None] = mapped_column(Double, nullable=True)

    asset: Mapped["Asset"] = relationship("Asset", back_populates="history")

    def __repr__(self) -> str:
        ts = self.ts.isoformat() if self.ts else None
        return (
            f"PricePoint(asset_id={self.asset_id!r}, vs={self.vs_currency!r}, "
            f"ts={ts}, price={self.price!r})"
        )
