from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Double, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from price_collector.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceAlert(Base):
    """Alerta de umbral de precio de un usuario sobre un activo.

    ``last_triggered_high_at`` y ``last_triggered_low_at`` actuan como cerrojos:
    mientras esten informados la direccion correspondiente no vuelve a notificar.
    Solo una edicion de la alerta los limpia.
    """

    __tablename__ = "price_alerts"
    __table_args__ = (UniqueConstraint("user_id", "asset_id", name="uq_price_alerts_user_asset"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    asset_id: Mapped[int] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
    )
    threshold_high: Mapped[float | None] = mapped_column(Double, nullable=True)
    threshold_low: Mapped[float | None] = mapped_column(Double, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_triggered_high_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_triggered_low_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    asset: Mapped["Asset"] = relationship("Asset")

    def __repr__(self) -> str:
        return (
            f"PriceAlert(id={self.id!r}, user_id={self.user_id!r}, asset_id={self.asset_id!r}, "
            f"high={self.threshold_high!r}, low={self.threshold_low!r})"
        )
