from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class AlertRequest(BaseModel):
    external_id: str = Field(..., min_length=1, description="Moneda vigilada (CoinGecko ID)")
    threshold_high: Optional[float] = Field(None, description="Notificar cuando el precio sea >= a este valor")
    threshold_low: Optional[float] = Field(None, description="Notificar cuando el precio sea <= a este valor")
    active: Optional[bool] = Field(None, description="Por defecto la alerta queda activa")

    @model_validator(mode="after")
    def _require_threshold(self) -> "AlertRequest":
        if self.threshold_high is None and self.threshold_low is None:
            raise ValueError("Hay que indicar al menos un umbral (alto o bajo)")
        return self


class AlertItem(BaseModel):
    external_id: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    threshold_high: Optional[float] = None
    threshold_low: Optional[float] = None
    active: bool = True
    last_triggered_high_at: Optional[datetime] = None
    last_triggered_low_at: Optional[datetime] = None
