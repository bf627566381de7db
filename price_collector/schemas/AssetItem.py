from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AssetItem(BaseModel):
    external_id: str = Field(..., description="Identificador unico de la moneda (CoinGecko ID)")
    symbol: Optional[str] = Field(None, description="Ticker de la moneda")
    name: Optional[str] = Field(None, description="Nombre completo de la moneda")
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    price_change_24h: Optional[float] = None
    image_url: Optional[str] = Field(None, description="URL del icono")
    market_cap_rank: Optional[int] = None
    last_synced_at: Optional[datetime] = Field(None, description="Ultima actualizacion desde el snapshot")

    model_config = ConfigDict(from_attributes=True)
