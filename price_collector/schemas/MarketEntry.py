from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MarketEntry(BaseModel):
    """Entrada de ``/coins/markets`` tal y como la devuelve CoinGecko."""

    id: str = Field(..., min_length=1, description="Identificador externo (CoinGecko ID)")
    symbol: Optional[str] = None
    name: Optional[str] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    price_change_24h: Optional[float] = None
    image: Optional[str] = None
    market_cap_rank: Optional[int] = None

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)
