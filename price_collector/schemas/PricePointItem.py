from __future__ import annotations

from pydantic import BaseModel, Field


class PricePointItem(BaseModel):
    timestamp: int = Field(..., description="Marca temporal en milisegundos desde epoch (UTC)")
    price: float = Field(..., description="Precio en la divisa solicitada")
