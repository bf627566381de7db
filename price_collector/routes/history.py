from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Path, Query

from ..schemas import PricePointItem
from ..services import get_recent_series

router = APIRouter()


@router.get("/history/{external_id}", response_model=List[PricePointItem])
def get_history(
    external_id: str = Path(..., description="Identificador de la moneda (CoinGecko ID)"),
    vs: str = Query("usd", description="Divisa de referencia"),
    days: int = Query(7, ge=1, le=365, description="Dias de historico a devolver"),
) -> List[PricePointItem]:
    try:
        return [PricePointItem(**point) for point in get_recent_series(external_id, vs_currency=vs, days=days)]
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
