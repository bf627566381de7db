from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Query

from ..db import session_scope
from ..schemas import AssetItem
from ..services import top_n_by_rank

router = APIRouter()


@router.get("/assets", response_model=List[AssetItem])
def list_assets(
    limit: int = Query(100, ge=1, le=250, description="Numero de activos por ranking de capitalizacion"),
) -> List[AssetItem]:
    try:
        with session_scope() as session:
            return [AssetItem.model_validate(asset) for asset in top_n_by_rank(session, limit)]
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
