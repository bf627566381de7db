from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ..config import get_settings
from ..services import (
    RateLimited,
    SchedulerBusy,
    UnknownAsset,
    backfill_missing,
    evaluate_alerts,
    fill_last_days,
    get_scheduler,
    sync_market_data,
)


class SyncRequest(BaseModel):
    vs_currency: Optional[str] = Field(None, description="Divisa base (por defecto la configuracion global)")
    write_now: bool = Field(True, description="Escribir tambien el punto de historico actual")
    batch_size: Optional[int] = Field(None, ge=1, le=100, description="Activos a bootstrapear en esta llamada")
    coin_id: Optional[str] = Field(None, description="Rellenar solo esta moneda (CoinGecko ID)")


class SyncResponse(BaseModel):
    processed: int
    vs_currency: str
    synced_at: datetime
    coin_id: Optional[str] = Field(None, description="Moneda rellenada, si se pidio una concreta")


router = APIRouter()


def _vs(payload: SyncRequest) -> str:
    return (payload.vs_currency or get_settings().sync_vs_currency).lower()


@router.post("/admin/sync", response_model=SyncResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_sync(payload: SyncRequest) -> SyncResponse:
    """
    Lanza manualmente la sincronizacion del catalogo desde CoinGecko.

    Este endpoint no aplica logica de permisos; se asume que el API Gateway
    valida que solo los usuarios autorizados puedan invocarlo.
    """
    vs = _vs(payload)
    try:
        processed = get_scheduler().run_exclusive(sync_market_data, write_now=payload.write_now, vs_currency=vs)
    except SchedulerBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except RateLimited as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return SyncResponse(processed=processed, vs_currency=vs, synced_at=datetime.now(timezone.utc))


@router.post("/admin/backfill", response_model=SyncResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_backfill(payload: SyncRequest) -> SyncResponse:
    """Bootstrap manual del historico: un lote de activos sin puntos, o una moneda concreta."""
    vs = _vs(payload)
    try:
        if payload.coin_id:
            processed = get_scheduler().run_exclusive(fill_last_days, payload.coin_id, vs_currency=vs)
        else:
            processed = get_scheduler().run_exclusive(backfill_missing, vs_currency=vs, batch_size=payload.batch_size)
    except SchedulerBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except UnknownAsset as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RateLimited as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return SyncResponse(
        processed=processed,
        vs_currency=vs,
        synced_at=datetime.now(timezone.utc),
        coin_id=payload.coin_id,
    )


@router.post("/admin/alerts/check", response_model=SyncResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_alert_check() -> SyncResponse:
    """Revisa las alertas activas con los precios actuales del catalogo."""
    try:
        sent = get_scheduler().run_exclusive(evaluate_alerts)
    except SchedulerBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SyncResponse(
        processed=sent,
        vs_currency=get_settings().sync_vs_currency,
        synced_at=datetime.now(timezone.utc),
    )
