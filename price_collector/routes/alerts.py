from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Path, Response, status

from ..db import session_scope
from ..schemas import AlertItem, AlertRequest
from ..services import UnknownAsset, delete_alert, list_alerts, upsert_alert
from ..services.alerts import alert_to_dict

# Estas rutas no aplican logica de permisos; se asume que el API Gateway
# solo deja pasar al propio usuario sobre su ``user_id``.
router = APIRouter(prefix="/users/{user_id}/alerts")


@router.get("", response_model=List[AlertItem])
def get_alerts(user_id: int = Path(..., ge=1)) -> List[AlertItem]:
    with session_scope() as session:
        return [AlertItem(**alert_to_dict(alert)) for alert in list_alerts(session, user_id)]


@router.put("", response_model=AlertItem)
@router.post("", response_model=AlertItem)
def put_alert(payload: AlertRequest, user_id: int = Path(..., ge=1)) -> AlertItem:
    try:
        with session_scope() as session:
            alert = upsert_alert(
                session,
                user_id=user_id,
                external_id=payload.external_id,
                threshold_high=payload.threshold_high,
                threshold_low=payload.threshold_low,
                active=payload.active,
            )
            return AlertItem(**alert_to_dict(alert))
    except UnknownAsset as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/{external_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_alert(user_id: int = Path(..., ge=1), external_id: str = Path(...)) -> Response:
    try:
        with session_scope() as session:
            deleted = delete_alert(session, user_id, external_id)
    except UnknownAsset as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="No existe alerta para esa moneda")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
