from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple

from sqlalchemy import exists, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..db import session_scope
from ..models import PricePoint
from .catalog import find_by_external_id
from .errors import MalformedEntry

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def as_utc(value: datetime) -> datetime:
    """Normaliza a UTC. Los valores sin zona (SQLite) se interpretan como UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def upsert_point(
    session: Session,
    asset_id: int,
    vs_currency: str,
    ts: datetime,
    price: float | None,
    market_cap: float | None = None,
    total_volume: float | None = None,
) -> None:
    """Inserta un punto o, si ya existe la clave (asset, divisa, ts), sobrescribe sus valores.

    Nunca crea duplicados: la restriccion ``uq_price_history_point`` es la que
    decide el conflicto, de modo que repetir la llamada es seguro.
    """
    if price is None:
        raise MalformedEntry(f"Punto sin precio para asset_id={asset_id} en {ts}")

    values = {
        "asset_id": asset_id,
        "vs_currency": vs_currency.lower(),
        "ts": as_utc(ts),
        "price": float(price),
        "market_cap": market_cap,
        "total_volume": total_volume,
    }

    insert_fn = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
    if insert_fn is not None:
        stmt = insert_fn(PricePoint).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["asset_id", "vs_currency", "ts"],
            set_={
                "price": stmt.excluded.price,
                "market_cap": stmt.excluded.market_cap,
                "total_volume": stmt.excluded.total_volume,
            },
        )
        session.execute(stmt)
        return

    # Dialectos sin ON CONFLICT: buscar y actualizar dentro de la misma transaccion.
    point = session.execute(
        select(PricePoint)
        .where(PricePoint.asset_id == values["asset_id"])
        .where(PricePoint.vs_currency == values["vs_currency"])
        .where(PricePoint.ts == values["ts"])
    ).scalar_one_or_none()
    if point is None:
        session.add(PricePoint(**values))
    else:
        point.price = values["price"]
        point.market_cap = market_cap
        point.total_volume = total_volume
    session.flush()


def has_any_point(session: Session, asset_id: int, vs_currency: str) -> bool:
    """True si el activo ya tiene al menos un punto de historico en la divisa."""
    stmt = select(
        exists()
        .where(PricePoint.asset_id == asset_id)
        .where(PricePoint.vs_currency == vs_currency.lower())
    )
    return bool(session.execute(stmt).scalar())


def count_distinct_assets_covered(session: Session, vs_currency: str) -> int:
    """Numero de activos distintos con al menos un punto de historico en la divisa."""
    stmt = (
        select(func.count(func.distinct(PricePoint.asset_id)))
        .where(PricePoint.vs_currency == vs_currency.lower())
    )
    return int(session.execute(stmt).scalar_one() or 0)


def query_series(
    session: Session,
    asset_id: int,
    vs_currency: str,
    from_ts: datetime,
) -> List[Tuple[datetime, float]]:
    """Serie (ts, precio) desde ``from_ts`` inclusive, en orden ascendente."""
    stmt = (
        select(PricePoint.ts, PricePoint.price)
        .where(PricePoint.asset_id == asset_id)
        .where(PricePoint.vs_currency == vs_currency.lower())
        .where(PricePoint.ts >= as_utc(from_ts))
        .order_by(PricePoint.ts.asc())
    )
    return [(as_utc(ts), float(price)) for ts, price in session.execute(stmt).all()]


def get_recent_series(external_id: str, vs_currency: str = "usd", days: int = 7) -> List[Dict[str, Any]]:
    """Serie de los ultimos ``days`` dias de una moneda, en milisegundos.

    Una moneda desconocida devuelve una lista vacia: la ausencia de historico
    no es un error para quien consulta.
    """
    since = datetime.now(timezone.utc) - timedelta(days=max(1, days))
    with session_scope() as session:
        asset = find_by_external_id(session, external_id)
        if asset is None:
            logger.info("Serie solicitada para una moneda no catalogada: %s", external_id)
            return []
        rows = query_series(session, asset.id, vs_currency, since)

    return [{"timestamp": int(ts.timestamp() * 1000), "price": price} for ts, price in rows]
