from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import session_scope
from ..models import Asset
from ..schemas import MarketEntry
from .errors import MalformedEntry

logger = logging.getLogger(__name__)

AfterUpsert = Callable[[Session, Asset], None]


def parse_entry(raw: Any) -> MarketEntry:
    """Valida una entrada del snapshot. Sin ``id`` no hay identidad y la entrada se descarta."""
    if not isinstance(raw, dict):
        raise MalformedEntry(f"Entrada de snapshot no es un objeto: {raw!r}")
    try:
        return MarketEntry.model_validate(raw)
    except ValidationError as exc:
        raise MalformedEntry(f"Entrada de snapshot invalida ({raw.get('id')!r}): {exc.error_count()} errores") from exc


def find_by_external_id(session: Session, external_id: str) -> Optional[Asset]:
    return session.execute(
        select(Asset).where(Asset.external_id == external_id)
    ).scalar_one_or_none()


def upsert_asset(session: Session, entry: MarketEntry, synced_at: datetime | None = None) -> Asset:
    """Busca el activo por id externo (o lo crea) y sobrescribe todos sus campos de mercado."""
    asset = find_by_external_id(session, entry.id)
    if asset is None:
        asset = Asset(external_id=entry.id)
        session.add(asset)

    asset.symbol = entry.symbol
    asset.name = entry.name or entry.id
    asset.current_price = entry.current_price
    asset.market_cap = entry.market_cap
    asset.total_volume = entry.total_volume
    asset.price_change_24h = entry.price_change_24h
    asset.image_url = entry.image
    asset.market_cap_rank = entry.market_cap_rank
    asset.last_synced_at = synced_at or datetime.now(timezone.utc)

    session.flush()  # asegura que asset.id esta disponible
    return asset


def upsert_from_snapshot(
    entries: Iterable[Any] | None,
    after_upsert: AfterUpsert | None = None,
) -> int:
    """Actualiza el catalogo a partir de un snapshot y devuelve cuantas filas se tocaron.

    Cada entrada se guarda en su propia transaccion; ``after_upsert`` se ejecuta
    dentro de ella, de modo que lo que escriba se confirma (o se descarta) junto
    con el activo. Una entrada defectuosa se registra y se salta sin abortar el
    resto del snapshot.
    """
    touched = 0
    synced_at = datetime.now(timezone.utc)

    for raw in entries or []:
        try:
            entry = parse_entry(raw)
        except MalformedEntry as exc:
            logger.warning("Entrada descartada del snapshot: %s", exc)
            continue

        try:
            with session_scope() as session:
                asset = upsert_asset(session, entry, synced_at)
                if after_upsert is not None:
                    after_upsert(session, asset)
        except Exception:
            logger.exception("Error guardando el activo %s (%s)", entry.name, entry.id)
            continue
        touched += 1

    return touched


def top_n_by_rank(session: Session, n: int) -> List[Asset]:
    """Activos ordenados por ranking de capitalizacion ascendente; los que no tienen ranking van al final."""
    stmt = (
        select(Asset)
        .order_by(
            Asset.market_cap_rank.is_(None),
            Asset.market_cap_rank.asc(),
            Asset.id.asc(),
        )
        .limit(max(0, n))
    )
    return list(session.execute(stmt).scalars().all())


def current_price(session: Session, asset_id: int) -> Optional[float]:
    """Precio actual del activo; ``None`` significa que aun no hay dato, no un error."""
    asset = session.get(Asset, asset_id)
    if asset is None:
        return None
    return asset.current_price


def count_assets(session: Session) -> int:
    return int(session.execute(select(func.count(Asset.id))).scalar_one() or 0)
