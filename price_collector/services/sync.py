from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..config import get_settings
from ..models import Asset
from .catalog import upsert_from_snapshot
from .external import fetch_top_markets
from .history import upsert_point

logger = logging.getLogger(__name__)


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def sync_market_data(
    write_now: bool = True,
    vs_currency: str | None = None,
    per_page: int | None = None,
) -> int:
    """Descarga el snapshot top N de CoinGecko y actualiza el catalogo.

    Con ``write_now`` se añade ademas un punto de historico por activo con
    precio, todos con el mismo instante (el inicio del run truncado al minuto)
    para que no haya desfase entre monedas del mismo snapshot. Sin
    ``write_now`` solo se toca el catalogo. Un snapshot vacio no es un error.

    Devuelve el numero de activos actualizados.
    """
    settings = get_settings()
    vs = (vs_currency or settings.sync_vs_currency).lower()
    per_page = per_page or settings.sync_per_page

    batch = fetch_top_markets(vs_currency=vs, page=1, per_page=per_page)
    if not batch:
        logger.warning("Respuesta de CoinGecko vacia, no se actualiza el catalogo.")
        return 0

    run_ts = truncate_to_minute(datetime.now(timezone.utc))

    def _write_now_point(session: Session, asset: Asset) -> None:
        if asset.id is None or asset.current_price is None:
            return
        upsert_point(
            session,
            asset.id,
            vs,
            run_ts,
            asset.current_price,
            asset.market_cap,
            asset.total_volume,
        )

    touched = upsert_from_snapshot(batch, after_upsert=_write_now_point if write_now else None)

    logger.info(
        "Sincronizacion completada: %s/%s activos actualizados (%s, write_now=%s)",
        touched,
        len(batch),
        vs,
        write_now,
    )
    return touched
