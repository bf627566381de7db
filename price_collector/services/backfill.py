from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import get_settings
from ..db import session_scope
from .catalog import find_by_external_id, top_n_by_rank
from .errors import MalformedEntry, RateLimited, UnknownAsset
from .external import fetch_market_chart
from .history import has_any_point, upsert_point

logger = logging.getLogger(__name__)

ChartPoint = Tuple[datetime, float, Optional[float], Optional[float]]


def _parse_price_pair(pair: Any) -> Tuple[datetime, float]:
    if not isinstance(pair, (list, tuple)) or len(pair) < 2 or pair[0] is None or pair[1] is None:
        raise MalformedEntry(f"Punto de serie incompleto: {pair!r}")
    try:
        ts = datetime.fromtimestamp(float(pair[0]) / 1000, tz=timezone.utc)
        price = float(pair[1])
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise MalformedEntry(f"Punto de serie ilegible: {pair!r}") from exc
    return ts, price


def _value_at(series: Sequence[Any], index: int) -> Optional[float]:
    # Las series de market cap y volumen pueden faltar o ser mas cortas que la de precios.
    if index >= len(series):
        return None
    pair = series[index]
    if not isinstance(pair, (list, tuple)) or len(pair) < 2 or pair[1] is None:
        return None
    try:
        return float(pair[1])
    except (TypeError, ValueError):
        return None


def iter_chart_points(chart: Dict[str, Any]) -> Iterator[ChartPoint]:
    """Recorre la serie de precios alineando market cap y volumen por posicion, no por timestamp."""
    prices = chart.get("prices") or []
    market_caps = chart.get("market_caps") or []
    volumes = chart.get("total_volumes") or []

    for index, pair in enumerate(prices):
        try:
            ts, price = _parse_price_pair(pair)
        except MalformedEntry as exc:
            logger.warning("Se descarta el punto %s de la serie: %s", index, exc)
            continue
        yield ts, price, _value_at(market_caps, index), _value_at(volumes, index)


def fill_last_days(external_id: str, vs_currency: str | None = None, days: int | None = None) -> int:
    """Rellena el historico de una moneda con la serie de los ultimos ``days`` dias.

    Lanza ``UnknownAsset`` si la moneda no esta en el catalogo y deja pasar
    ``RateLimited`` para que el llamante corte el lote. Todos los puntos de la
    moneda se escriben en una unica transaccion. Devuelve los puntos escritos.
    """
    settings = get_settings()
    vs = (vs_currency or settings.sync_vs_currency).lower()
    window_days = days or settings.backfill_days

    with session_scope() as session:
        asset = find_by_external_id(session, external_id)
        if asset is None:
            raise UnknownAsset(external_id)
        asset_id = asset.id

    chart = fetch_market_chart(external_id, vs_currency=vs, days=window_days)
    points: List[ChartPoint] = list(iter_chart_points(chart))
    if not points:
        return 0

    with session_scope() as session:
        for ts, price, market_cap, total_volume in points:
            upsert_point(session, asset_id, vs, ts, price, market_cap, total_volume)

    return len(points)


class BackfillAttempts:
    """Fallos de bootstrap por (activo, divisa) dentro de este proceso.

    Un activo que agota ``max_attempts`` (serie vacia o error distinto de 429)
    deja de pedirse y tampoco cuenta para el objetivo de cobertura, para que un
    solo activo roto no impida llegar a modo normal. Se olvida al reiniciar.
    """

    def __init__(self, max_attempts: int) -> None:
        self.max_attempts = max(1, max_attempts)
        self._failures: Dict[Tuple[int, str], int] = {}

    def record_failure(self, asset_id: int, vs_currency: str) -> int:
        key = (asset_id, vs_currency.lower())
        self._failures[key] = self._failures.get(key, 0) + 1
        return self._failures[key]

    def exhausted(self, asset_id: int, vs_currency: str) -> bool:
        return self._failures.get((asset_id, vs_currency.lower()), 0) >= self.max_attempts

    def exhausted_count(self, vs_currency: str) -> int:
        vs = vs_currency.lower()
        return sum(1 for (_, key_vs), count in self._failures.items() if key_vs == vs and count >= self.max_attempts)


def backfill_missing(
    vs_currency: str | None = None,
    batch_size: int | None = None,
    attempts: BackfillAttempts | None = None,
) -> int:
    """Bootstrap del historico solo para los activos que todavia no tienen ningun punto.

    Recorre el catalogo por ranking y se detiene cuando ha cubierto
    ``batch_size`` activos nuevos en esta invocacion. Entre dos descargas
    consecutivas espera ``BACKFILL_PAUSE_SECONDS`` para no disparar el rate
    limit del plan gratuito. Un 429 corta el lote (lo ya escrito se queda) y
    cualquier otro fallo solo afecta a su activo. Con ``attempts`` los fallos
    se anotan y los activos agotados se saltan sin llamar al proveedor.

    Devuelve el numero de activos cubiertos en esta invocacion.
    """
    settings = get_settings()
    vs = (vs_currency or settings.sync_vs_currency).lower()
    limit = settings.bootstrap_batch_size if batch_size is None else batch_size

    with session_scope() as session:
        candidates = [
            (asset.id, asset.external_id, asset.name)
            for asset in top_n_by_rank(session, settings.bootstrap_target)
        ]
    if not candidates:
        logger.warning("Catalogo vacio: no hay activos que bootstrapear.")
        return 0

    done = 0
    fetches = 0
    for asset_id, external_id, name in candidates:
        if done >= limit:
            break
        if attempts is not None and attempts.exhausted(asset_id, vs):
            continue

        with session_scope() as session:
            if has_any_point(session, asset_id, vs):
                continue

        if fetches:
            _pause(settings.backfill_pause_seconds)
        fetches += 1

        try:
            logger.info("Bootstrap %sd pendiente: %s (%s)", settings.backfill_days, name, external_id)
            written = fill_last_days(external_id, vs)
        except RateLimited as exc:
            logger.warning("429 de CoinGecko en %s, se retoma en el siguiente tick: %s", external_id, exc)
            break
        except Exception:
            logger.exception("Error en el bootstrap de %s (%s)", name, external_id)
            _record_failure(attempts, asset_id, external_id, vs)
            continue

        if written:
            done += 1
        else:
            logger.warning("CoinGecko devolvio una serie vacia para %s; sigue sin historico.", external_id)
            _record_failure(attempts, asset_id, external_id, vs)

    return done


def _record_failure(attempts: BackfillAttempts | None, asset_id: int, external_id: str, vs: str) -> None:
    if attempts is None:
        return
    failures = attempts.record_failure(asset_id, vs)
    if failures >= attempts.max_attempts:
        logger.warning(
            "Bootstrap de %s abandonado tras %s intentos fallidos; no cuenta para la cobertura.",
            external_id,
            failures,
        )


def _pause(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)
