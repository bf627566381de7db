from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from ..config import get_settings
from .errors import RateLimited

logger = logging.getLogger(__name__)


def _get_session() -> requests.Session:
    """Crea una sesión HTTP reutilizable."""
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    api_key = get_settings().coingecko_api_key
    if api_key:
        session.headers["x-cg-demo-api-key"] = api_key
    return session


def _retry_after(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _get_json(path: str, params: Dict[str, Any]) -> Any:
    """GET contra CoinGecko. Un 429 se traduce en ``RateLimited``; el resto de errores HTTP se propagan."""
    settings = get_settings()
    url = f"{settings.coingecko_api_base}{path}"
    session = _get_session()
    try:
        response = session.get(url, params=params, timeout=settings.external_timeout)
        if response.status_code == 429:
            retry_after = _retry_after(response)
            raise RateLimited(f"CoinGecko devolvio 429 para {path}", retry_after=retry_after)
        response.raise_for_status()
        return response.json()
    finally:
        session.close()


def fetch_top_markets(
    vs_currency: str = "usd",
    page: int = 1,
    per_page: int = 100,
    order: str = "market_cap_desc",
) -> List[Dict[str, Any]]:
    """Obtiene el snapshot de mercado (top N por capitalizacion) tal y como lo entrega CoinGecko.

    Cada elemento conserva los nombres de campo del proveedor (``id``, ``symbol``,
    ``name``, ``current_price``, ``market_cap``, ``total_volume``,
    ``price_change_24h``, ``image``, ``market_cap_rank``). Una respuesta que no es
    una lista se trata como snapshot vacio.
    """
    params = {
        "vs_currency": vs_currency,
        "order": order,
        "per_page": per_page,
        "page": page,
        "sparkline": "false",
    }
    data = _get_json("/coins/markets", params)
    if not isinstance(data, list):
        logger.warning("Respuesta inesperada de /coins/markets (%s), se ignora.", type(data).__name__)
        return []
    return data


def fetch_market_chart(coin_id: str, vs_currency: str = "usd", days: int = 7) -> Dict[str, Any]:
    """Descarga la serie ``market_chart`` de una moneda.

    Devuelve un diccionario con ``prices``, ``market_caps`` y ``total_volumes``,
    cada una como lista de pares ``[timestamp_ms, valor]``.
    """
    params: Dict[str, Any] = {"vs_currency": vs_currency, "days": days}
    data = _get_json(f"/coins/{coin_id}/market_chart", params)
    if not isinstance(data, dict):
        return {"prices": [], "market_caps": [], "total_volumes": []}
    return {
        "prices": data.get("prices") or [],
        "market_caps": data.get("market_caps") or [],
        "total_volumes": data.get("total_volumes") or [],
    }


def ping() -> str:
    """Estado del proveedor para el endpoint de salud."""
    settings = get_settings()
    try:
        resp = requests.get(f"{settings.coingecko_api_base}/ping", timeout=settings.external_timeout)
        return "online" if resp.ok else f"error: {resp.status_code}"
    except requests.RequestException as exc:
        return f"error: {exc.__class__.__name__}"
