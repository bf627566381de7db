"""Modelos Pydantic del colector.

``MarketEntry`` valida las entradas del snapshot de CoinGecko antes de tocar el
catalogo; el resto son los modelos de peticion y respuesta de las rutas HTTP.
"""

from .MarketEntry import MarketEntry
from .AssetItem import AssetItem
from .PricePointItem import PricePointItem
from .AlertItem import AlertItem, AlertRequest

__all__ = ["MarketEntry", "AssetItem", "PricePointItem", "AlertItem", "AlertRequest"]
