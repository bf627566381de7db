"""Reexporta funciones de la capa de servicios.

Las rutas y el arranque de la aplicacion importan desde ``price_collector.services``;
cada funcion vive en su modulo (catalogo, historico, sincronizacion, bootstrap,
alertas y scheduler) y aqui solo se vuelve a exportar.
"""

from .errors import (
    CollectorError,
    MalformedEntry,
    RateLimited,
    SchedulerBusy,
    StageResult,
    StageStatus,
    UnknownAsset,
    UnresolvableRecipient,
)
from .external import fetch_market_chart, fetch_top_markets
from .catalog import current_price, find_by_external_id, top_n_by_rank, upsert_from_snapshot
from .history import (
    count_distinct_assets_covered,
    get_recent_series,
    has_any_point,
    query_series,
    upsert_point,
)
from .sync import sync_market_data
from .backfill import backfill_missing, fill_last_days
from .notifications import LogNotifier, Notifier, SmtpNotifier, get_notifier
from .alerts import delete_alert, evaluate_alerts, list_alerts, upsert_alert
from .scheduler import (
    CollectorScheduler,
    SchedulerState,
    get_scheduler,
    start_background_sync,
    stop_background_sync,
)

__all__ = [
    "CollectorError",
    "MalformedEntry",
    "RateLimited",
    "SchedulerBusy",
    "StageResult",
    "StageStatus",
    "UnknownAsset",
    "UnresolvableRecipient",
    "fetch_market_chart",
    "fetch_top_markets",
    "current_price",
    "find_by_external_id",
    "top_n_by_rank",
    "upsert_from_snapshot",
    "count_distinct_assets_covered",
    "get_recent_series",
    "has_any_point",
    "query_series",
    "upsert_point",
    "sync_market_data",
    "backfill_missing",
    "fill_last_days",
    "LogNotifier",
    "Notifier",
    "SmtpNotifier",
    "get_notifier",
    "delete_alert",
    "evaluate_alerts",
    "list_alerts",
    "upsert_alert",
    "CollectorScheduler",
    "SchedulerState",
    "get_scheduler",
    "start_background_sync",
    "stop_background_sync",
]
