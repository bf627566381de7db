from __future__ import annotations

import asyncio
import enum
import logging
import threading
from typing import Any, Callable, List, Tuple, TypeVar

from ..config import get_settings
from ..db import session_scope
from .alerts import evaluate_alerts
from .backfill import BackfillAttempts, backfill_missing
from .catalog import count_assets
from .errors import SchedulerBusy, StageResult, StageStatus, run_stage
from .history import count_distinct_assets_covered
from .notifications import Notifier
from .sync import sync_market_data

logger = logging.getLogger(__name__)

T = TypeVar("T")

_background_task: asyncio.Task | None = None
_inflight_tick: asyncio.Future | None = None
_scheduler: "CollectorScheduler | None" = None


class SchedulerState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    STEADY = "steady"


class CollectorScheduler:
    """Maquina de estados del tick periodico del colector.

    ``UNINITIALIZED``: carga el catalogo una vez, sin escribir historico.
    ``BOOTSTRAPPING``: mientras la cobertura de historico no llegue al objetivo,
    cada tick rellena un lote pequeño y termina ahi.
    ``STEADY``: snapshot con punto "now" y revision de alertas.

    Tras el primer tick el estado se deduce en cada tick de la cobertura
    guardada en base de datos, asi que un reinicio retoma donde se quedo.
    """

    def __init__(self, vs_currency: str | None = None, notifier: Notifier | None = None) -> None:
        settings = get_settings()
        self.vs_currency = (vs_currency or settings.sync_vs_currency).lower()
        self.bootstrap_target = settings.bootstrap_target
        self.batch_size = settings.bootstrap_batch_size
        self.attempts = BackfillAttempts(settings.backfill_max_attempts)
        self.notifier = notifier
        self.state = SchedulerState.UNINITIALIZED
        self.last_results: List[StageResult] = []
        self._tick_lock = threading.Lock()

    def run_tick(self) -> bool:
        """Ejecuta un tick. Nunca lanza; devuelve False si otro tick seguia en curso."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("El tick anterior sigue en curso; se omite este tick.")
            return False
        try:
            self.last_results = []
            self._tick()
        except Exception as exc:
            logger.exception("Error en el tick del scheduler: %s", exc)
        finally:
            self._tick_lock.release()
        return True

    def run_exclusive(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Ejecuta ``func`` bajo el lock del tick.

        Las escrituras lanzadas fuera del scheduler (endpoints de administracion)
        pasan por aqui para no solaparse con un tick. Lanza ``SchedulerBusy`` si
        el lock esta ocupado.
        """
        if not self._tick_lock.acquire(blocking=False):
            raise SchedulerBusy("Hay un tick del scheduler en curso; reintentar mas tarde")
        try:
            return func(*args, **kwargs)
        finally:
            self._tick_lock.release()

    def _record(self, result: StageResult) -> StageResult:
        self.last_results.append(result)
        return result

    def _coverage(self) -> Tuple[int, int, int]:
        with session_scope() as session:
            total = count_assets(session)
            covered = count_distinct_assets_covered(session, self.vs_currency)
        # Los activos abandonados tras varios fallos no cuentan para el objetivo.
        target = max(0, min(self.bootstrap_target, total) - self.attempts.exhausted_count(self.vs_currency))
        return covered, target, total

    def _tick(self) -> None:
        if self.state is SchedulerState.UNINITIALIZED:
            loaded = self._record(
                run_stage("catalog", sync_market_data, write_now=False, vs_currency=self.vs_currency)
            )
            if not loaded.ok:
                return
            self.state = SchedulerState.BOOTSTRAPPING

        coverage = self._record(run_stage("coverage", self._coverage))
        if not coverage.ok:
            return
        covered, target, total = coverage.value

        if total == 0:
            logger.warning("Catalogo vacio: se recargara en el siguiente tick.")
            self.state = SchedulerState.UNINITIALIZED
            return

        if covered < target:
            self.state = SchedulerState.BOOTSTRAPPING
            backfill = self._record(
                run_stage("backfill", backfill_missing, self.vs_currency, self.batch_size, self.attempts)
            )
            if backfill.status is StageStatus.OK:
                after, _, _ = self._coverage()
                logger.info(
                    "Bootstrap (pendientes): +%s este tick | %s/%s con historico.",
                    backfill.value,
                    after,
                    target,
                )
            return

        if self.state is not SchedulerState.STEADY:
            logger.info("Historico completo (%s/%s): modo normal.", covered, target)
        self.state = SchedulerState.STEADY

        synced = self._record(
            run_stage("sync", sync_market_data, write_now=True, vs_currency=self.vs_currency)
        )
        if synced.status is StageStatus.RATE_LIMITED:
            logger.warning("429 en la sincronizacion; alertas pospuestas al siguiente tick.")
            return
        if synced.status is StageStatus.FAILED:
            return

        self._record(run_stage("alerts", evaluate_alerts, self.notifier))


def get_scheduler() -> CollectorScheduler:
    """Instancia unica del scheduler del proceso."""
    global _scheduler  # pylint: disable=global-statement
    if _scheduler is None:
        _scheduler = CollectorScheduler()
    return _scheduler


async def _periodic_tick_loop(scheduler: CollectorScheduler, interval: float) -> None:
    # Ritmo fijo: cada periodo lanza un tick en el executor; el lock del
    # scheduler descarta el tick si el anterior aun no ha terminado.
    global _inflight_tick  # pylint: disable=global-statement
    loop = asyncio.get_running_loop()
    next_run = loop.time()
    while True:
        _inflight_tick = loop.run_in_executor(None, scheduler.run_tick)
        next_run += interval
        await asyncio.sleep(max(0.0, next_run - loop.time()))


async def start_background_sync() -> asyncio.Task | None:
    """Inicia la tarea periodica en segundo plano si esta habilitada."""
    settings = get_settings()
    if not settings.sync_enable_scheduler or settings.sync_interval_seconds <= 0:
        logger.info("Scheduler de sincronizacion deshabilitado por configuracion.")
        return None

    global _background_task  # pylint: disable=global-statement
    if _background_task and not _background_task.done():
        return _background_task

    interval = max(5, settings.sync_interval_seconds)
    loop = asyncio.get_running_loop()
    _background_task = loop.create_task(_periodic_tick_loop(get_scheduler(), interval))
    logger.info(
        "Scheduler de sincronizacion iniciado (intervalo %s segundos, vs=%s).",
        interval,
        settings.sync_vs_currency,
    )
    return _background_task


async def stop_background_sync(task: asyncio.Task | None = None) -> None:
    """Detiene la tarea periodica y espera al tick que siga en curso."""
    global _background_task, _inflight_tick  # pylint: disable=global-statement
    active_task = task or _background_task
    if not active_task:
        return

    active_task.cancel()
    try:
        await active_task
    except asyncio.CancelledError:  # pragma: no cover - comportamiento esperado
        pass
    finally:
        _background_task = None

    pending, _inflight_tick = _inflight_tick, None
    if pending is not None and not pending.done():
        logger.info("Esperando a que termine el tick en curso...")
        await pending
    logger.info("Scheduler de sincronizacion detenido.")
