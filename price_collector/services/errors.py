from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CollectorError(Exception):
    """Base de los errores propios del colector."""


class RateLimited(CollectorError):
    """El proveedor respondio 429: hay que abortar el lote y reintentar en el siguiente tick."""

    def __init__(self, message: str = "Rate limit del proveedor", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class MalformedEntry(CollectorError):
    """Una entrada del snapshot o de la serie no tiene los datos minimos."""


class UnknownAsset(CollectorError, LookupError):
    """Se referencio un id externo que no existe en el catalogo."""

    def __init__(self, external_id: str) -> None:
        super().__init__(f"Activo desconocido: external_id={external_id}")
        self.external_id = external_id


class UnresolvableRecipient(CollectorError):
    """El propietario de la alerta no tiene direccion de contacto."""


class SchedulerBusy(CollectorError):
    """Hay un tick (u otra escritura exclusiva) en curso."""


class StageStatus(str, enum.Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    """Resultado tipado de una etapa del tick."""

    stage: str
    status: StageStatus
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is StageStatus.OK


def run_stage(stage: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> StageResult:
    """Ejecuta una etapa y convierte su resultado o excepcion en un ``StageResult``."""
    try:
        value = func(*args, **kwargs)
    except RateLimited as exc:
        logger.warning("Etapa %s interrumpida por rate limit: %s", stage, exc)
        return StageResult(stage, StageStatus.RATE_LIMITED, error=exc)
    except Exception as exc:
        logger.exception("Etapa %s fallida: %s", stage, exc)
        return StageResult(stage, StageStatus.FAILED, error=exc)
    return StageResult(stage, StageStatus.OK, value=value)
