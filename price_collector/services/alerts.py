from __future__ import annotations

import enum
import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db import session_scope
from ..models import Asset, PriceAlert, User
from .catalog import find_by_external_id
from .errors import UnknownAsset, UnresolvableRecipient
from .notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)


class Direction(enum.Enum):
    HIGH = "POR ENCIMA"
    LOW = "POR DEBAJO"

    @property
    def label(self) -> str:
        return self.value

    @property
    def latch(self):
        if self is Direction.HIGH:
            return PriceAlert.last_triggered_high_at
        return PriceAlert.last_triggered_low_at


def resolve_recipient(session: Session, user_id: int) -> str:
    email = session.execute(select(User.email).where(User.id == user_id)).scalar_one_or_none()
    if not email or not email.strip():
        raise UnresolvableRecipient(f"Sin email para user_id={user_id}")
    return email.strip()


def build_notification(
    asset: Asset,
    price: float,
    threshold: float,
    direction: Direction,
    link: str,
) -> Tuple[str, str]:
    """Asunto y cuerpo HTML del aviso de umbral cruzado."""
    asset_name = asset.external_id
    subject = f"Alerta {direction.name} {asset_name}"
    body = f"""
        <div style="font-family:Arial,sans-serif;line-height:1.6">
          <h2>Alerta de precio activada</h2>
          <p><b>Activo:</b> {html.escape(asset_name)}</p>
          <p><b>Precio actual:</b> {price:.6f}</p>
          <p><b>Umbral:</b> {threshold:.6f} ({direction.label})</p>
          <p>
            <a href="{html.escape(link, quote=True)}"
               style="display:inline-block;padding:10px 14px;background:#111;color:#fff;
                      text-decoration:none;border-radius:6px">
              Abrir la aplicacion
            </a>
          </p>
          <hr/>
          <p style="color:#666;font-size:12px">Correo automatico, no responder.</p>
        </div>
        """
    return subject, body


def _deliver(notifier: Notifier, to_address: str, subject: str, body: str) -> bool:
    try:
        delivered = notifier.send(to_address, subject, body)
    except Exception:
        logger.exception("El notificador fallo enviando '%s' a %s", subject, to_address)
        return False
    if not delivered:
        logger.error("No se pudo entregar '%s' a %s", subject, to_address)
    return bool(delivered)


def _due_directions(alert: PriceAlert, price: float) -> List[Tuple[Direction, float]]:
    # Las dos direcciones son independientes: con umbral alto == bajo == precio se disparan ambas.
    due: List[Tuple[Direction, float]] = []
    if (
        alert.threshold_high is not None
        and alert.last_triggered_high_at is None
        and price >= alert.threshold_high
    ):
        due.append((Direction.HIGH, alert.threshold_high))
    if (
        alert.threshold_low is not None
        and alert.last_triggered_low_at is None
        and price <= alert.threshold_low
    ):
        due.append((Direction.LOW, alert.threshold_low))
    return due


def _claim(alert_id: int, direction: Direction, claimed_at: datetime) -> bool:
    """Fija el cerrojo de la direccion solo si seguia libre; commit antes de enviar.

    Es un compare-and-set en base de datos: de dos evaluaciones simultaneas solo
    una ve ``rowcount == 1`` y notifica.
    """
    latch = direction.latch
    with session_scope() as session:
        result = session.execute(
            update(PriceAlert)
            .where(PriceAlert.id == alert_id)
            .where(PriceAlert.active.is_(True))
            .where(latch.is_(None))
            .values({latch: claimed_at})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


def _release(alert_id: int, direction: Direction, claimed_at: datetime) -> None:
    # Solo deshace nuestro propio cerrojo; una edicion intermedia ya lo habra limpiado.
    latch = direction.latch
    with session_scope() as session:
        session.execute(
            update(PriceAlert)
            .where(PriceAlert.id == alert_id)
            .where(latch == claimed_at)
            .values({latch: None})
            .execution_options(synchronize_session=False)
        )


def _pending_messages(alert_id: int, link: str) -> Tuple[Optional[str], List[Tuple[Direction, str, str, str]]]:
    """Destinatario y mensajes de las direcciones que tocan; lectura sin escribir nada."""
    with session_scope() as session:
        alert = session.get(PriceAlert, alert_id)
        if alert is None or not alert.active:
            return None, []

        asset = alert.asset
        price = asset.current_price if asset is not None else None
        if price is None:
            return None, []

        due = _due_directions(alert, price)
        if not due:
            return None, []

        try:
            email = resolve_recipient(session, alert.user_id)
        except UnresolvableRecipient as exc:
            logger.warning("Alerta %s sin destinatario, se reintentara: %s", alert.id, exc)
            return None, []

        messages = []
        for direction, threshold in due:
            subject, body = build_notification(asset, price, threshold, direction, link)
            operator = ">=" if direction is Direction.HIGH else "<="
            summary = f"{asset.external_id} {operator} {price} (umbral {threshold})"
            messages.append((direction, subject, body, summary))
        return email, messages


def _evaluate_alert(alert_id: int, notifier: Notifier, link: str) -> int:
    email, messages = _pending_messages(alert_id, link)
    if email is None:
        return 0

    sent = 0
    for direction, subject, body, summary in messages:
        claimed_at = datetime.now(timezone.utc)
        if not _claim(alert_id, direction, claimed_at):
            logger.info("Alerta %s %s ya notificada por otra evaluacion.", alert_id, direction.name)
            continue
        if not _deliver(notifier, email, subject, body):
            _release(alert_id, direction, claimed_at)
            continue
        sent += 1
        logger.warning("Alerta %s enviada a %s: %s", direction.name, email, summary)
    return sent


def evaluate_alerts(notifier: Notifier | None = None) -> int:
    """Revisa las alertas activas contra el precio actual del catalogo.

    Cada direccion (alta/baja) notifica como mucho una vez por cruce. Antes de
    enviar se reclama su ``last_triggered_*_at`` con un UPDATE condicionado a
    que siga a ``NULL`` y se confirma la transaccion; solo quien gana el
    reclamo envia. Si el envio falla el cerrojo se libera y la alerta vuelve a
    evaluarse en el siguiente tick. Sin precio o sin destinatario no se toca
    nada.

    Devuelve el numero de notificaciones enviadas.
    """
    notifier = notifier or get_notifier()
    link = f"{get_settings().frontend_url}/alerts"

    with session_scope() as session:
        alert_ids = (
            session.execute(
                select(PriceAlert.id).where(PriceAlert.active.is_(True)).order_by(PriceAlert.id)
            )
            .scalars()
            .all()
        )

    sent = 0
    for alert_id in alert_ids:
        try:
            sent += _evaluate_alert(alert_id, notifier, link)
        except Exception:
            logger.exception("Error evaluando la alerta %s", alert_id)

    if alert_ids:
        logger.info("Alertas revisadas: %s activas, %s notificaciones enviadas.", len(alert_ids), sent)
    return sent


def upsert_alert(
    session: Session,
    user_id: int,
    external_id: str,
    threshold_high: Optional[float] = None,
    threshold_low: Optional[float] = None,
    active: Optional[bool] = None,
) -> PriceAlert:
    """Crea o modifica la alerta (usuario, activo).

    Cualquier edicion rearma la alerta: los dos ``last_triggered_*_at`` vuelven
    a ``None`` aunque solo haya cambiado uno de los umbrales.
    """
    if threshold_high is None and threshold_low is None:
        raise ValueError("Hay que indicar al menos un umbral (alto o bajo)")

    asset = find_by_external_id(session, external_id)
    if asset is None:
        raise UnknownAsset(external_id)

    alert = session.execute(
        select(PriceAlert)
        .where(PriceAlert.user_id == user_id)
        .where(PriceAlert.asset_id == asset.id)
    ).scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if alert is None:
        alert = PriceAlert(user_id=user_id, asset_id=asset.id, created_at=now)
        session.add(alert)

    alert.asset = asset
    alert.threshold_high = threshold_high
    alert.threshold_low = threshold_low
    alert.active = True if active is None else active
    alert.last_triggered_high_at = None
    alert.last_triggered_low_at = None
    alert.updated_at = now

    session.flush()
    return alert


def delete_alert(session: Session, user_id: int, external_id: str) -> bool:
    asset = find_by_external_id(session, external_id)
    if asset is None:
        raise UnknownAsset(external_id)
    result = session.execute(
        delete(PriceAlert)
        .where(PriceAlert.user_id == user_id)
        .where(PriceAlert.asset_id == asset.id)
    )
    return (result.rowcount or 0) > 0


def list_alerts(session: Session, user_id: int) -> List[PriceAlert]:
    return list(
        session.execute(
            select(PriceAlert).where(PriceAlert.user_id == user_id).order_by(PriceAlert.id)
        )
        .scalars()
        .all()
    )


def alert_to_dict(alert: PriceAlert) -> Dict[str, Any]:
    asset = alert.asset
    return {
        "external_id": asset.external_id if asset is not None else "",
        "symbol": asset.symbol if asset is not None else None,
        "name": asset.name if asset is not None else None,
        "threshold_high": alert.threshold_high,
        "threshold_low": alert.threshold_low,
        "active": alert.active,
        "last_triggered_high_at": alert.last_triggered_high_at,
        "last_triggered_low_at": alert.last_triggered_low_at,
    }
