from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from ..config import get_settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, to_address: str, subject: str, html_body: str) -> bool:
        ...


class LogNotifier:
    """Notificador sin transporte: deja constancia en el log y da el envio por bueno."""

    def send(self, to_address: str, subject: str, html_body: str) -> bool:
        logger.info("Notificacion para %s: %s", to_address, subject)
        return True


class SmtpNotifier:
    """Envio de correos HTML por SMTP con STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str = "alerts@localhost",
        timeout: int = 15,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def send(self, to_address: str, subject: str, html_body: str) -> bool:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to_address
        message.set_content("Este correo requiere un cliente compatible con HTML.")
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("No se pudo enviar el correo a %s (%s): %s", to_address, subject, exc)
            return False
        return True


def get_notifier() -> Notifier:
    """SMTP si hay ``MAIL_HOST`` configurado; en otro caso, solo log."""
    settings = get_settings()
    if not settings.mail_host:
        return LogNotifier()
    return SmtpNotifier(
        host=settings.mail_host,
        port=settings.mail_port,
        username=settings.mail_username,
        password=settings.mail_password,
        sender=settings.mail_from,
        timeout=settings.external_timeout,
    )
