from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from backoffice.core.config import Settings

log = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    pass


class Mailer:
    """Outbound mail. The app owns one instance and calls start/close around its lifetime."""

    def start(self) -> None:
        pass

    def close(self) -> None:
        pass

    def send(self, to: str, subject: str, html: str) -> None:
        raise NotImplementedError


class LogMailer(Mailer):
    # used when no SMTP host is configured
    def send(self, to: str, subject: str, html: str) -> None:
        log.warning("smtp not configured, mail to=%s subject=%r not sent", to, subject)
        log.info("mail body to=%s:\n%s", to, html)


class SmtpMailer(Mailer):
    def __init__(self, host: str, port: int, user: str | None, password: str | None, starttls: bool, sender: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.starttls = starttls
        self.sender = sender
        self._conn: smtplib.SMTP | None = None

    def start(self) -> None:
        try:
            self._conn = self._connect()
        except (smtplib.SMTPException, OSError):
            log.exception("smtp connect failed host=%s, will retry on first send", self.host)
            return
        log.info("smtp connected host=%s user=%s", self.host, self.user)

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.quit()
        except smtplib.SMTPException:
            log.warning("smtp quit failed host=%s", self.host)
        self._conn = None

    def _connect(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(self.host, self.port, timeout=30)
        if self.starttls:
            conn.starttls()
        if self.user and self.password:
            conn.login(self.user, self.password)
        return conn

    def send(self, to: str, subject: str, html: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        try:
            if self._conn is None:
                self._conn = self._connect()
            try:
                self._conn.send_message(msg)
            except smtplib.SMTPServerDisconnected:
                # idle connections get dropped by most servers; reconnect once
                self._conn = self._connect()
                self._conn.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(str(e)) from e
        log.info("mail sent to=%s subject=%r", to, subject)


def build_mailer(settings: Settings) -> Mailer:
    if not settings.smtp_host:
        return LogMailer()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
        sender=settings.email_from,
    )
