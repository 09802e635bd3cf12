"""
Proposal mails: owner notification and guest acknowledgement.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import List

import pendulum

from ..config import SmtpConfig
from ..domain.exceptions import NotificationError
from ..domain.models import WEEKDAY_NAMES
from ..services.proposals import ProposalRecord

logger = logging.getLogger(__name__)


def format_suggestion_lines(record: ProposalRecord, timezone: str) -> str:
    """
    Format the proposed intervals as a numbered list in ``timezone``.

    Format: 1. Montag, 25.11.2024 09:00 – 10:30
    """
    lines: List[str] = []

    for idx, suggestion in enumerate(record.slot_suggestions, 1):
        local = suggestion.to_time_range().in_timezone(timezone)
        weekday = WEEKDAY_NAMES[local.start.day_of_week]
        lines.append(
            f"{idx}. {weekday}, {local.start.format('DD.MM.YYYY HH:mm')} – {local.end.format('HH:mm')}"
        )

    return "\n".join(lines)


def format_submitted_at(record: ProposalRecord, timezone: str) -> str:
    return pendulum.parse(record.submitted_at).in_timezone(timezone).format("DD.MM.YYYY HH:mm")


def build_notification_text(record: ProposalRecord, timezone: str) -> str:
    return "\n".join([
        "Ein neuer Terminvorschlag ist eingegangen.",
        "",
        f"ID: {record.id}",
        f"Eingegangen: {format_submitted_at(record, timezone)} ({timezone})",
        f"Name: {record.name}",
        f"E-Mail: {record.email}",
        f"Notiz: {record.note or '(keine)'}",
        "",
        "Vorgeschlagene Zeiten:",
        format_suggestion_lines(record, timezone),
    ])


def build_acknowledgement_text(record: ProposalRecord, timezone: str) -> str:
    return "\n".join([
        f"Hallo {record.name},",
        "",
        "vielen Dank für Ihre Terminvorschläge.",
        "Wir haben folgende Zeiten erhalten:",
        "",
        format_suggestion_lines(record, timezone),
        "",
        "Wir melden uns nach Prüfung mit einer Bestätigung.",
    ])


class SmtpNotifier:
    """
    Sends proposal mails via SMTP.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS.
    """

    def __init__(self, smtp: SmtpConfig, notify_to: str, timezone: str):
        self.smtp = smtp
        self.notify_to = notify_to
        self.timezone = timezone

    def send_notification(self, record: ProposalRecord) -> None:
        if not self.notify_to:
            raise NotificationError("notify_to is not configured")

        self._send(
            to=self.notify_to,
            subject=f"[Terminvorschlag] Neue Vorschläge von {record.name}",
            body=build_notification_text(record, self.timezone),
            reply_to=record.email,
        )

    def send_acknowledgement(self, record: ProposalRecord) -> None:
        self._send(
            to=record.email,
            subject="Ihre Terminvorschläge sind eingegangen",
            body=build_acknowledgement_text(record, self.timezone),
        )

    def _send(self, *, to: str, subject: str, body: str, reply_to: str | None = None) -> None:
        if not self.smtp.is_configured():
            raise NotificationError("SMTP is not configured")

        message = EmailMessage()
        message["From"] = self.smtp.sender()
        message["To"] = to
        message["Subject"] = subject
        if reply_to:
            message["Reply-To"] = reply_to
        message.set_content(body)

        try:
            if self.smtp.port == 465:
                with smtplib.SMTP_SSL(self.smtp.host, self.smtp.port, timeout=30) as server:
                    server.login(self.smtp.user, self.smtp.password)
                    server.send_message(message)
            else:
                with smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=30) as server:
                    server.starttls()
                    server.login(self.smtp.user, self.smtp.password)
                    server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Could not send mail to {to}: {exc}") from exc

        logger.info("Sent '%s' to %s", subject, to)


class LoggingNotifier:
    """Notifier that only logs; used when mail delivery is switched off."""

    def __init__(self, timezone: str):
        self.timezone = timezone

    def send_notification(self, record: ProposalRecord) -> None:
        logger.info("Mail disabled, notification for proposal %s:\n%s",
                    record.id, build_notification_text(record, self.timezone))

    def send_acknowledgement(self, record: ProposalRecord) -> None:
        logger.info("Mail disabled, acknowledgement to %s skipped", record.email)
