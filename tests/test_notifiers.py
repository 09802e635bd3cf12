"""
Tests for proposal mail formatting and delivery.
"""

import smtplib

import pytest

from slotpicker.adapters import notifiers
from slotpicker.adapters.notifiers import (
    LoggingNotifier,
    SmtpNotifier,
    build_acknowledgement_text,
    build_notification_text,
    format_suggestion_lines,
)
from slotpicker.config import SmtpConfig
from slotpicker.domain.exceptions import NotificationError
from slotpicker.services.proposals import ProposalRecord, SlotSuggestion


@pytest.fixture
def record():
    return ProposalRecord(
        id="1f0c",
        submitted_at="2026-10-18T20:15:00Z",
        name="Max",
        email="max@example.com",
        note="",
        slot_suggestions=[
            SlotSuggestion(start="2026-10-19T08:00:00Z", end="2026-10-19T09:30:00Z"),
            SlotSuggestion(start="2026-10-20T12:00:00Z", end="2026-10-20T12:30:00Z"),
        ],
    )


@pytest.fixture
def smtp_config():
    return SmtpConfig(
        host="smtp.example.com",
        port=587,
        user="mailer",
        password="secret",
        mail_from="termine@example.com",
    )


class FakeSMTP:
    """Records what an smtplib client would have sent."""

    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture(autouse=True)
def reset_fake_smtp():
    FakeSMTP.instances = []


class TestFormatting:
    """Tests for the German mail bodies."""

    def test_suggestion_lines_in_local_time(self, record):
        lines = format_suggestion_lines(record, "Europe/Berlin")

        assert lines.splitlines() == [
            "1. Montag, 19.10.2026 10:00 – 11:30",
            "2. Dienstag, 20.10.2026 14:00 – 14:30",
        ]

    def test_notification_text(self, record):
        text = build_notification_text(record, "Europe/Berlin")

        assert "ID: 1f0c" in text
        assert "Eingegangen: 18.10.2026 22:15 (Europe/Berlin)" in text
        assert "Notiz: (keine)" in text

    def test_acknowledgement_text(self, record):
        text = build_acknowledgement_text(record, "Europe/Berlin")

        assert text.startswith("Hallo Max,")
        assert "1. Montag, 19.10.2026 10:00 – 11:30" in text


class TestSmtpNotifier:
    """Tests for SMTP delivery."""

    def test_notification_uses_starttls(self, monkeypatch, record, smtp_config):
        monkeypatch.setattr(notifiers.smtplib, "SMTP", FakeSMTP)
        notifier = SmtpNotifier(smtp_config, "owner@example.com", "Europe/Berlin")

        notifier.send_notification(record)

        client = FakeSMTP.instances[0]
        message = client.messages[0]
        assert client.started_tls
        assert client.logged_in == ("mailer", "secret")
        assert message["To"] == "owner@example.com"
        assert message["Reply-To"] == "max@example.com"
        assert "Max" in message["Subject"]

    def test_acknowledgement_goes_to_guest(self, monkeypatch, record, smtp_config):
        monkeypatch.setattr(notifiers.smtplib, "SMTP", FakeSMTP)
        notifier = SmtpNotifier(smtp_config, "owner@example.com", "Europe/Berlin")

        notifier.send_acknowledgement(record)

        assert FakeSMTP.instances[0].messages[0]["To"] == "max@example.com"

    def test_implicit_tls_on_port_465(self, monkeypatch, record, smtp_config):
        monkeypatch.setattr(notifiers.smtplib, "SMTP_SSL", FakeSMTP)
        notifier = SmtpNotifier(smtp_config.model_copy(update={"port": 465}), "owner@example.com", "Europe/Berlin")

        notifier.send_notification(record)

        assert FakeSMTP.instances[0].port == 465
        assert not FakeSMTP.instances[0].started_tls

    def test_unconfigured_smtp(self, record):
        notifier = SmtpNotifier(SmtpConfig(), "owner@example.com", "Europe/Berlin")

        with pytest.raises(NotificationError, match="not configured"):
            notifier.send_notification(record)

    def test_missing_recipient(self, record, smtp_config):
        notifier = SmtpNotifier(smtp_config, "", "Europe/Berlin")

        with pytest.raises(NotificationError, match="notify_to"):
            notifier.send_notification(record)

    def test_smtp_failure_is_wrapped(self, monkeypatch, record, smtp_config):
        class BrokenSMTP(FakeSMTP):
            def login(self, user, password):
                raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

        monkeypatch.setattr(notifiers.smtplib, "SMTP", BrokenSMTP)
        notifier = SmtpNotifier(smtp_config, "owner@example.com", "Europe/Berlin")

        with pytest.raises(NotificationError, match="owner@example.com"):
            notifier.send_notification(record)


def test_logging_notifier_sends_nothing(record, caplog):
    notifier = LoggingNotifier("Europe/Berlin")

    with caplog.at_level("INFO"):
        notifier.send_notification(record)
        notifier.send_acknowledgement(record)

    assert "1f0c" in caplog.text
