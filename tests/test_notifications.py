"""Tests for e-mail rendering and SMTP delivery."""

import asyncio
import smtplib
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from errors import DeliveryError
from notifications import SmtpSender, build_subject, render_email, sanitize_summary

from conftest import make_config, make_item

GENERATED = datetime(2024, 1, 2, 15, 4, tzinfo=timezone.utc)


def smtp_mock(extensions=("starttls",)) -> MagicMock:
    server = MagicMock()
    server.__enter__.return_value = server
    server.has_extn.side_effect = lambda name: name in extensions
    return server


class TestRenderEmail:
    def test_subject(self):
        assert build_subject(make_config(title="Morning AI")) == "Dossier - Morning AI"

    def test_html_contains_meta_summary_and_items(self):
        config = make_config(style="casual", language="German", special_instructions="Focus on EU")
        items = [make_item(1, published=datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc))]
        html, text = render_email(config, "Line one\nLine two", items, generated_at=GENERATED)

        assert "Tuesday, January 2, 2024 at 03:04 PM" in html
        assert "casual tone, German" in html
        assert "Focus on EU" in html
        assert "Line one<br>\nLine two" in html
        assert 'href="https://www.example.com/story-1"' in html
        assert "Source: example.com" in html
        assert "Published: Jan 2, 2024" in html
        assert "This dossier was automatically generated by Dossier" in html

    def test_summary_links_render_as_links(self):
        summary = 'Big news from <a href="https://www.example.com/story-1">Story 1</a> today.'
        html, text = render_email(make_config(), summary, [make_item(1)], generated_at=GENERATED)

        assert 'Big news from <a href="https://www.example.com/story-1">Story 1</a> today.' in html
        assert "&lt;a" not in html
        assert "Big news from Story 1 (https://www.example.com/story-1) today." in text
        assert "<a" not in text.split("ARTICLES")[0]

    def test_summary_paragraphs_in_plain_text(self):
        _, text = render_email(make_config(), "<p>First <strong>point</strong>.</p><p>Second.</p>", [make_item(1)])
        assert "First point.\n\nSecond." in text

    def test_plain_text_alternative(self):
        items = [make_item(1), make_item(2)]
        _, text = render_email(make_config(title="Weekly"), "Summary body.", items, generated_at=GENERATED)

        assert text.startswith("Weekly\n======")
        assert "Articles: 2" in text
        assert "Summary body." in text
        assert "1. Story 1" in text
        assert "2. Story 2" in text
        assert "&lt;" not in text

    def test_no_instructions_line_when_empty(self):
        html, text = render_email(make_config(), "S.", [make_item(1)], generated_at=GENERATED)
        assert "Special Instructions" not in html
        assert "Special Instructions" not in text


class TestSanitizeSummary:
    def test_script_removed_with_content(self):
        assert sanitize_summary("Hi <script>alert(1)</script>there") == "Hi there"

    def test_unknown_tags_unwrapped(self):
        assert sanitize_summary('<div class="x"><span>kept</span></div>') == "kept"

    def test_attributes_stripped(self):
        cleaned = sanitize_summary('<a href="https://a.example.com" onclick="steal()" style="x">A</a>')
        assert cleaned == '<a href="https://a.example.com">A</a>'

    def test_unsafe_href_dropped(self):
        assert sanitize_summary('<a href="javascript:alert(1)">A</a>') == "<a>A</a>"

    def test_text_escaped(self):
        assert sanitize_summary("AT&T < Verizon") == "AT&amp;T &lt; Verizon"


class TestSmtpSender:
    def test_starttls_and_login(self, app_config):
        app_config.smtp_port = 587
        app_config.smtp_username = "user"
        app_config.smtp_password = "secret"
        server = smtp_mock()

        with patch("notifications.smtplib.SMTP", return_value=server) as smtp_cls:
            asyncio.run(SmtpSender(app_config).send(make_config(), "Summary.", [make_item(1)]))

        smtp_cls.assert_called_once_with("localhost", 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "secret")
        from_addr, to_addrs, message = server.sendmail.call_args.args
        assert from_addr == "dossier@localhost"
        assert to_addrs == ["reader@example.com"]
        assert "Subject: Dossier - Morning AI" in message

    def test_no_login_without_username(self, app_config):
        server = smtp_mock(extensions=())

        with patch("notifications.smtplib.SMTP", return_value=server):
            asyncio.run(SmtpSender(app_config).send(make_config(), "Summary.", [make_item(1)]))

        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.sendmail.assert_called_once()

    def test_implicit_tls_port(self, app_config):
        app_config.smtp_port = 465
        server = smtp_mock()

        with patch("notifications.smtplib.SMTP_SSL", return_value=server) as ssl_cls, \
                patch("notifications.smtplib.SMTP") as plain_cls:
            asyncio.run(SmtpSender(app_config).send(make_config(), "Summary.", [make_item(1)]))

        ssl_cls.assert_called_once()
        plain_cls.assert_not_called()
        server.starttls.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [
            smtplib.SMTPAuthenticationError(535, b"bad credentials"),
            smtplib.SMTPRecipientsRefused({"reader@example.com": (550, b"no such user")}),
            ConnectionRefusedError("refused"),
        ],
    )
    def test_failures_raise_delivery_error(self, app_config, error):
        app_config.smtp_username = "user"
        server = smtp_mock()
        server.login.side_effect = error

        with patch("notifications.smtplib.SMTP", return_value=server):
            with pytest.raises(DeliveryError):
                asyncio.run(SmtpSender(app_config).send(make_config(), "Summary.", [make_item(1)]))

    def test_missing_recipient(self, app_config):
        with pytest.raises(DeliveryError):
            asyncio.run(SmtpSender(app_config).send(make_config(email=""), "Summary.", [make_item(1)]))

    def test_connection_check(self, app_config):
        server = smtp_mock()
        with patch("notifications.smtplib.SMTP", return_value=server):
            assert asyncio.run(SmtpSender(app_config).test_connection()) is True
        server.noop.assert_called_once()

    def test_connection_check_failure(self, app_config):
        with patch("notifications.smtplib.SMTP", side_effect=OSError("unreachable")):
            assert asyncio.run(SmtpSender(app_config).test_connection()) is False
