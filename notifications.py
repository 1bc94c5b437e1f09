"""E-mail delivery for finished dossiers.

This module is the delivery collaborator: it renders a dossier into an
HTML e-mail with a plain-text alternative and sends it over SMTP.

Message Layout:
    Header: Dossier title and the Dossier brand
    Meta: Generated time, article count, style/language, special instructions
    Executive Summary: The synthesized HTML, reduced to a small tag allow-list
    Articles: Title link, source domain, published date, description

Transport:
    Port 465: Implicit TLS (SMTP_SSL)
    Other ports: Plain connection, upgraded with STARTTLS when offered
    Login happens only when SMTP_USERNAME is set

smtplib is blocking, so every exchange runs in a worker thread via
``asyncio.to_thread``. Any failure surfaces as ``DeliveryError``.
"""

import asyncio
import logging
import re
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from bs4 import BeautifulSoup
from jinja2 import Environment, select_autoescape
from markupsafe import Markup

from config import Config
from errors import DeliveryError
from models import Configuration, Item

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30
IMPLICIT_TLS_PORT = 465

# Markup the synthesized summary may keep in the HTML body
ALLOWED_TAGS = {"a", "p", "br", "strong", "em", "b", "i", "ul", "ol", "li", "h3", "h4"}
LINK_SCHEMES = ("http://", "https://", "mailto:")

_BLANK_RUN = re.compile(r"\n{3,}")

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Dossier - {{ title }}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px;">
  <div style="border-bottom: 2px solid #2c3e50; padding-bottom: 10px; margin-bottom: 20px;">
    <h1 style="color: #2c3e50; margin: 0;">{{ title }}</h1>
    <div style="color: #7f8c8d;">Dossier</div>
  </div>
  <div style="background: #f8f9fa; padding: 10px; border-radius: 4px; font-size: 14px; color: #555;">
    <strong>Generated:</strong> {{ generated }} |
    <strong>Articles:</strong> {{ items|length }} |
    <strong>Style:</strong> {{ style }} tone{% if language %}, {{ language }}{% endif %}
    {% if special_instructions %}<br><strong>Special Instructions:</strong> {{ special_instructions }}{% endif %}
  </div>
  <h2 style="color: #2c3e50;">Executive Summary</h2>
  <div style="margin-bottom: 30px;">{{ summary|summary_html }}</div>
  <h2 style="color: #2c3e50;">Articles</h2>
  {% for item in items %}
  <div style="margin-bottom: 20px; padding-bottom: 15px; border-bottom: 1px solid #eee;">
    <h3 style="margin: 0 0 5px 0;"><a href="{{ item.link }}" style="color: #2980b9; text-decoration: none;">{{ item.title }}</a></h3>
    <div style="font-size: 12px; color: #7f8c8d;">
      {% if item.source_domain %}Source: {{ item.source_domain }} | {% endif %}Published: {{ item.published|pubdate }}
    </div>
    {% if item.description %}<p style="margin: 5px 0 0 0;">{{ item.description }}</p>{% endif %}
  </div>
  {% endfor %}
  <div style="margin-top: 30px; font-size: 12px; color: #95a5a6; text-align: center;">
    This dossier was automatically generated by Dossier
  </div>
</body>
</html>
"""

TEXT_TEMPLATE = """{{ title }}
{{ "=" * (title|length) }}

Generated: {{ generated }}
Articles: {{ items|length }}
Style: {{ style }} tone{% if language %}, {{ language }}{% endif %}
{% if special_instructions %}Special Instructions: {{ special_instructions }}
{% endif %}
EXECUTIVE SUMMARY
-----------------

{{ summary|summary_text }}

ARTICLES
--------
{% for item in items %}
{{ loop.index }}. {{ item.title }}
   {% if item.source_domain %}Source: {{ item.source_domain }} | {% endif %}Published: {{ item.published|pubdate }}
   {{ item.link }}
{% endfor %}
--
This dossier was automatically generated by Dossier
"""


def sanitize_summary(value: str) -> str:
    """Reduce synthesized HTML to the tags an e-mail body may carry.

    Script and style blocks are dropped with their content. Other tags
    outside ``ALLOWED_TAGS`` are unwrapped, keeping their text. Links
    keep only an http(s) or mailto ``href``.
    """
    soup = BeautifulSoup(value, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        href = tag.get("href", "") if tag.name == "a" else ""
        tag.attrs = {}
        if href.strip().lower().startswith(LINK_SCHEMES):
            tag["href"] = href.strip()

    return str(soup)


def _summary_html(value: str) -> Markup:
    """Sanitized summary with newlines rendered as <br> tags."""
    return Markup("<br>\n".join(sanitize_summary(value).splitlines()))


def _summary_text(value: str) -> str:
    """Plain-text rendition of the summary; links become 'text (url)'."""
    soup = BeautifulSoup(sanitize_summary(value), "html.parser")
    for link in soup.find_all("a"):
        href = link.get("href")
        label = link.get_text()
        link.replace_with(f"{label} ({href})" if href and href != label else label)
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(["p", "li", "h3", "h4"]):
        block.insert_after("\n\n")

    lines = [line.strip() for line in soup.get_text().splitlines()]
    return _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()


def _pubdate(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _environment(autoescape: bool) -> Environment:
    env = Environment(autoescape=select_autoescape(default_for_string=autoescape, default=autoescape))
    env.filters["summary_html"] = _summary_html
    env.filters["summary_text"] = _summary_text
    env.filters["pubdate"] = _pubdate
    return env


_html_template = _environment(autoescape=True).from_string(HTML_TEMPLATE)
_text_template = _environment(autoescape=False).from_string(TEXT_TEMPLATE)


def build_subject(config: Configuration) -> str:
    return f"Dossier - {config.title}"


def render_email(
    config: Configuration,
    summary: str,
    items: list[Item],
    generated_at: datetime | None = None,
) -> tuple[str, str]:
    """Render the HTML and plain-text bodies of a dossier e-mail.

    Args:
        config: Configuration the dossier belongs to
        summary: Synthesized dossier text
        items: Items the dossier was written from
        generated_at: Generation instant (defaults to now, UTC)

    Returns:
        Tuple of (html, text)
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    context = {
        "title": config.title or f"Dossier {config.id}",
        "generated": f"{generated_at:%A, %B} {generated_at.day}, {generated_at:%Y at %I:%M %p %Z}".strip(),
        "style": config.style,
        "language": config.language,
        "special_instructions": config.special_instructions,
        "summary": summary,
        "items": items,
    }
    return _html_template.render(**context), _text_template.render(**context)


class SmtpSender:
    """Sends dossiers by e-mail.

    Example:
        >>> sender = SmtpSender(config)
        >>> await sender.send(dossier_config, result.text, result.items)
    """

    def __init__(self, config: Config):
        """Initialize the sender.

        Args:
            config: Application configuration with SMTP settings
        """
        self.config = config

    def _build_message(self, config: Configuration, text: str, items: list[Item]) -> MIMEMultipart:
        html_body, plain_body = render_email(config, text, items)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = build_subject(config)
        msg["From"] = formataddr((self.config.smtp_from_name, self.config.smtp_from_email))
        msg["To"] = config.email

        # Plain first; clients prefer the last alternative they can render
        msg.attach(MIMEText(plain_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        """Open an authenticated SMTP connection."""
        host, port = self.config.smtp_host, self.config.smtp_port

        if port == IMPLICIT_TLS_PORT:
            server: smtplib.SMTP = smtplib.SMTP_SSL(host, port, timeout=SMTP_TIMEOUT)
        else:
            server = smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT)
        try:
            server.ehlo()
            if port != IMPLICIT_TLS_PORT and server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if self.config.smtp_username:
                server.login(self.config.smtp_username, self.config.smtp_password)
        except BaseException:
            server.close()
            raise
        return server

    def _send_sync(self, msg: MIMEMultipart, recipient: str) -> None:
        with self._connect() as server:
            server.sendmail(self.config.smtp_from_email, [recipient], msg.as_string())

    async def send(self, config: Configuration, text: str, items: list[Item]) -> None:
        """Send one dossier to the configuration's recipient.

        Raises:
            DeliveryError: If the message cannot be sent
        """
        if not config.email:
            raise DeliveryError(f"Configuration {config.id} has no recipient address")

        msg = self._build_message(config, text, items)
        try:
            await asyncio.to_thread(self._send_sync, msg, config.email)
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError(f"SMTP authentication failed for {self.config.smtp_username}: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP send to {config.email} failed: {e}") from e

        logger.info(
            "Dossier sent | config=%s to=%s items=%d chars=%d",
            config.id, config.email, len(items), len(text),
        )

    def _check_sync(self) -> None:
        with self._connect() as server:
            server.noop()

    async def test_connection(self) -> bool:
        """Check that the SMTP server is reachable and accepts our login."""
        try:
            await asyncio.to_thread(self._check_sync)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP check failed | host=%s port=%d error=%s", self.config.smtp_host, self.config.smtp_port, e)
            return False
        logger.info("SMTP check passed | host=%s port=%d", self.config.smtp_host, self.config.smtp_port)
        return True
