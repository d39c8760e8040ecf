import html
import logging
import os
import re
import smtplib
import ssl
from dataclasses import dataclass, field
from datetime import date
from email.message import EmailMessage
from typing import List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from ..errors import ConfigError, DeliveryError
from ..models.participants import MAX_QUICK_PICKS, QuickPick
from .draw import Assignment

logger = logging.getLogger(__name__)

NO_WISHLIST = "No wish list provided yet"
NO_QUICK_PICKS = "Surprise them—no quick picks added!"
BLANK_LINE_RE = re.compile(r"\r?\n\r?\n")
NEWLINE_RE = re.compile(r"\r?\n")


@dataclass
class SMTPSettings:
    host: str
    port: int
    username: str
    password: str
    sender: str
    sender_name: str | None = None


@dataclass
class DeliveryReport:
    sent: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def load_smtp_settings_from_env() -> SMTPSettings:
    load_dotenv()  # loads .env into process env; no-op if already loaded

    host = os.getenv("SMTP_HOST", "")
    username = os.getenv("SMTP_USERNAME", "")
    password = os.getenv("SMTP_PASSWORD", "")
    sender = os.getenv("SMTP_FROM", "")
    sender_name = os.getenv("SMTP_FROM_NAME", "") or None

    missing = [k for k, v in [
        ("SMTP_HOST", host), ("SMTP_USERNAME", username),
        ("SMTP_PASSWORD", password), ("SMTP_FROM", sender)
    ] if not v]
    if missing:
        raise ConfigError(f"Missing .env variables: {', '.join(missing)}")

    raw_port = os.getenv("SMTP_PORT", "465")  # default SMTPS
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigError(f"SMTP_PORT must be an integer, got {raw_port!r}") from None

    return SMTPSettings(
        host=host, port=port, username=username, password=password,
        sender=sender, sender_name=sender_name
    )


def _format_sender(settings: SMTPSettings) -> str:
    return f"{settings.sender_name} <{settings.sender}>" if settings.sender_name else settings.sender


def format_wishlist(wishlist: Optional[str]) -> Tuple[str, str]:
    trimmed = (wishlist or "").strip()
    if not trimmed:
        return NO_WISHLIST, f"<em>{NO_WISHLIST}</em>"
    text = BLANK_LINE_RE.sub("\n\n", trimmed)
    markup = NEWLINE_RE.sub("<br>", BLANK_LINE_RE.sub("<br><br>", html.escape(trimmed)))
    return text, markup


def format_quick_picks(quick_picks: Sequence[QuickPick]) -> Tuple[str, str]:
    picks = [q for q in (quick_picks or ()) if q and (q.title or q.link)][:MAX_QUICK_PICKS]
    if not picks:
        return NO_QUICK_PICKS, f"<em>{NO_QUICK_PICKS}</em>"

    lines = []
    items = []
    for index, pick in enumerate(picks, start=1):
        title = pick.title or f"Pick {index}"
        link = (pick.link or "").strip()
        lines.append(f"• {title} — {link}" if link else f"• {title}")
        if link:
            items.append(f'<li><a href="{html.escape(link)}" target="_blank" rel="noopener">{html.escape(title)}</a></li>')
        else:
            items.append(f"<li>{html.escape(title)}</li>")
    return "\n".join(lines), f"<ul>{''.join(items)}</ul>"


def days_until_christmas(today: Optional[date] = None) -> int:
    today = today or date.today()
    christmas = date(today.year, 12, 25)
    if today > christmas:
        christmas = date(today.year + 1, 12, 25)
    return (christmas - today).days


def countdown_line(days: int) -> str:
    if days > 1:
        return f"{days} days until Christmas!!"
    if days == 1:
        return "1 day until Christmas"
    return "Christmas is here!"


def build_assignment_message(assignment: Assignment, settings: SMTPSettings, countdown: str) -> EmailMessage:
    giver = assignment.giver
    receiver = assignment.receiver
    wishlist_text, wishlist_html = format_wishlist(receiver.wishlist)
    picks_text, picks_html = format_quick_picks(receiver.quick_picks)

    msg = EmailMessage()
    msg["Subject"] = "Your Secret Santa assignment"
    msg["From"] = _format_sender(settings)
    msg["To"] = giver.email
    msg.set_content(
        f"Hi {giver.name},\n\n"
        f"This year you're Secret Santa for {receiver.name}!\n\n"
        f"Their wish list:\n{wishlist_text}\n\n"
        f"Quick picks:\n{picks_text}\n\n"
        f"{countdown}\n\n"
        "Keep it secret!\n"
        "The Secret Santa Elves"
    )
    msg.add_alternative(
        f"<p>Hi {html.escape(giver.name)},</p>"
        f"<p>This year you're Secret Santa for <strong>{html.escape(receiver.name)}</strong>!</p>"
        f"<h3>Their wish list</h3><p>{wishlist_html}</p>"
        f"<h3>Quick picks</h3>{picks_html}"
        f"<p>{html.escape(countdown)}</p>"
        "<p>Keep it secret!<br>The Secret Santa Elves</p>",
        subtype="html",
    )
    return msg


def _send_one(server: smtplib.SMTP, msg: EmailMessage) -> None:
    try:
        server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise DeliveryError(str(e)) from e


def send_assignment_emails(
    assignments: Sequence[Assignment],
    settings: SMTPSettings,
    dry_run: bool = False,
    today: Optional[date] = None,
) -> DeliveryReport:
    """
    Sends one email per assignment, addressed to the giver.
    Each send can fail on its own; failures are logged and counted in the
    report instead of stopping the batch. Givers without an email are
    reported as failed.
    Raises DeliveryError only when the SMTP connection or login fails.
    """
    report = DeliveryReport()
    countdown = countdown_line(days_until_christmas(today))
    outgoing: List[Tuple[str, EmailMessage]] = []
    for assignment in assignments:
        giver = assignment.giver
        if not giver.email:
            logger.error("No email address for %s", giver.name)
            report.failed.append((giver.name, "no email address"))
            continue
        outgoing.append((giver.name, build_assignment_message(assignment, settings, countdown)))

    if dry_run:
        report.sent.extend(name for name, _ in outgoing)
        return report
    if not outgoing:
        return report

    context = ssl.create_default_context()
    try:
        server = smtplib.SMTP_SSL(settings.host, settings.port, context=context)
    except (smtplib.SMTPException, OSError) as e:
        raise DeliveryError(f"Could not connect to {settings.host}:{settings.port}: {e}") from e
    with server:
        try:
            server.login(settings.username, settings.password)
        except smtplib.SMTPException as e:
            raise DeliveryError(f"SMTP login failed: {e}") from e
        for name, msg in outgoing:
            try:
                _send_one(server, msg)
            except DeliveryError as e:
                logger.error("Failed to send email to %s: %s", name, e)
                report.failed.append((name, str(e)))
            else:
                report.sent.append(name)
    logger.info("Delivery finished: %d sent, %d failed", len(report.sent), len(report.failed))
    return report
