"""
Outgoing email (invites). SMTP when configured, otherwise a logged no-op.
"""
import logging
import smtplib
from email.message import EmailMessage
from html import escape

from flowmoney.config import get_settings
from flowmoney.domain.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, text: str, html: str | None = None) -> bool:
    """
    Returns False when SMTP is not configured.

    Raises:
        UpstreamUnavailable: SMTP server unreachable or refused the message
    """
    settings = get_settings()
    if not settings.EMAIL_SMTP_HOST:
        logger.info("EMAIL stub: to=%s subject=%s", to, subject)
        return False

    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype="html")

    try:
        if settings.EMAIL_SMTP_PORT == 465:
            smtp = smtplib.SMTP_SSL(
                settings.EMAIL_SMTP_HOST, settings.EMAIL_SMTP_PORT,
                timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
            )
        else:
            smtp = smtplib.SMTP(
                settings.EMAIL_SMTP_HOST, settings.EMAIL_SMTP_PORT,
                timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
            )
        with smtp:
            if settings.EMAIL_SMTP_PORT != 465:
                smtp.starttls()
            if settings.EMAIL_SMTP_USER:
                smtp.login(settings.EMAIL_SMTP_USER, settings.EMAIL_SMTP_PASSWORD)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise UpstreamUnavailable(f"SMTP delivery failed: {exc}") from exc

    logger.info("Email sent to %s: %s", to, subject)
    return True


def invite_email(inviter_name: str, account_name: str, frontend_url: str, ttl_days: int) -> tuple[str, str, str]:
    """(subject, text, html) for a joint-account invitation."""
    subject = f"{inviter_name} invited you to {account_name} on FlowMoney"
    link = f"{frontend_url.rstrip('/')}/joint-accounts"
    text = (
        f"{inviter_name} invited you to join the joint account \"{account_name}\".\n\n"
        f"Open FlowMoney to accept or decline: {link}\n\n"
        f"The invitation expires in {ttl_days} days."
    )
    html = (
        f"<p><strong>{escape(inviter_name)}</strong> invited you to join the joint account "
        f"<strong>{escape(account_name)}</strong>.</p>"
        f"<p><a href=\"{escape(link)}\">Open FlowMoney</a> to accept or decline.</p>"
        f"<p>The invitation expires in {ttl_days} days.</p>"
    )
    return subject, text, html
