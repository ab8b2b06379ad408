"""
Hiring-update emails sent over SMTP.
"""
import asyncio
import html
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from skillforge.utils.exceptions import NotificationError
from skillforge.utils.logging_config import get_logger

load_dotenv()

EMAIL_HOST = os.getenv("EMAIL_HOST", "smtp.gmail.com")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "587"))
EMAIL_USERNAME = os.getenv("EMAIL_USERNAME", "")
EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD", "")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "SkillForge AI")
NOTIFICATION_TIMEOUT = float(os.getenv("NOTIFICATION_TIMEOUT", "10"))

logger = get_logger(__name__)

PLACEHOLDERS = {
    "{{candidate_name}}": ("candidate_name", "Candidate"),
    "{{job_title}}": ("job_title", "Job"),
    "{{company_name}}": ("company_name", "Company"),
    "{{round_name}}": ("round_name", ""),
}

HTML_SHELL = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        {body}
    </div>
</body>
</html>
"""


def mask_email(email: str) -> str:
    """Mask an address for logging, keeping only the domain."""
    if not email or '@' not in email:
        return "***"
    _, domain = email.rsplit('@', 1)
    return f"***@{domain}"


def is_configured() -> bool:
    return bool(EMAIL_USERNAME and EMAIL_PASSWORD)


def render_hiring_update(template: str, data: Dict[str, Any]) -> str:
    """Fill the recruiter's template and wrap it in a basic HTML page."""
    body = template
    for placeholder, (key, default) in PLACEHOLDERS.items():
        body = body.replace(placeholder, html.escape(str(data.get(key) or default)))

    if "<html>" not in body:
        body = HTML_SHELL.format(body=body)
    return body


def _build_message(to: str, subject: str, html_body: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg['From'] = f'"{EMAIL_FROM_NAME}" <{EMAIL_USERNAME}>'
    msg['To'] = to
    msg['Subject'] = subject
    msg.attach(MIMEText(subject, 'plain', 'utf-8'))
    msg.attach(MIMEText(html_body, 'html', 'utf-8'))
    return msg


def _deliver(msg: MIMEMultipart) -> None:
    if EMAIL_PORT == 465:
        with smtplib.SMTP_SSL(EMAIL_HOST, EMAIL_PORT, timeout=NOTIFICATION_TIMEOUT) as server:
            server.login(EMAIL_USERNAME, EMAIL_PASSWORD)
            server.send_message(msg)
    else:
        with smtplib.SMTP(EMAIL_HOST, EMAIL_PORT, timeout=NOTIFICATION_TIMEOUT) as server:
            server.starttls()
            server.login(EMAIL_USERNAME, EMAIL_PASSWORD)
            server.send_message(msg)


async def send_hiring_update(
    to: str,
    subject: Optional[str],
    template: Optional[str],
    data: Dict[str, Any]
) -> bool:
    """
    Render and send a hiring-update email.

    Returns False when there is nothing to send or SMTP is not configured.
    Raises NotificationError when delivery fails or exceeds NOTIFICATION_TIMEOUT.
    """
    if not template:
        return False
    if not to:
        logger.warning("Hiring update skipped - recipient has no email address")
        return False
    if not is_configured():
        logger.warning("Email not configured - EMAIL_USERNAME/EMAIL_PASSWORD not set, skipping hiring update")
        return False

    subject = subject or f"Update regarding your application for {data.get('job_title') or 'Job'}"
    msg = _build_message(to, subject, render_hiring_update(template, data))

    loop = asyncio.get_running_loop()
    try:
        await asyncio.wait_for(loop.run_in_executor(None, _deliver, msg), timeout=NOTIFICATION_TIMEOUT)
    except asyncio.TimeoutError as e:
        raise NotificationError(
            f"Timed out after {NOTIFICATION_TIMEOUT}s sending hiring update",
            recipient=mask_email(to),
            cause=e
        ) from e
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError(
            f"Failed to send hiring update: {e}",
            recipient=mask_email(to),
            cause=e
        ) from e

    logger.info(f"Hiring update sent to {mask_email(to)}")
    return True
