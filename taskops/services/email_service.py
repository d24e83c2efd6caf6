"""
SMTP email delivery for task reminders.

smtplib is blocking, so sends run in the default executor.

Config (in .env):
    EMAIL_HOST=smtp.gmail.com
    EMAIL_PORT=587
    EMAIL_SECURE=false          # true for implicit TLS on 465
    EMAIL_USER=tasks@example.com
    EMAIL_PASSWORD=app-password
    EMAIL_FROM=tasks@example.com
"""
import asyncio
import smtplib
from email.message import EmailMessage
from typing import Any, Dict

from taskops.config import get_settings
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


def build_expiration_email(recipient: str, template_data: Dict[str, Any], sender: str) -> EmailMessage:
    """Render the expiring/overdue reminder for one assignee"""
    title = template_data["task_title"]
    due = template_data["due_date"]
    due_label = due.strftime("%d/%m/%Y %H:%M") if hasattr(due, "strftime") else str(due)
    days_left = template_data.get("days_remaining", 0)
    overdue = template_data.get("is_overdue", False)
    org_name = template_data.get("organization_name") or "Restaurant"
    assignee = template_data.get("assignee_name") or "there"

    state = "is overdue" if overdue else "is about to expire"
    msg = EmailMessage()
    msg["Subject"] = f"{'Overdue' if overdue else 'Expiring'} task: {title}"
    msg["From"] = sender
    msg["To"] = recipient
    msg.set_content(
        f"Hi {assignee},\n\n"
        f"The task \"{title}\" {state}.\n"
        f"Due: {due_label}\n"
        f"Days remaining: {days_left}\n"
        f"Organization: {org_name}\n\n"
        f"Please update the task status so the team can follow progress.\n"
    )
    msg.add_alternative(
        f"""
        <h2>Task reminder</h2>
        <p>Hi {assignee},</p>
        <p>The following task {state}:</p>
        <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 15px 0;">
          <p><strong>Task:</strong> {title}</p>
          <p><strong>Due:</strong> {due_label}</p>
          <p><strong>Days remaining:</strong> <span style="color: #d32f2f; font-weight: bold;">{days_left}</span></p>
          <p><strong>Organization:</strong> {org_name}</p>
        </div>
        <p>Please update the task status so the team can follow progress.</p>
        """,
        subtype="html",
    )
    return msg


def _send_smtp(message: EmailMessage) -> None:
    settings = get_settings()
    if settings.EMAIL_SECURE:
        server = smtplib.SMTP_SSL(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=30)
    else:
        server = smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=30)
    try:
        if not settings.EMAIL_SECURE:
            server.starttls()
        server.login(settings.EMAIL_USER, settings.EMAIL_PASSWORD)
        server.send_message(message)
    finally:
        server.quit()


async def send_expiration_notification(recipient: str, template_data: Dict[str, Any]) -> bool:
    """Send one reminder email. Returns False when email is disabled or the send failed."""
    settings = get_settings()
    if not settings.EMAIL_USER:
        logger.info("Email notifications disabled - EMAIL_USER not configured")
        return False

    message = build_expiration_email(
        recipient, template_data, settings.EMAIL_FROM or settings.EMAIL_USER
    )
    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _send_smtp, message)
    except Exception as e:
        logger.error(f"Failed to send expiration notification to {recipient}: {e}")
        return False

    logger.info(f"Expiration notification sent to {recipient}")
    return True
