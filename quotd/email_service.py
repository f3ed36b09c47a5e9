"""
Email Service using Resend
Compiles MJML templates to HTML and sends transactional emails
"""

import logging
from datetime import datetime
from typing import Optional, Union

import resend
from mjml import mjml2html as mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import appointment_reminder_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a result with 'html' and 'errors'
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        if hasattr(result, "html"):
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return result.html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email using Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


def _format_appointment_time(appointment_time: str) -> tuple[str, str]:
    moment = datetime.fromisoformat(appointment_time)
    return moment.strftime("%A, %B %d, %Y"), moment.strftime("%I:%M %p").lstrip("0") + " UTC"


async def send_appointment_reminder(
    to: str,
    team_name: str,
    appointment_time: str,
    job_title: str,
    company_phone: Optional[str] = None,
) -> dict:
    """
    Send the day-ahead appointment reminder to a customer.

    Never raises; delivery problems are reported as {"success": False, "error": ...}.
    """
    try:
        appointment_date, appointment_clock = _format_appointment_time(appointment_time)
        mjml_content = appointment_reminder_template(
            team_name=team_name,
            appointment_date=appointment_date,
            appointment_time=appointment_clock,
            job_title=job_title,
            company_phone=company_phone,
        )
        await send_email(
            to=to,
            subject=f"Appointment Reminder - {team_name}",
            mjml_content=mjml_content,
        )
        return {"success": True, "error": None}
    except Exception as e:
        logger.error(f"❌ Failed to send appointment reminder to {to}: {e}")
        return {"success": False, "error": str(e)}
