"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design

Every sender here is best-effort from the caller's point of view: workflows
call them after their transaction committed and only log failures.
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import (
    EMAIL_FROM_ADDRESS,
    EMAIL_REPLY_TO,
    LOGIN_CODE_TTL_MINUTES,
    PASSWORD_RESET_TTL_MINUTES,
    RESEND_API_KEY,
)
from .email_templates import (
    claim_receipt_template,
    listing_sold_template,
    login_code_template,
    password_reset_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(RuntimeError):
    pass


def format_amount(amount_cents: int, currency: str) -> str:
    return f"{amount_cents / 100:.2f} {currency.upper()}"


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RuntimeError(f"Failed to compile MJML template: {str(e)}") from e

    # mjml-python returns an object exposing .html and .errors
    errors = getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    html = getattr(result, "html", None)
    return html if html is not None else str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

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
        raise EmailNotConfiguredError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if EMAIL_REPLY_TO:
        email_data["reply_to"] = EMAIL_REPLY_TO

    try:
        logger.info(f"📧 Sending email via Resend: {subject}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error: {e}")
        raise RuntimeError(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built Emails
# ============================================


async def send_claim_receipt_email(
    to: str,
    ts_iso: str,
    public_url: str,
    cert_url: str,
    display_name: Optional[str] = None,
    amount_cents: Optional[int] = None,
    currency: Optional[str] = None,
) -> dict:
    """Send the certificate receipt for a new claim"""
    amount_label = format_amount(amount_cents, currency) if amount_cents and currency else None
    mjml_content = claim_receipt_template(ts_iso, public_url, cert_url, display_name, amount_label)
    return await send_email(
        to=to,
        subject=f"Your certificate — {ts_iso}",
        mjml_content=mjml_content,
    )


async def send_listing_sold_email(
    to: str, ts_label: str, gross_cents: int, net_cents: int, currency: str
) -> dict:
    """Notify the seller that their listing sold"""
    mjml_content = listing_sold_template(
        ts_label, format_amount(gross_cents, currency), format_amount(net_cents, currency)
    )
    return await send_email(to=to, subject=f"Sold — {ts_label}", mjml_content=mjml_content)


async def send_password_reset_email(to: str, reset_link: str) -> dict:
    """Send password reset email"""
    mjml_content = password_reset_template(reset_link, PASSWORD_RESET_TTL_MINUTES)
    return await send_email(
        to=to,
        subject="Reset your password - Parcels of Time",
        mjml_content=mjml_content,
    )


async def send_login_code_email(to: str, code: str) -> dict:
    """Send a one-time sign-in code"""
    mjml_content = login_code_template(code, LOGIN_CODE_TTL_MINUTES)
    return await send_email(
        to=to,
        subject=f"{code} is your Parcels of Time code",
        mjml_content=mjml_content,
    )


async def deliver_quietly(send, *args, **kwargs) -> bool:
    """Run one of the senders above, logging instead of raising on failure"""
    try:
        await send(*args, **kwargs)
        return True
    except Exception as e:
        logger.warning(f"⚠️ Email {getattr(send, '__name__', 'send')} failed (ignored): {e}")
        return False
