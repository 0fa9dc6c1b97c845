"""
MJML Email Templates
All email templates using MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from .config import PUBLIC_BASE_URL

# Parchment / ink color scheme shared with the certificates
THEME = {
    "primary": "#1a1f2a",
    "accent": "#b08d57",
    "background": "#f7f4ee",
    "card_bg": "#ffffff",
    "text_primary": "#1a1f2a",
    "text_secondary": "#3d4350",
    "text_muted": "#6b7280",
    "border": "#e7e1d6",
}

BRAND = "Parcels of Time"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{escape(cta_url)}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Georgia, 'Times New Roman', serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['card_bg']}" padding="32px 20px 0 20px">
          <mj-column>
            <mj-text align="center" font-size="14px" letter-spacing="3px" color="{THEME['accent']}" padding="0">
              {BRAND.upper()}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="24px 0 0 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="{THEME['card_bg']}" padding="24px 40px 40px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}" padding="0">
              <a href="{PUBLIC_BASE_URL}" style="color: {THEME['text_muted']}; text-decoration: none;">{BRAND}</a>
              · Symbolic ownership of a moment in time.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def claim_receipt_template(
    ts_label: str,
    public_url: str,
    cert_url: str,
    display_name: Optional[str] = None,
    amount_label: Optional[str] = None,
) -> str:
    """Receipt sent after a claim is paid for or redeemed"""
    greeting = f"Hi {escape(display_name)}," if display_name else "Hello,"
    amount_line = (
        f"""
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Amount paid: {escape(amount_label)}
    </mj-text>
    """
        if amount_label
        else ""
    )
    content = f"""
    <mj-text>
      {greeting}
    </mj-text>

    <mj-text>
      <strong>{escape(ts_label)}</strong> is now yours. Your certificate is ready to download
      and your page is live.
    </mj-text>

    {amount_line}

    <mj-text font-size="14px">
      Public page: <a href="{escape(public_url)}" style="color: {THEME['accent']};">{escape(public_url)}</a>
    </mj-text>
    """
    return get_base_template(
        title="Your certificate",
        preview_text=f"{ts_label} is now yours",
        content_sections=content,
        cta_url=cert_url,
        cta_label="Download certificate (PDF)",
    )


def listing_sold_template(ts_label: str, gross_label: str, net_label: str) -> str:
    """Seller notification after a marketplace sale settles"""
    content = f"""
    <mj-text>
      Your listing for <strong>{escape(ts_label)}</strong> has been sold.
    </mj-text>

    <mj-text font-size="14px">
      Sale price: {escape(gross_label)}<br />
      Your payout after platform fee: {escape(net_label)}
    </mj-text>
    """
    return get_base_template(
        title="Your date found a new keeper",
        preview_text=f"{ts_label} has been sold",
        content_sections=content,
    )


def password_reset_template(reset_link: str, ttl_minutes: int) -> str:
    """Password reset MJML template"""
    content = f"""
    <mj-text>
      We received a request to reset your password.
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      This link expires in {ttl_minutes} minutes. If you didn't request it, you can ignore this email.
    </mj-text>
    """
    return get_base_template(
        title="Reset your password",
        preview_text="Reset your Parcels of Time password",
        content_sections=content,
        cta_url=reset_link,
        cta_label="Choose a new password",
    )


def login_code_template(code: str, ttl_minutes: int) -> str:
    """One-time sign-in code"""
    content = f"""
    <mj-text>
      Use this code to sign in:
    </mj-text>

    <mj-text align="center" font-size="32px" letter-spacing="8px" font-weight="700" color="{THEME['text_primary']}" padding="16px 0">
      {escape(code)}
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      The code expires in {ttl_minutes} minutes.
    </mj-text>
    """
    return get_base_template(
        title="Your sign-in code",
        preview_text="Your Parcels of Time sign-in code",
        content_sections=content,
    )
