"""
Certificate PDF Generator
Renders the A4 certificate of a claim with reportlab, with a QR code to its public page
"""

import io
import logging
from urllib.parse import quote

import qrcode
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from ...config import PUBLIC_BASE_URL
from ...enums import CertStyle, TimeDisplay
from ...models import Claim
from ...shared.timestamps import iso_utc, ymd

logger = logging.getLogger(__name__)

LABELS = {
    "en": {
        "title": "Certificate of Claim",
        "owned_by": "Owned by",
        "anonymous": "Anonymous",
        "certificate_id": "Certificate ID",
        "integrity": "Integrity (SHA-256)",
        "utc": "UTC",
        "scan": "Scan to view the public page",
    },
    "fr": {
        "title": "Certificat de Claim",
        "owned_by": "Propriété de",
        "anonymous": "Anonyme",
        "certificate_id": "ID du certificat",
        "integrity": "Intégrité (SHA-256)",
        "utc": "UTC",
        "scan": "Scannez pour voir la page publique",
    },
}

ACCENT_COLORS = {
    CertStyle.NEUTRAL: "#1f2937",
    CertStyle.ROMANTIC: "#be185d",
    CertStyle.BIRTHDAY: "#ea580c",
    CertStyle.WEDDING: "#a16207",
    CertStyle.BIRTH: "#0284c7",
    CertStyle.CHRISTMAS: "#15803d",
    CertStyle.NEWYEAR: "#7c3aed",
    CertStyle.GRADUATION: "#1d4ed8",
    CertStyle.CUSTOM: "#0f766e",
}

BRAND = "Parcels of Time"


def locale_from_accept_language(header: str) -> str:
    return "fr" if (header or "").strip().lower().startswith("fr") else "en"


def public_qr_url(claim: Claim) -> str:
    return f"{PUBLIC_BASE_URL}/m/{quote(iso_utc(claim.ts), safe='')}"


def date_line(claim: Claim, labels: dict) -> str:
    if claim.local_date_only:
        return ymd(claim.ts)
    line = f"{claim.ts.strftime('%Y-%m-%d %H:%M')} {labels['utc']}"
    if claim.time_display != TimeDisplay.UTC:
        # Local rendering needs the reader's zone; the PDF keeps the UTC instant
        line = f"{line} ({claim.time_display.value})"
    return line


class CertificatePDFGenerator:
    """Generate the certificate PDF for one claim"""

    def __init__(self, claim: Claim, locale: str = "en"):
        self.claim = claim
        self.labels = LABELS.get(locale, LABELS["en"])

        self.page_width, self.page_height = A4
        self.margin = 20 * mm
        self.content_width = self.page_width - 2 * self.margin

        self.accent = colors.HexColor(ACCENT_COLORS.get(claim.cert_style, ACCENT_COLORS[CertStyle.NEUTRAL]))
        self.text_color = colors.HexColor(claim.text_color or "#1a1f2a")
        self.muted = colors.HexColor("#6b7280")

    def qr_image(self) -> ImageReader:
        qr = qrcode.QRCode(version=1, box_size=10, border=2)
        qr.add_data(public_qr_url(self.claim))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        buffer.seek(0)
        return ImageReader(buffer)

    def _centered_block(self, pdf, text: str, y: float, font: str, size: int, leading: float) -> float:
        pdf.setFont(font, size)
        for line in simpleSplit(text, font, size, self.content_width):
            pdf.drawCentredString(self.page_width / 2, y, line)
            y -= leading
        return y

    def generate(self) -> bytes:
        """Generate PDF and return bytes"""
        claim = self.claim
        labels = self.labels
        logger.info(f"📄 Generating certificate PDF for claim {claim.id}")

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"{labels['title']} - {iso_utc(claim.ts)}")
        pdf.setAuthor(BRAND)

        # Frame
        pdf.setStrokeColor(self.accent)
        pdf.setLineWidth(3)
        pdf.rect(self.margin / 2, self.margin / 2, self.page_width - self.margin, self.page_height - self.margin)

        center = self.page_width / 2
        y = self.page_height - self.margin - 15 * mm

        pdf.setFillColor(self.accent)
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawCentredString(center, y, BRAND.upper())
        y -= 16 * mm

        pdf.setFont("Helvetica-Bold", 28)
        pdf.drawCentredString(center, y, labels["title"])
        y -= 18 * mm

        pdf.setFillColor(self.text_color)
        pdf.setFont("Helvetica-Bold", 22)
        pdf.drawCentredString(center, y, date_line(claim, labels))
        y -= 16 * mm

        owner_name = claim.owner.display_name if claim.owner and claim.owner.display_name else labels["anonymous"]
        pdf.setFillColor(self.muted)
        pdf.setFont("Helvetica", 11)
        pdf.drawCentredString(center, y, labels["owned_by"])
        y -= 8 * mm
        pdf.setFillColor(self.text_color)
        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawCentredString(center, y, owner_name)
        y -= 16 * mm

        if claim.title:
            y = self._centered_block(pdf, claim.title, y, "Helvetica-Bold", 16, 8 * mm)
            y -= 4 * mm
        if claim.message:
            y = self._centered_block(pdf, claim.message, y, "Helvetica-Oblique", 12, 6 * mm)

        # Footer: certificate id, integrity hash and QR code
        footer_y = self.margin + 10 * mm
        qr_size = 35 * mm
        pdf.drawImage(
            self.qr_image(),
            self.page_width - self.margin - qr_size,
            footer_y,
            width=qr_size,
            height=qr_size,
        )
        pdf.setFillColor(self.muted)
        pdf.setFont("Helvetica", 8)
        pdf.drawRightString(self.page_width - self.margin, footer_y - 4 * mm, labels["scan"])

        digest = claim.cert_hash or ""
        pdf.setFont("Helvetica", 9)
        pdf.drawString(self.margin, footer_y + 28 * mm, labels["certificate_id"])
        pdf.setFont("Courier", 9)
        pdf.setFillColor(self.text_color)
        pdf.drawString(self.margin, footer_y + 23 * mm, claim.id)

        pdf.setFillColor(self.muted)
        pdf.setFont("Helvetica", 9)
        pdf.drawString(self.margin, footer_y + 14 * mm, labels["integrity"])
        pdf.setFont("Courier", 9)
        pdf.setFillColor(self.text_color)
        pdf.drawString(self.margin, footer_y + 9 * mm, digest[:32])
        pdf.drawString(self.margin, footer_y + 4 * mm, digest[32:])

        pdf.showPage()
        pdf.save()

        pdf_bytes = buffer.getvalue()
        logger.info(f"✅ Certificate PDF generated ({len(pdf_bytes)} bytes)")
        return pdf_bytes
