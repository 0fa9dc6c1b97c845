"""Certificate router - public PDF download"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ...config import CERT_CACHE_MAX_AGE
from ...database import get_db
from ...shared.timestamps import iso_utc
from ..claims.service import ClaimService
from .pdf_service import CertificatePDFGenerator, locale_from_accept_language

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Certificates"])


@router.get("/cert/{ts}")
async def get_certificate(ts: str, request: Request, db: Session = Depends(get_db)):
    """Certificate PDF for a timestamp or a YYYY-MM-DD day"""
    claim = ClaimService(db).get_claim_or_404(ts)
    locale = locale_from_accept_language(request.headers.get("Accept-Language", ""))
    pdf_bytes = CertificatePDFGenerator(claim, locale).generate()

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="cert-{iso_utc(claim.ts)}.pdf"',
            "Cache-Control": f"public, max-age={CERT_CACHE_MAX_AGE}, s-maxage={CERT_CACHE_MAX_AGE}",
            "Vary": "Accept-Language",
        },
    )
