"""Registry router - public gallery and availability calendar"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.validators import coerce_bool
from .service import RegistryService

router = APIRouter(tags=["Registry"])


def get_registry_service(db: Session = Depends(get_db)) -> RegistryService:
    return RegistryService(db)


@router.get("/registry")
async def list_registry(
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    q: Optional[str] = Query(None, max_length=100),
    has_title: Optional[str] = Query(None, alias="hasTitle"),
    has_message: Optional[str] = Query(None, alias="hasMessage"),
    sort: str = Query("new", pattern="^(new|old)$"),
    service: RegistryService = Depends(get_registry_service),
):
    """Public registry of claims their owners chose to show"""
    return service.list_registry(
        limit=limit,
        cursor=cursor,
        q=q,
        has_title=coerce_bool(has_title),
        has_message=coerce_bool(has_message),
        sort=sort,
    )


@router.get("/unavailable")
async def unavailable_days(
    ym: str = Query(..., description="Month as YYYY-MM"),
    service: RegistryService = Depends(get_registry_service),
):
    return service.unavailable_days(ym)
