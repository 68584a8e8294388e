"""
Staff data transfer endpoints — XLSX import and PDF export (admin only).
"""

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.api.deps import get_clock, get_current_principal, get_db
from yamanager.core import clock as server_clock
from yamanager.core.config import settings
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.schemas.common import ImportSummary
from yamanager.services.guard import Principal
from yamanager.services.transfer import StaffTransfer

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(tags=["files"])
logger = logging.getLogger(__name__)


@router.post("/import/xls", response_model=ImportSummary)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_staff(
    request: Request,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
) -> ImportSummary:
    """Import staff from the first worksheet of an XLSX file."""
    content = await file.read()
    if not content:
        raise DomainError(ErrorCode.INVALID_REQUEST, "uploaded file is empty")
    logger.info("Staff import %s (%d bytes) from user %d", file.filename, len(content), actor.id)
    result = await StaffTransfer(db).import_staff(actor, content)
    return ImportSummary(created=result.created, skipped=result.skipped)


@router.get("/export/pdf")
@limiter.limit(settings.EXPORT_RATE_LIMIT)
async def export_staff(
    request: Request,
    db: AsyncSession = Depends(get_db),
    clock: server_clock.Clock = Depends(get_clock),
    actor: Principal = Depends(get_current_principal),
) -> Response:
    filename, content = await StaffTransfer(db).export_staff(
        actor, server_clock.local_date(clock())
    )
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
