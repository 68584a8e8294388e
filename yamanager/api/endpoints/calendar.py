"""
Calendar endpoints — create, edit and delete calendar entries.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.api.deps import get_clock, get_current_principal, get_db
from yamanager.core import clock as server_clock
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.schemas.calendar import (CalendarEntryIn, CalendarEntryRead,
                                        DeleteResult)
from yamanager.services.calendar import CalendarService, EntryDraft
from yamanager.services.guard import ME, Principal, resolve_user_id

router = APIRouter(tags=["calendar"])


def _draft(body: CalendarEntryIn) -> EntryDraft:
    return EntryDraft(
        kind=body.kind,
        date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        hours=body.hours,
    )


@router.post("/user/calendar/create", response_model=CalendarEntryRead)
async def create_entry(
    body: CalendarEntryIn,
    user: str = Query(default=ME),
    db: AsyncSession = Depends(get_db),
    clock: server_clock.Clock = Depends(get_clock),
    actor: Principal = Depends(get_current_principal),
):
    """Create an entry for the actor, or for ``?user=<id>`` as their approver."""
    owner_id = resolve_user_id(user, actor)
    return await CalendarService(db, clock).create_entry(actor, owner_id, _draft(body))


@router.put("/user/calendar/edit", response_model=CalendarEntryRead)
async def edit_entry(
    body: CalendarEntryIn,
    db: AsyncSession = Depends(get_db),
    clock: server_clock.Clock = Depends(get_clock),
    actor: Principal = Depends(get_current_principal),
):
    if body.id is None:
        raise DomainError(ErrorCode.INVALID_REQUEST, "entry id is required for edits")
    return await CalendarService(db, clock).update_entry(actor, body.id, _draft(body))


@router.delete("/calendar/{entry_id}/delete", response_model=DeleteResult)
async def delete_entry(
    entry_id: str,
    db: AsyncSession = Depends(get_db),
    clock: server_clock.Clock = Depends(get_clock),
    actor: Principal = Depends(get_current_principal),
) -> DeleteResult:
    """Owner deletes a PENDING entry; an approver rejects the entry instead."""
    if not entry_id.strip().isdecimal():
        raise DomainError(ErrorCode.NOT_FOUND, f"calendar entry '{entry_id}' not found")
    entry = await CalendarService(db, clock).delete_entry(actor, int(entry_id))
    if entry is None:
        return DeleteResult(deleted=True)
    return DeleteResult(deleted=False, entry=CalendarEntryRead.model_validate(entry))
