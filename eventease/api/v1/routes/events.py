from fastapi import APIRouter, Depends, Query, status
from eventease.schemas import EventCreate, EventUpdate, EventOut, EventDetail, EventCategory, ResponseEnvelope
from eventease.db.session import get_session
from eventease.core.config import settings
from eventease.services.event_service import EventService
from eventease.auth import get_current_user, get_optional_user
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

router = APIRouter(prefix="/events", tags=["events"])


def get_event_service(session: AsyncSession = Depends(get_session)) -> EventService:
    return EventService(session)


@router.get("", response_model=ResponseEnvelope[List[EventOut]], response_model_exclude_none=True)
async def get_events(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(settings.EVENTS_PAGE_SIZE, ge=1, le=settings.EVENTS_MAX_PAGE_SIZE, description="Number of items per page"),
    category: Optional[EventCategory] = Query(None, description="Filter by event category"),
    search: Optional[str] = Query(None, description="Search in title, description and location"),
    event_service: EventService = Depends(get_event_service)
):
    """
    List active public events, newest first.
    - page: Page number, 1-indexed (default: 1)
    - limit: Number of items per page (EVENTS_PAGE_SIZE by default)
    - category: Filter by event category
    - search: Case-insensitive substring search
    """
    total, events = await event_service.list_events_paginated(
        page=page,
        limit=limit,
        category=category.value if category else None,
        search=search,
    )
    return ResponseEnvelope(data=events, count=len(events), total=total)


@router.get("/my-events", response_model=ResponseEnvelope[List[EventOut]], response_model_exclude_none=True)
async def get_my_events(
    user=Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    events = await event_service.list_my_events(user.id)
    return ResponseEnvelope(data=[EventOut.model_validate(ev) for ev in events], count=len(events))


@router.get("/invite/{token}", response_model=ResponseEnvelope[EventDetail], response_model_exclude_none=True)
async def get_event_by_invite(
    token: str,
    user=Depends(get_optional_user),
    event_service: EventService = Depends(get_event_service)
):
    ev = await event_service.get_event_by_invite_token(token, user.id if user else None)
    return ResponseEnvelope(data=ev)


@router.get("/{event_id}", response_model=ResponseEnvelope[EventDetail], response_model_exclude_none=True)
async def get_event_detail(
    event_id: UUID,
    user=Depends(get_optional_user),
    event_service: EventService = Depends(get_event_service)
):
    ev = await event_service.get_event(event_id, user.id if user else None)
    return ResponseEnvelope(data=ev)


@router.post(
    "",
    response_model=ResponseEnvelope[EventOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_event_endpoint(
    payload: EventCreate,
    user=Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    ev = await event_service.create_event(payload, user.id)
    return ResponseEnvelope(data=EventOut.model_validate(ev))


@router.put("/{event_id}", response_model=ResponseEnvelope[EventOut], response_model_exclude_none=True)
async def update_event_endpoint(
    event_id: UUID,
    payload: EventUpdate,
    user=Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    ev = await event_service.update_event(event_id, user.id, payload)
    return ResponseEnvelope(data=EventOut.model_validate(ev))


@router.delete("/{event_id}", response_model=ResponseEnvelope, response_model_exclude_none=True)
async def delete_event_endpoint(
    event_id: UUID,
    user=Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    await event_service.delete_event(event_id, user.id)
    return ResponseEnvelope(message="Event deleted successfully")
