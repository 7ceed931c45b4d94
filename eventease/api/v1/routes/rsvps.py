from fastapi import APIRouter, Depends, status
from eventease.schemas import RSVPCreate, RSVPOut, ResponseEnvelope
from eventease.db.session import get_session
from eventease.services.rsvp_service import RSVPService
from eventease.auth import get_current_user
from eventease.websocket.manager import ConnectionManager, get_rooms
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

router = APIRouter(prefix="/rsvp", tags=["rsvp"])


def get_rsvp_service(
    session: AsyncSession = Depends(get_session),
    rooms: ConnectionManager = Depends(get_rooms)
) -> RSVPService:
    return RSVPService(session, rooms)


@router.get("/my-rsvps", response_model=ResponseEnvelope[List[RSVPOut]], response_model_exclude_none=True)
async def get_my_rsvps(
    user=Depends(get_current_user),
    rsvp_service: RSVPService = Depends(get_rsvp_service)
):
    rows = await rsvp_service.list_my_rsvps(user.id)
    return ResponseEnvelope(data=[RSVPOut.model_validate(r) for r in rows], count=len(rows))


@router.post(
    "/{event_id}",
    response_model=ResponseEnvelope[RSVPOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_or_update_rsvp(
    event_id: UUID,
    payload: RSVPCreate,
    user=Depends(get_current_user),
    rsvp_service: RSVPService = Depends(get_rsvp_service)
):
    """Submit or change the caller's response; the room sees the new tally."""
    rsvp, stats = await rsvp_service.submit_rsvp(
        event_id,
        user.id,
        payload.response,
        message=payload.message,
        plus_ones=payload.plus_ones,
    )
    return ResponseEnvelope(data=RSVPOut.model_validate(rsvp), stats=stats)


@router.get("/{event_id}", response_model=ResponseEnvelope[List[RSVPOut]], response_model_exclude_none=True)
async def get_event_rsvps(
    event_id: UUID,
    rsvp_service: RSVPService = Depends(get_rsvp_service)
):
    rows, stats = await rsvp_service.get_event_rsvps(event_id)
    return ResponseEnvelope(data=[RSVPOut.model_validate(r) for r in rows], count=len(rows), stats=stats)


@router.get("/{event_id}/my-response", response_model=ResponseEnvelope[RSVPOut], response_model_exclude_none=True)
async def get_my_response(
    event_id: UUID,
    user=Depends(get_current_user),
    rsvp_service: RSVPService = Depends(get_rsvp_service)
):
    rsvp = await rsvp_service.get_my_rsvp(event_id, user.id)
    return ResponseEnvelope(data=RSVPOut.model_validate(rsvp))


@router.delete("/{event_id}", response_model=ResponseEnvelope, response_model_exclude_none=True)
async def delete_my_rsvp(
    event_id: UUID,
    user=Depends(get_current_user),
    rsvp_service: RSVPService = Depends(get_rsvp_service)
):
    stats = await rsvp_service.withdraw_rsvp(event_id, user.id)
    return ResponseEnvelope(message="RSVP deleted successfully", stats=stats)
