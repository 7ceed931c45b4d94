"""
RSVP service: submit, list and withdraw responses to events.

Every successful change is broadcast to the event's room with the freshly
computed tally, and published on the event bus for the notification worker.
Neither side channel can fail a request.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from eventease.core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from eventease.core.logging import logger
from eventease.db.models.event import EventStatus
from eventease.db.models.rsvp import RSVP, RSVPResponse, MAX_PLUS_ONES, MAX_MESSAGE_LENGTH
from eventease.db.repositories import (
    get_event as db_get_event,
    get_rsvp as db_get_rsvp,
    list_rsvps_for_event as db_list_rsvps_for_event,
    list_rsvps_for_user as db_list_rsvps_for_user,
    count_rsvps_by_response as db_count_rsvps_by_response,
    count_yes_responses as db_count_yes_responses,
    lock_event as db_lock_event,
    upsert_rsvp as db_upsert_rsvp,
    delete_rsvp as db_delete_rsvp,
)
from eventease.events import publisher
from eventease.schemas import RSVPOut
from eventease.services.tally import build_tally
from eventease.websocket.manager import ConnectionManager, event_room

RSVP_RECEIVED = "rsvp-received"


class RSVPService:
    def __init__(self, session: AsyncSession, rooms: Optional[ConnectionManager] = None):
        self.session = session
        self.rooms = rooms

    async def tally(self, event_id) -> Dict[str, int]:
        """Current tally of the event, derived from its stored RSVPs."""
        return build_tally(await db_count_rsvps_by_response(self.session, event_id))

    async def _broadcast(self, event_id, data: dict) -> None:
        if self.rooms is None:
            return
        try:
            delivered = await self.rooms.publish(event_room(event_id), RSVP_RECEIVED, data)
            logger.debug(f"RSVP change on {event_id} delivered to {delivered} connection(s)")
        except Exception as e:
            logger.warning(f"RSVP broadcast for event {event_id} failed: {e}")

    async def submit_rsvp(
        self,
        event_id,
        user_id,
        response,
        message: Optional[str] = None,
        plus_ones: Optional[int] = None,
    ) -> Tuple[RSVP, Dict[str, int]]:
        """
        Record the account's response to an event, replacing any earlier one.

        An empty or omitted message keeps the stored message; an omitted
        ``plus_ones`` keeps the stored count. Capacity counts accounts
        answering Yes; guests brought along are not counted.

        Returns:
            The stored RSVP and the event's tally after the write

        Raises:
            InvalidInputError: If a field is out of range
            NotFoundError: If the event does not exist
            InvalidStateError: If the event is not active or is full
        """
        try:
            response = RSVPResponse(response)
        except ValueError:
            raise InvalidInputError("Response must be Yes, No, or Maybe")
        if plus_ones is not None and not 0 <= plus_ones <= MAX_PLUS_ONES:
            raise InvalidInputError(f"Plus ones must be between 0 and {MAX_PLUS_ONES}")
        if message is not None and len(message) > MAX_MESSAGE_LENGTH:
            raise InvalidInputError(f"Message cannot be more than {MAX_MESSAGE_LENGTH} characters")

        event = await db_get_event(self.session, event_id)
        if not event:
            raise NotFoundError("Event not found")
        if event.status != EventStatus.active:
            raise InvalidStateError("Event is no longer accepting RSVPs")

        if response == RSVPResponse.Yes and event.max_attendees is not None:
            # Held until the upsert commits
            await db_lock_event(self.session, event_id)
            attending = await db_count_yes_responses(self.session, event_id, exclude_user_id=user_id)
            if attending >= event.max_attendees:
                raise InvalidStateError("Event is at full capacity")

        rsvp = await db_upsert_rsvp(self.session, event_id, user_id, response, message, plus_ones)
        stats = await self.tally(event_id)
        logger.info(f"RSVP {response.value} on event {event_id} by {user_id}")

        await self._broadcast(event_id, {
            "eventId": str(event_id),
            "rsvp": RSVPOut.model_validate(rsvp).model_dump(mode="json"),
            "stats": stats,
        })
        await publisher.publish_event("rsvp.updated", {
            "type": "rsvp.updated",
            "event_id": str(event_id),
            "user_id": str(user_id),
            "response": response.value,
        })
        return rsvp, stats

    async def create_or_update_rsvp(
        self,
        event_id,
        user_id,
        response,
        message: Optional[str] = None,
        plus_ones: Optional[int] = None,
    ) -> RSVP:
        """Same as ``submit_rsvp`` but returns only the stored RSVP."""
        rsvp, _ = await self.submit_rsvp(event_id, user_id, response, message, plus_ones)
        return rsvp

    async def get_event_rsvps(self, event_id) -> Tuple[List[RSVP], Dict[str, int]]:
        """All RSVPs for an event, newest first, with the event's tally."""
        event = await db_get_event(self.session, event_id)
        if not event:
            raise NotFoundError("Event not found")
        rows = await db_list_rsvps_for_event(self.session, event_id)
        return rows, await self.tally(event_id)

    async def get_my_rsvp(self, event_id, user_id) -> RSVP:
        rsvp = await db_get_rsvp(self.session, event_id, user_id)
        if not rsvp:
            raise NotFoundError("No RSVP found for this event")
        return rsvp

    async def list_my_rsvps(self, user_id) -> List[RSVP]:
        return await db_list_rsvps_for_user(self.session, user_id)

    async def withdraw_rsvp(self, event_id, user_id) -> Dict[str, int]:
        """
        Withdraw the account's RSVP and broadcast the new tally.

        Returns:
            The event's tally after the delete

        Raises:
            NotFoundError: If the account has no RSVP for the event
        """
        removed = await db_delete_rsvp(self.session, event_id, user_id)
        if not removed:
            raise NotFoundError("RSVP not found")

        stats = await self.tally(event_id)
        logger.info(f"RSVP on event {event_id} withdrawn by {user_id}")
        await self._broadcast(event_id, {
            "eventId": str(event_id),
            "rsvp": None,
            "deleted": True,
            "userId": str(user_id),
            "stats": stats,
        })
        await publisher.publish_event("rsvp.deleted", {
            "type": "rsvp.deleted",
            "event_id": str(event_id),
            "user_id": str(user_id),
        })
        return stats

    async def delete_rsvp(self, event_id, user_id) -> None:
        await self.withdraw_rsvp(event_id, user_id)
