from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from eventease.schemas import EventCreate, EventUpdate, EventOut, EventDetail, AccountSummary
from eventease.db.models.event import Event
from eventease.db.repositories import (
    create_event as db_create_event,
    get_event as db_get_event,
    get_event_by_invite_token as db_get_event_by_invite_token,
    update_event as db_update_event,
    delete_event as db_delete_event,
    list_events as db_list_events,
    count_events as db_count_events,
    list_events_by_creator as db_list_events_by_creator,
    count_rsvps_by_response as db_count_rsvps_by_response,
    get_rsvp as db_get_rsvp,
    list_attendees as db_list_attendees,
)
from eventease.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from eventease.core.logging import logger
from eventease.events import publisher
from eventease.services.tally import build_tally
from typing import List, Optional, Tuple


class EventService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_event(self, payload: EventCreate, user_id) -> Event:
        try:
            event = await db_create_event(self.session, payload, user_id)
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(f"Event insert rejected by constraint: {e.orig}")
            raise ConflictError("Could not allocate a unique invite link, please retry")
        logger.info(f"Event {event.id} created by {user_id}")
        await publisher.publish_event("event.created", {"type": "event.created", "event_id": str(event.id), "created_by": str(user_id)})
        return event

    async def _require_event(self, event_id) -> Event:
        event = await db_get_event(self.session, event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    async def _with_stats(self, event: Event, viewer_id=None) -> EventDetail:
        stats = build_tally(await db_count_rsvps_by_response(self.session, event.id))
        my_response = None
        if viewer_id is not None:
            mine = await db_get_rsvp(self.session, event.id, viewer_id)
            my_response = mine.response if mine else None
        attendees = [AccountSummary.model_validate(u) for u in await db_list_attendees(self.session, event.id)]
        base = EventOut.model_validate(event).model_dump()
        return EventDetail(**base, rsvp_stats=stats, attendees=attendees, my_response=my_response)

    async def get_event(self, event_id, viewer_id=None) -> EventDetail:
        """Event with its RSVP tally; ``my_response`` filled in for a signed-in viewer."""
        event = await self._require_event(event_id)
        return await self._with_stats(event, viewer_id)

    async def get_event_by_invite_token(self, token: str, viewer_id=None) -> EventDetail:
        event = await db_get_event_by_invite_token(self.session, token)
        if not event:
            raise NotFoundError("Event not found")
        return await self._with_stats(event, viewer_id)

    async def update_event(self, event_id, user_id, payload: EventUpdate) -> Event:
        """
        Partially update an event owned by ``user_id``.

        Raises:
            NotFoundError: If the event does not exist
            ForbiddenError: If the caller is not the creator
        """
        event = await self._require_event(event_id)
        if event.created_by != user_id:
            raise ForbiddenError("Not authorized to update this event")

        # Explicit null only means something for max_attendees (unlimited)
        fields = {
            key: value for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key == "max_attendees"
        }
        updated = await db_update_event(self.session, event, fields)
        logger.info(f"Event {event_id} updated: {sorted(fields)}")
        await publisher.publish_event("event.updated", {"type": "event.updated", "event_id": str(event_id), "fields": sorted(fields)})
        return updated

    async def delete_event(self, event_id, user_id) -> None:
        """Delete an event owned by ``user_id`` together with its RSVPs."""
        event = await self._require_event(event_id)
        if event.created_by != user_id:
            raise ForbiddenError("Not authorized to delete this event")

        await db_delete_event(self.session, event)
        logger.info(f"Event {event_id} deleted by {user_id}")
        await publisher.publish_event("event.deleted", {"type": "event.deleted", "event_id": str(event_id)})

    async def list_events_paginated(
        self,
        page: int,
        limit: int,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[int, List[dict]]:
        """
        One page of active public events.
        Returns tuple of (total_count, events).
        """
        total = await db_count_events(self.session, category=category, search=search)
        events = await db_list_events(
            self.session,
            limit=limit,
            offset=(page - 1) * limit,
            category=category,
            search=search,
        )
        return total, events

    async def list_my_events(self, user_id) -> List[Event]:
        return await db_list_events_by_creator(self.session, user_id)
