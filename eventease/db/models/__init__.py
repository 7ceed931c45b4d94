"""Database models package."""
from eventease.db.models.user import User, RoleEnum
from eventease.db.models.event import Event, EventCategory, EventStatus
from eventease.db.models.rsvp import RSVP, RSVPResponse

__all__ = ["User", "RoleEnum", "Event", "EventCategory", "EventStatus", "RSVP", "RSVPResponse"]
