from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, Enum, Index, Uuid
import uuid
from sqlalchemy.orm import relationship
from eventease.db.session import Base, utcnow
import enum


class EventCategory(str, enum.Enum):
    """Event category/tag enum."""
    party = "party"
    meeting = "meeting"
    conference = "conference"
    wedding = "wedding"
    birthday = "birthday"
    other = "other"


class EventStatus(str, enum.Enum):
    """Lifecycle status; only active events accept RSVPs."""
    active = "active"
    cancelled = "cancelled"
    completed = "completed"


def generate_invite_token() -> str:
    return str(uuid.uuid4())


class Event(Base):
    __tablename__ = "events"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(20), nullable=False)
    location = Column(String(100), nullable=False)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    invite_token = Column(String(36), unique=True, nullable=False, default=generate_invite_token)
    max_attendees = Column(Integer, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    category = Column(Enum(EventCategory), nullable=False, default=EventCategory.other)
    status = Column(Enum(EventStatus), nullable=False, default=EventStatus.active)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    creator = relationship("User")

    __table_args__ = (
        Index('idx_event_date', 'date'),
        Index('idx_event_creator', 'created_by'),
        Index('idx_event_created_at', 'created_at'),
        Index('idx_event_category', 'category'),
        Index('idx_event_status', 'status'),
    )
