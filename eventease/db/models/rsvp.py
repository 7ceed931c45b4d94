from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index, UniqueConstraint, Uuid
import uuid
from sqlalchemy.orm import relationship
from eventease.db.session import Base, utcnow
import enum

MAX_PLUS_ONES = 10
MAX_MESSAGE_LENGTH = 200


class RSVPResponse(str, enum.Enum):
    Yes = "Yes"
    No = "No"
    Maybe = "Maybe"


class RSVP(Base):
    __tablename__ = "rsvps"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    response = Column(Enum(RSVPResponse), nullable=False)
    message = Column(String(MAX_MESSAGE_LENGTH), nullable=False, default="")
    plus_ones = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User")
    event = relationship("Event")

    # One RSVP per account per event; the upsert targets this constraint
    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_event_user_rsvp'),
        Index('idx_rsvp_user', 'user_id'),
        Index('idx_rsvp_event', 'event_id'),
    )
