from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Dict, List, Generic, TypeVar
from uuid import UUID
from datetime import date as date_type, datetime, timezone
from eventease.db.models.event import EventCategory, EventStatus
from eventease.db.models.user import RoleEnum
from eventease.db.models.rsvp import RSVPResponse, MAX_PLUS_ONES, MAX_MESSAGE_LENGTH

T = TypeVar("T")


def _check_length(value: Optional[str], label: str, minimum: int, maximum: int) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not minimum <= len(value) <= maximum:
        raise ValueError(f"{label} must be between {minimum} and {maximum} characters")
    return value


class ResponseEnvelope(BaseModel, Generic[T]):
    """``{success, data?, message?, count?, total?, stats?}`` wrapper for every response."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    count: Optional[int] = None
    total: Optional[int] = None
    stats: Optional[Dict[str, int]] = None


# Accounts

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _check_length(v, "Name", 2, 100)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _check_length(v, "Name", 2, 100)


class UserOut(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: RoleEnum

    class Config:
        from_attributes = True


class AccountSummary(BaseModel):
    """Display fields of an account joined onto events and RSVPs."""
    id: UUID
    name: str
    email: str

    class Config:
        from_attributes = True


# Events

class EventCreate(BaseModel):
    title: str
    description: str
    date: date_type
    time: str
    location: str
    max_attendees: Optional[int] = Field(None, alias="maxAttendees")
    is_public: bool = Field(True, alias="isPublic")
    category: EventCategory = EventCategory.other

    class Config:
        populate_by_name = True

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_length(v, "Title", 3, 100)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _check_length(v, "Description", 10, 500)

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return _check_length(v, "Location", 3, 100)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        if not v or not v.strip():
            raise ValueError("Event time is required")
        return v.strip()

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        if v < datetime.now(timezone.utc).date():
            raise ValueError("Event date cannot be in the past")
        return v

    @field_validator("max_attendees")
    @classmethod
    def validate_max_attendees(cls, v):
        if v is not None and v < 1:
            raise ValueError("Max attendees must be a positive number")
        return v


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[date_type] = None
    time: Optional[str] = None
    location: Optional[str] = None
    max_attendees: Optional[int] = Field(None, alias="maxAttendees")
    is_public: Optional[bool] = Field(None, alias="isPublic")
    category: Optional[EventCategory] = None
    status: Optional[EventStatus] = None

    class Config:
        populate_by_name = True

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_length(v, "Title", 3, 100)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _check_length(v, "Description", 10, 500)

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return _check_length(v, "Location", 3, 100)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Event time cannot be empty")
        return v.strip() if v is not None else v

    @field_validator("max_attendees")
    @classmethod
    def validate_max_attendees(cls, v):
        if v is not None and v < 1:
            raise ValueError("Max attendees must be a positive number")
        return v


class EventOut(BaseModel):
    id: UUID
    title: str
    description: str
    date: date_type
    time: str
    location: str
    created_by: UUID
    creator: Optional[AccountSummary] = None
    invite_token: str
    max_attendees: Optional[int] = None
    is_public: bool
    category: EventCategory
    status: EventStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventDetail(EventOut):
    """Single event with its live RSVP tally."""
    rsvp_stats: Dict[str, int]
    attendees: List[AccountSummary] = []
    my_response: Optional[RSVPResponse] = None


class EventSummary(BaseModel):
    id: UUID
    title: str
    date: date_type
    location: str
    creator: Optional[AccountSummary] = None

    class Config:
        from_attributes = True


# RSVPs

class RSVPCreate(BaseModel):
    response: RSVPResponse
    message: Optional[str] = None
    plus_ones: Optional[int] = Field(None, alias="plusOnes")

    class Config:
        populate_by_name = True

    @field_validator("response", mode="before")
    @classmethod
    def validate_response(cls, v):
        if v not in {r.value for r in RSVPResponse}:
            raise ValueError("Response must be Yes, No, or Maybe")
        return v

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message cannot be more than {MAX_MESSAGE_LENGTH} characters")
        return v

    @field_validator("plus_ones", mode="before")
    @classmethod
    def validate_plus_ones(cls, v):
        if v is None:
            return v
        if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v <= MAX_PLUS_ONES:
            raise ValueError(f"Plus ones must be between 0 and {MAX_PLUS_ONES}")
        return v


class RSVPOut(BaseModel):
    id: UUID
    event_id: UUID
    user_id: UUID
    response: RSVPResponse
    message: str
    plus_ones: int
    timestamp: datetime
    user: Optional[AccountSummary] = None
    event: Optional[EventSummary] = None

    class Config:
        from_attributes = True


__all__ = [
    "ResponseEnvelope", "Token", "TokenResponse", "RefreshTokenRequest", "LoginRequest",
    "UserCreate", "UserUpdate", "UserOut", "AccountSummary",
    "EventCreate", "EventUpdate", "EventOut", "EventDetail", "EventSummary",
    "RSVPCreate", "RSVPOut", "EventCategory", "EventStatus", "RSVPResponse",
]
