"""
Repository layer for database operations.

Async functions for CRUD on accounts, events and RSVPs. The public event
listing is cached in Redis; RSVP data never is, so tallies always reflect the
stored rows.
"""
import uuid
from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy import select, update, delete, or_, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventease.cache.cache_decorators import cached, invalidate
from eventease.core.config import settings
from eventease.core.logging import logger
from eventease.core.security import hash_password
from eventease.db.models.event import Event, EventStatus
from eventease.db.models.rsvp import RSVP, RSVPResponse
from eventease.db.models.user import User
from eventease.db.session import utcnow
from eventease.schemas import UserCreate, EventCreate, EventOut

EVENTS_LIST_CACHE = "events:list"
EVENTS_COUNT_CACHE = "events:count"

# Dialects with native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


# Accounts

async def create_user(db: AsyncSession, user_in: UserCreate) -> User:
    """
    Create a new account with a hashed password.

    Args:
        db: Database session
        user_in: Registration data

    Returns:
        Created User object
    """
    user = User(email=user_in.email, name=user_in.name, hashed_password=hash_password(user_in.password))
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    q = select(User).where(User.email == email)
    res = await db.execute(q)
    return res.scalars().first()


async def get_user(db: AsyncSession, user_id) -> Optional[User]:
    q = select(User).where(User.id == user_id)
    res = await db.execute(q)
    return res.scalars().first()


async def update_user(db: AsyncSession, user: User, fields: dict) -> User:
    """Apply a partial profile update."""
    for key, value in fields.items():
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    return user


# Events

def _event_query():
    return (
        select(Event)
        .options(selectinload(Event.creator))
        .execution_options(populate_existing=True)
    )


async def get_event(db: AsyncSession, event_id) -> Optional[Event]:
    """Event by id with its creator loaded, or None."""
    res = await db.execute(_event_query().where(Event.id == event_id))
    return res.scalars().first()


async def get_event_by_invite_token(db: AsyncSession, token: str) -> Optional[Event]:
    res = await db.execute(_event_query().where(Event.invite_token == token))
    return res.scalars().first()


async def create_event(db: AsyncSession, payload: EventCreate, creator_id) -> Event:
    """
    Create a new event and invalidate the cached listing.

    The invite token is generated by the column default.
    """
    ev = Event(**payload.model_dump(), created_by=creator_id)
    db.add(ev)
    await db.commit()
    await invalidate_event_listing()
    return await get_event(db, ev.id)


async def update_event(db: AsyncSession, event: Event, fields: dict) -> Event:
    for key, value in fields.items():
        setattr(event, key, value)
    event.updated_at = utcnow()
    await db.commit()
    await invalidate_event_listing()
    return await get_event(db, event.id)


async def delete_event(db: AsyncSession, event: Event) -> None:
    """Delete an event and every RSVP referencing it in one transaction."""
    await db.execute(delete(RSVP).where(RSVP.event_id == event.id))
    await db.delete(event)
    await db.commit()
    await invalidate_event_listing()


async def invalidate_event_listing() -> None:
    await invalidate(EVENTS_LIST_CACHE)
    await invalidate(EVENTS_COUNT_CACHE)


def _apply_listing_filters(q, category: Optional[str], search: Optional[str]):
    """Public listing only shows active, public events."""
    q = q.where(Event.status == EventStatus.active, Event.is_public.is_(True))
    if category:
        q = q.where(Event.category == category)
    if search:
        needle = search.lower()
        q = q.where(or_(
            func.lower(Event.title).contains(needle, autoescape=True),
            func.lower(Event.description).contains(needle, autoescape=True),
            func.lower(Event.location).contains(needle, autoescape=True),
        ))
    return q


@cached(EVENTS_LIST_CACHE, expire=settings.EVENTS_CACHE_TTL)
async def list_events(
    db: AsyncSession,
    limit: int = 10,
    offset: int = 0,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[dict]:
    """
    One page of the public event listing, newest first.

    Returns JSON-ready dicts so the page can be cached as-is.
    """
    q = _apply_listing_filters(_event_query(), category, search)
    q = q.order_by(Event.created_at.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return [EventOut.model_validate(ev).model_dump(mode="json") for ev in res.scalars().all()]


@cached(EVENTS_COUNT_CACHE, expire=settings.EVENTS_CACHE_TTL)
async def count_events(
    db: AsyncSession,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> int:
    q = _apply_listing_filters(select(func.count(Event.id)), category, search)
    res = await db.execute(q)
    return res.scalar() or 0


async def list_events_by_creator(db: AsyncSession, creator_id) -> List[Event]:
    q = _event_query().where(Event.created_by == creator_id).order_by(Event.created_at.desc())
    res = await db.execute(q)
    return list(res.scalars().all())


# RSVPs

def _rsvp_query():
    """RSVPs joined with respondent and event (and event owner) for display."""
    return (
        select(RSVP)
        .options(
            selectinload(RSVP.user),
            selectinload(RSVP.event).selectinload(Event.creator),
        )
        .execution_options(populate_existing=True)
    )


async def get_rsvp(db: AsyncSession, event_id, user_id) -> Optional[RSVP]:
    q = _rsvp_query().where(RSVP.event_id == event_id, RSVP.user_id == user_id)
    res = await db.execute(q)
    return res.scalars().first()


async def list_rsvps_for_event(db: AsyncSession, event_id) -> List[RSVP]:
    q = _rsvp_query().where(RSVP.event_id == event_id).order_by(RSVP.timestamp.desc())
    res = await db.execute(q)
    return list(res.scalars().all())


async def list_rsvps_for_user(db: AsyncSession, user_id) -> List[RSVP]:
    q = _rsvp_query().where(RSVP.user_id == user_id).order_by(RSVP.timestamp.desc())
    res = await db.execute(q)
    return list(res.scalars().all())


async def count_rsvps_by_response(db: AsyncSession, event_id) -> List[Tuple[RSVPResponse, int]]:
    """``(response, count)`` for each response present on the event."""
    q = (
        select(RSVP.response, func.count(RSVP.id))
        .where(RSVP.event_id == event_id)
        .group_by(RSVP.response)
    )
    res = await db.execute(q)
    return [(row[0], row[1]) for row in res.all()]


async def count_yes_responses(db: AsyncSession, event_id, exclude_user_id=None) -> int:
    """Accounts answering Yes, optionally leaving one account out."""
    q = select(func.count(RSVP.id)).where(
        RSVP.event_id == event_id,
        RSVP.response == RSVPResponse.Yes,
    )
    if exclude_user_id is not None:
        q = q.where(RSVP.user_id != exclude_user_id)
    res = await db.execute(q)
    return res.scalar() or 0


def event_lock_query(event_id):
    """``SELECT ... FOR UPDATE`` on the event row; SQLite compiles it without the lock clause."""
    return select(Event.id).where(Event.id == event_id).with_for_update()


async def lock_event(db: AsyncSession, event_id) -> None:
    """
    Hold the event row until the session commits.

    Capacity checks take this lock before counting, so two accounts answering
    Yes at once are serialized and the second sees the first's row.
    """
    await db.execute(event_lock_query(event_id))


async def list_attendees(db: AsyncSession, event_id) -> List[User]:
    """Accounts answering Yes, earliest response first."""
    q = (
        select(User)
        .join(RSVP, RSVP.user_id == User.id)
        .where(RSVP.event_id == event_id, RSVP.response == RSVPResponse.Yes)
        .order_by(RSVP.timestamp.asc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())


def _merged_fields(response: RSVPResponse, message: Optional[str], plus_ones: Optional[int], now: datetime) -> dict:
    """
    Columns overwritten when an RSVP already exists.

    Response and timestamp always change; message only for a non-empty value;
    plus_ones whenever a value was supplied.
    """
    fields = {"response": response, "timestamp": now}
    if message:
        fields["message"] = message
    if plus_ones is not None:
        fields["plus_ones"] = plus_ones
    return fields


def _new_row(event_id, user_id, response, message, plus_ones, now) -> dict:
    return {
        "id": uuid.uuid4(),
        "event_id": event_id,
        "user_id": user_id,
        "response": response,
        "message": message or "",
        "plus_ones": plus_ones if plus_ones is not None else 0,
        "timestamp": now,
    }


async def upsert_rsvp(
    db: AsyncSession,
    event_id,
    user_id,
    response: RSVPResponse,
    message: Optional[str] = None,
    plus_ones: Optional[int] = None,
) -> RSVP:
    """
    Create the account's RSVP for the event or update it in place.

    Uses ``INSERT ... ON CONFLICT (event_id, user_id) DO UPDATE`` where the
    dialect supports it, so concurrent submissions collapse onto one row.
    Other dialects go through ``upsert_rsvp_with_retry``.
    """
    dialect = db.get_bind().dialect.name
    insert_for_dialect = _UPSERT_INSERTS.get(dialect)
    if insert_for_dialect is None:
        return await upsert_rsvp_with_retry(db, event_id, user_id, response, message, plus_ones)

    now = utcnow()
    stmt = insert_for_dialect(RSVP.__table__).values(**_new_row(event_id, user_id, response, message, plus_ones, now))
    stmt = stmt.on_conflict_do_update(
        index_elements=["event_id", "user_id"],
        set_=_merged_fields(response, message, plus_ones, now),
    )
    await db.execute(stmt)
    await db.commit()
    return await get_rsvp(db, event_id, user_id)


async def upsert_rsvp_with_retry(
    db: AsyncSession,
    event_id,
    user_id,
    response: RSVPResponse,
    message: Optional[str] = None,
    plus_ones: Optional[int] = None,
) -> RSVP:
    """
    Upsert for stores without native conflict handling.

    Tries the insert first; a violation of ``uq_event_user_rsvp`` means a row
    already exists (possibly written by a concurrent request), so the
    transaction is rolled back and the row is updated instead.
    """
    now = utcnow()
    try:
        await db.execute(RSVP.__table__.insert().values(**_new_row(event_id, user_id, response, message, plus_ones, now)))
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.debug(f"RSVP for event {event_id} by {user_id} exists, updating instead: {e.orig}")
        await db.execute(
            update(RSVP)
            .where(RSVP.event_id == event_id, RSVP.user_id == user_id)
            .values(**_merged_fields(response, message, plus_ones, now))
        )
        await db.commit()
    return await get_rsvp(db, event_id, user_id)


async def delete_rsvp(db: AsyncSession, event_id, user_id) -> bool:
    """Delete the account's RSVP; False when there was none."""
    res = await db.execute(
        delete(RSVP).where(RSVP.event_id == event_id, RSVP.user_id == user_id)
    )
    await db.commit()
    return res.rowcount > 0
