import asyncio
import json
import uuid
from aio_pika import connect_robust, ExchangeType
from sqlalchemy import select
from eventease.core.config import settings
from eventease.core.logging import logger
from eventease.db.session import AsyncSessionLocal
from eventease.db.models import Event, User
from eventease.events.publisher import EXCHANGE_NAME
from eventease.websocket.manager import ConnectionManager, user_room

QUEUE_NAME = "eventease.notifications"


async def handle_message(body: bytes, rooms: ConnectionManager, session_factory=AsyncSessionLocal) -> int:
    """
    Turn an ``rsvp.updated`` domain event into a notification for the event owner.

    Returns the number of owner connections notified.
    """
    data = json.loads(body.decode())
    if data.get("type") != "rsvp.updated":
        return 0

    event_id = uuid.UUID(data["event_id"])
    user_id = uuid.UUID(data["user_id"])
    async with session_factory() as session:
        ev = (await session.execute(select(Event).where(Event.id == event_id))).scalars().first()
        usr = (await session.execute(select(User).where(User.id == user_id))).scalars().first()
    if not ev:
        logger.debug(f"Skipping notification for missing event {event_id}")
        return 0
    if str(ev.created_by) == str(user_id):
        return 0

    payload = {
        "eventId": str(ev.id),
        "eventTitle": ev.title,
        "response": data.get("response"),
        "respondent": usr.name if usr else None,
    }
    return await rooms.publish(user_room(ev.created_by), "rsvp-notification", payload)


async def run_worker(rooms: ConnectionManager):
    max_retries = settings.WORKER_MAX_RETRIES
    delay = settings.WORKER_RETRY_DELAY
    for attempt in range(1, max_retries + 1):
        try:
            connection = await connect_robust(settings.RABBITMQ_URL)
            logger.info("Successfully connected to RabbitMQ")
            break
        except Exception as e:
            logger.error(f"RabbitMQ connection failed (attempt {attempt}/{max_retries}): {e}")
            if attempt == max_retries:
                raise
            await asyncio.sleep(delay)
    channel = await connection.channel()
    exchange = await channel.declare_exchange(EXCHANGE_NAME, ExchangeType.TOPIC, durable=True)
    queue = await channel.declare_queue(QUEUE_NAME, durable=True)
    await queue.bind(exchange, routing_key="rsvp.*")
    async with queue.iterator() as queue_iter:
        async for message in queue_iter:
            async with message.process():
                try:
                    await handle_message(message.body, rooms)
                except Exception as e:
                    logger.exception(f"Error handling message: {e}")
