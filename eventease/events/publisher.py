import json
from aio_pika import connect_robust, Message, ExchangeType
from eventease.core.config import settings
from eventease.core.logging import logger

EXCHANGE_NAME = "eventease.events"

_connection = None
_channel = None


async def get_rabbit_connection():
    global _connection, _channel
    if _connection and not _connection.is_closed:
        return _connection, _channel
    _connection = await connect_robust(settings.RABBITMQ_URL)
    _channel = await _connection.channel()
    return _connection, _channel


async def publish_event(routing_key: str, payload: dict) -> bool:
    """
    Publish a domain event (``event.created``, ``rsvp.updated``, ...) to the topic exchange.

    Fire-and-forget: returns False instead of raising when the bus is
    disabled or RabbitMQ cannot be reached.
    """
    if not settings.EVENT_BUS_ENABLED:
        return False
    try:
        _, channel = await get_rabbit_connection()
        exchange = await channel.declare_exchange(EXCHANGE_NAME, ExchangeType.TOPIC, durable=True)
        body = json.dumps(payload, default=str).encode()
        await exchange.publish(Message(body, content_type="application/json"), routing_key=routing_key)
        return True
    except Exception as e:
        logger.error(f"Failed to publish {routing_key}: {e}")
        return False
