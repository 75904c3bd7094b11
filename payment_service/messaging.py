import json
import logging
import aio_pika
from tenacity import retry, stop_after_attempt, wait_exponential
from payment_service.config import RABBITMQ_URL

logger = logging.getLogger(__name__)

PAYMENT_EXCHANGE = "payment_exchange"

connection = None
channel = None

@retry(stop=stop_after_attempt(5), wait=wait_exponential(multiplier=1, min=2, max=10), reraise=True)
async def _connect():
    return await aio_pika.connect_robust(RABBITMQ_URL)

async def setup_rabbitmq():
    global connection, channel
    try:
        connection = await _connect()
        channel = await connection.channel()
        await channel.declare_exchange(PAYMENT_EXCHANGE, aio_pika.ExchangeType.TOPIC, durable=True)
        logger.info("RabbitMQ setup complete.")
    except Exception as e:
        # The service keeps serving payments without a broker; events are dropped.
        logger.error(f"Error setting up RabbitMQ: {e}")

async def close_rabbitmq():
    global connection, channel
    if connection:
        await connection.close()
    connection = None
    channel = None

async def publish_event(exchange_name: str, routing_key: str, message_data: dict):
    if not channel:
        logger.warning(f"RabbitMQ channel not available. Dropping event {message_data['event_type']}.")
        return

    message_body = json.dumps(message_data).encode('utf-8')
    message = aio_pika.Message(
        message_body,
        content_type='application/json',
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT
    )

    try:
        exchange = await channel.get_exchange(exchange_name)
        await exchange.publish(message, routing_key=routing_key)
        logger.info(f"Published event to {routing_key}: {message_data['event_type']}")
    except Exception as e:
        logger.error(f"Error publishing event {message_data['event_type']}: {e}")
