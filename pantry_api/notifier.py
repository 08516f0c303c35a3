import json
import logging

import redis.asyncio as redis

from .config import REDIS_URL

logger = logging.getLogger(__name__)


def pantry_channel(user_id: int) -> str:
    return f"pantry_updates:{user_id}"


async def publish_pantry_event(user_id: int, event: str, **data) -> None:
    """Push a pantry change to the owner's channel.

    The write has already been committed when this runs, so a Redis outage is
    logged and does not fail the request.
    """
    message = json.dumps({"event": event, **data}, default=str)
    client = await redis.from_url(REDIS_URL, encoding="utf-8", decode_responses=True)
    try:
        await client.publish(pantry_channel(user_id), message)
    except redis.RedisError as exc:
        logger.warning("Could not publish %s for user %s: %s", event, user_id, exc)
    finally:
        await client.aclose()
