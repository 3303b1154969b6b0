# utils/cache.py
import logging

import redis

from config import config  # Import the singleton instance

logger = logging.getLogger(__name__)


def create_redis_client(url: str | None = None):
    """Connects to Redis. Returns None when the server is unreachable."""
    url = url or config.REDIS_URL
    try:
        # decode_responses=False: passwords are stored as raw Fernet tokens
        client = redis.from_url(
            url, decode_responses=False, socket_timeout=10, health_check_interval=30
        )
        client.ping()
        logger.info(f"Utils/Cache: Successfully connected to Redis at {url}")
        return client
    except redis.exceptions.ConnectionError as e:
        logger.critical(
            f"Utils/Cache: Failed to connect to Redis: {e}. User store and request logs will be unavailable.",
            exc_info=True,
        )
    except redis.exceptions.RedisError as e:
        logger.critical(f"Utils/Cache: Error initializing Redis client: {e}", exc_info=True)
    return None
