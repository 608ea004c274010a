from redis.asyncio import Redis
from khata.config import Config
import logging

logger = logging.getLogger(__name__)

# Initialize
redis_client = Redis.from_url(
    Config.REDIS_URL,
    decode_responses=True
)


async def check_redis_connection():
    try:
        await redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning("Redis connection failed: %s", e)
