import redis.asyncio as aioredis
import logging
from typing import Optional

from src.core.entities.token import ResolvedToken
from src.core.interfaces.datasource import ITokenCache

logger = logging.getLogger(__name__)

KEY_PREFIX = "swaptrace:token:"


class RedisTokenCache(ITokenCache):
    """
    Token cache shared between processes. Any Redis failure is a cache miss.
    """

    def __init__(self, redis_url: Optional[str], ttl_seconds: int = 86400, client=None):
        self.ttl_seconds = ttl_seconds
        self.client = client
        if self.client is None and redis_url:
            # Connects lazily on the first command
            self.client = aioredis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
        elif self.client is None:
            logger.info("REDIS_URL not set. Token caching disabled.")

    async def connect(self) -> bool:
        if not self.client:
            return False
        try:
            await self.client.ping()
            logger.info("Connected to Redis for token caching.")
            return True
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Lookups will miss until it recovers.")
            return False

    async def get(self, address: str) -> Optional[ResolvedToken]:
        if not self.client:
            return None
        try:
            data = await self.client.get(KEY_PREFIX + address)
            if data:
                return ResolvedToken.model_validate_json(data)
            return None
        except Exception as e:
            logger.warning(f"Redis get error: {e}")
            return None

    async def set(self, address: str, entry: ResolvedToken) -> None:
        if not self.client:
            return
        try:
            await self.client.setex(KEY_PREFIX + address, self.ttl_seconds, entry.model_dump_json())
        except Exception as e:
            logger.warning(f"Redis set error: {e}")

    async def delete(self, address: str):
        if not self.client:
            return
        try:
            await self.client.delete(KEY_PREFIX + address)
        except Exception as e:
            logger.warning(f"Redis delete error: {e}")

    async def close(self):
        if self.client:
            await self.client.aclose()
