"""
Standardized Redis client utilities for Linguapress services.
Wraps the stream commands the job queue needs with consistent logging.
"""

from typing import Any, Dict, List, Optional, Tuple

import redis

from shared.app_logging.logger import get_logger
from shared.config.settings import get_redis_url, get_settings

StreamEntry = Tuple[str, Dict[str, Any]]


class RedisClient:
    """Redis client with lazy connection and connection pooling."""

    def __init__(self, service_name: str, client: Optional[redis.Redis] = None):
        self.service_name = service_name
        self.settings = get_settings()
        self._client: Optional[redis.Redis] = client
        self._logger = get_logger(f"{service_name}.redis")

    def _serialize_value(self, value: Any) -> Any:
        """Convert values to Redis-compatible types."""
        if value is None:
            return ""
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (bytes, str, int, float)):
            return value
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return str(value)

    def _get_client(self) -> redis.Redis:
        """Get or create Redis client with connection pooling."""
        if self._client is None:
            try:
                self._client = redis.from_url(
                    get_redis_url(),
                    decode_responses=True,
                    socket_timeout=self.settings.service.redis_timeout,
                    retry_on_timeout=True,
                    max_connections=20,
                    health_check_interval=30,
                )
                self._client.ping()
                self._logger.info("✅ Connected to Redis successfully")
            except Exception as e:
                self._client = None
                self._logger.error(f"❌ Failed to connect to Redis: {e}")
                raise

        return self._client

    def ping(self) -> bool:
        """Test Redis connection."""
        try:
            return bool(self._get_client().ping())
        except Exception as e:
            self._logger.error(f"Redis ping failed: {e}")
            return False

    def xadd(
        self,
        stream: str,
        fields: Dict[str, Any],
        maxlen: Optional[int] = None,
        approximate: bool = True,
    ) -> str:
        """Add message to a Redis stream with optional trimming."""
        try:
            encoded_fields = {k: self._serialize_value(v) for k, v in fields.items()}
            return self._get_client().xadd(
                stream, encoded_fields, maxlen=maxlen, approximate=approximate
            )
        except Exception as e:
            self._logger.error(f"Failed to add to stream {stream}: {e}")
            raise

    def xreadgroup(
        self,
        group: str,
        consumer: str,
        streams: Dict[str, str],
        count: int = 1,
        block: Optional[int] = 1000,
    ) -> List[Tuple[str, List[StreamEntry]]]:
        """Read from Redis stream with consumer group."""
        try:
            return self._get_client().xreadgroup(group, consumer, streams, count=count, block=block) or []
        except Exception as e:
            self._logger.error(f"Failed to read from stream group {group}: {e}")
            raise

    def xgroup_create(self, stream: str, group: str, id: str = "0", mkstream: bool = True) -> bool:
        """Create consumer group for stream; an existing group counts as success."""
        try:
            self._get_client().xgroup_create(stream, group, id=id, mkstream=mkstream)
            self._logger.info(f"Created consumer group {group} for stream {stream}")
            return True
        except redis.exceptions.ResponseError as e:
            if "BUSYGROUP" in str(e):
                self._logger.debug(f"Consumer group {group} already exists")
                return True
            self._logger.error(f"Failed to create consumer group {group}: {e}")
            raise

    def xack(self, stream: str, group: str, message_id: str) -> int:
        """Acknowledge message in consumer group."""
        try:
            return self._get_client().xack(stream, group, message_id)
        except Exception as e:
            self._logger.error(f"Failed to ack message {message_id}: {e}")
            raise

    def xpending_range(
        self,
        stream: str,
        group: str,
        min_id: str = "-",
        max_id: str = "+",
        count: int = 10,
    ) -> List[Dict[str, Any]]:
        """Get pending messages in consumer group."""
        try:
            return self._get_client().xpending_range(stream, group, min_id, max_id, count)
        except Exception as e:
            self._logger.error(f"Failed to get pending messages: {e}")
            return []

    def xautoclaim(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_time: int,
        start_id: str = "0-0",
        count: int = 10,
    ) -> List[StreamEntry]:
        """Claim entries other consumers left pending for at least min_idle_time ms."""
        try:
            result = self._get_client().xautoclaim(
                stream, group, consumer, min_idle_time, start_id=start_id, count=count
            )
        except Exception as e:
            self._logger.error(f"Failed to claim pending messages on {stream}: {e}")
            return []
        # [next_start_id, entries] or [next_start_id, entries, deleted_ids]
        entries = result[1] if result and len(result) > 1 else []
        return [(msg_id, fields) for msg_id, fields in entries if fields]

    def xinfo_stream(self, stream: str) -> Dict[str, Any]:
        return self._get_client().xinfo_stream(stream)

    def xinfo_groups(self, stream: str) -> List[Dict[str, Any]]:
        return self._get_client().xinfo_groups(stream)

    def close(self):
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._logger.info("Redis connection closed")


# Global Redis client instances for each service
_redis_clients: Dict[str, RedisClient] = {}


def get_redis_client(service_name: str) -> RedisClient:
    """Get or create Redis client for a service."""
    if service_name not in _redis_clients:
        _redis_clients[service_name] = RedisClient(service_name)
    return _redis_clients[service_name]


def close_all_redis_clients():
    """Close all Redis client connections."""
    for client in _redis_clients.values():
        client.close()
    _redis_clients.clear()
