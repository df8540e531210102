"""
Redis-backed local cache for offline progress backups
"""
import redis
import logging
from typing import Any, Callable, Optional, Protocol
from onboarding_engine.config import settings

logger = logging.getLogger(__name__)


class LocalCache(Protocol):
    """String key/value store holding the local backup of a session"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> bool:
        ...

    def remove(self, key: str) -> bool:
        ...


def backup_key(session_id: str) -> str:
    """Cache key of a session backup"""
    return f"{settings.BACKUP_KEY_PREFIX}{session_id}"


class BackupCache:
    """
    LocalCache over Redis

    Backups expire after BACKUP_TTL seconds. When backups are disabled or
    Redis cannot be reached at startup, every call is a no-op: get returns
    None, set and remove return False.
    """

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        self.client: Optional[redis.Redis] = None

        if not (settings.OFFLINE_BACKUP_ENABLED if enabled is None else enabled):
            logger.info("Offline backup disabled by configuration")
            return

        try:
            client = redis.from_url(url or settings.REDIS_URL, decode_responses=True, socket_connect_timeout=5)
            client.ping()
        except redis.RedisError as e:
            logger.warning(f"Backup cache unavailable, offline backup disabled: {str(e)}")
            return

        self.client = client
        logger.info("Backup cache connected")

    @property
    def available(self) -> bool:
        return self.client is not None

    def _call(self, operation: str, key: str, action: Callable[[redis.Redis], Any], fallback: Any) -> Any:
        if self.client is None:
            return fallback
        try:
            return action(self.client)
        except redis.RedisError as e:
            logger.error(f"Backup cache {operation} failed for {key}: {str(e)}")
            return fallback

    def get(self, key: str) -> Optional[str]:
        value = self._call("get", key, lambda client: client.get(key), None)
        logger.debug(f"Backup cache {'hit' if value else 'miss'}: {key}")
        return value or None

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Store a backup, replacing any previous one"""
        ttl = ttl or settings.BACKUP_TTL
        return self._call("set", key, lambda client: bool(client.setex(key, ttl, value)), False)

    def remove(self, key: str) -> bool:
        return self._call("remove", key, lambda client: client.delete(key) >= 0, False)


backup_cache = BackupCache()
