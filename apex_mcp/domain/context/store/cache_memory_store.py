from typing import Dict, Any, Optional
import asyncio
from datetime import datetime, timedelta, timezone


class CacheMemoryStore:
    """In-memory item store with TTL support"""

    def __init__(self):
        self.cache: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value, replacing any previous value and expiry"""

        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)

            self.cache[key] = {
                "value": value,
                "expires_at": expires_at
            }

    async def get(self, key: str) -> Optional[str]:
        """Get value if present and not expired"""

        async with self._lock:
            if key not in self.cache:
                return None

            entry = self.cache[key]

            if datetime.now(timezone.utc) >= entry["expires_at"]:
                del self.cache[key]
                return None

            return entry["value"]

    async def delete(self, key: str) -> None:
        """Delete a key; deleting a missing key is a no-op"""

        async with self._lock:
            self.cache.pop(key, None)

    async def clear_expired(self) -> int:
        """Clear expired entries and return count"""

        async with self._lock:
            now = datetime.now(timezone.utc)
            expired_keys = [
                key for key, entry in self.cache.items()
                if now >= entry["expires_at"]
            ]

            for key in expired_keys:
                del self.cache[key]

            return len(expired_keys)

    async def get_stats(self) -> Dict[str, Any]:
        """Get store statistics"""

        async with self._lock:
            now = datetime.now(timezone.utc)
            active_count = sum(
                1 for entry in self.cache.values()
                if now < entry["expires_at"]
            )

            return {
                "backend": "memory",
                "total_keys": len(self.cache),
                "active_keys": active_count,
                "expired_keys": len(self.cache) - active_count
            }
