import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Hashable, Optional, Tuple


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TTLStore:
    """
    Small keyed store where every entry carries its own expiry instant.

    Expiry is checked on read, so a stale entry is never returned even if
    nothing ever purged it. Owners call `clear()` on shutdown.
    """

    def __init__(self, default_ttl: Optional[timedelta] = None):
        self._default_ttl = default_ttl
        self._items: Dict[Hashable, Tuple[Any, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    def _expiry(
        self, ttl: Optional[timedelta], expires_at: Optional[datetime], now: datetime
    ) -> Optional[datetime]:
        if expires_at is not None:
            return expires_at
        ttl = ttl or self._default_ttl
        return now + ttl if ttl else None

    def set(
        self,
        key: Hashable,
        value: Any,
        *,
        ttl: Optional[timedelta] = None,
        expires_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        expires_at = self._expiry(ttl, expires_at, now or _utc_now())
        with self._lock:
            self._items[key] = (value, expires_at)

    def add_if_absent(
        self,
        key: Hashable,
        value: Any,
        *,
        ttl: Optional[timedelta] = None,
        expires_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Store `value` only if `key` is missing or expired. True when stored."""
        now = now or _utc_now()
        expires_at = self._expiry(ttl, expires_at, now)
        with self._lock:
            entry = self._items.get(key)
            if entry is not None and (entry[1] is None or entry[1] > now):
                return False
            self._items[key] = (value, expires_at)
            return True

    def get(self, key: Hashable, default: Any = None, *, now: Optional[datetime] = None) -> Any:
        now = now or _utc_now()
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if expires_at is not None and expires_at <= now:
                del self._items[key]
                return default
            return value

    def contains(self, key: Hashable, *, now: Optional[datetime] = None) -> bool:
        sentinel = object()
        return self.get(key, sentinel, now=now) is not sentinel

    def pop(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._items.pop(key, None)
        return default if entry is None else entry[0]

    def purge_expired(self, *, now: Optional[datetime] = None) -> int:
        now = now or _utc_now()
        with self._lock:
            stale = [
                key
                for key, (_, expires_at) in self._items.items()
                if expires_at is not None and expires_at <= now
            ]
            for key in stale:
                del self._items[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
