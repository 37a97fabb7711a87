# app/core/auth/rate_limit.py
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from app.config.settings import settings


@dataclass(frozen=True)
class _Bucket:
    count: int
    window_start: float


class WindowedRateLimiter:
    """
    Contador por clave con ventana fija.

    Cada clave guarda (count, window_start). Cuando la ventana vence el
    bucket se reemplaza completo; los buckets vencidos se eliminan en cada
    llamada para que el mapa no crezca sin límite.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Registrar un intento; False si la clave superó el límite"""
        now = self._clock()
        with self._lock:
            self._evict_expired(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(count=1, window_start=now)
            else:
                bucket = _Bucket(count=bucket.count + 1, window_start=bucket.window_start)
            self._buckets[key] = bucket
            return bucket.count <= self.limit

    def reset(self, key: str = None):
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)

    def __len__(self):
        return len(self._buckets)

    def _evict_expired(self, now: float):
        expired = [
            key for key, bucket in self._buckets.items()
            if now - bucket.window_start >= self.window_seconds
        ]
        for key in expired:
            del self._buckets[key]


login_rate_limiter = WindowedRateLimiter(
    limit=settings.login_rate_limit,
    window_seconds=settings.login_rate_window_seconds
)
