# giftbasket/services/idempotency.py
import threading
import time
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..models import WebhookDelivery

class DeliveryLedger(Protocol):
    """Atomic check-and-mark of webhook delivery ids."""

    def claim(self, delivery_id: str, shop: Optional[str] = None, topic: Optional[str] = None) -> bool: ...
    def release(self, delivery_id: str) -> None: ...

class InMemoryDeliveryLedger:
    """Seen-set with a TTL; the platform stops redelivering well within a day."""

    def __init__(self, ttl_seconds: int = 86400, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._seen: Dict[str, float] = {}

    def _purge(self, now: float) -> None:
        expired = [k for k, exp in self._seen.items() if exp <= now]
        for k in expired:
            del self._seen[k]

    def claim(self, delivery_id: str, shop: Optional[str] = None, topic: Optional[str] = None) -> bool:
        now = self._clock()
        with self._lock:
            self._purge(now)
            if delivery_id in self._seen:
                return False
            self._seen[delivery_id] = now + self._ttl
            return True

    def release(self, delivery_id: str) -> None:
        with self._lock:
            self._seen.pop(delivery_id, None)

class SqlDeliveryLedger:
    def __init__(self, factory: sessionmaker) -> None:
        self._factory = factory

    def claim(self, delivery_id: str, shop: Optional[str] = None, topic: Optional[str] = None) -> bool:
        with self._factory() as db:
            db.add(WebhookDelivery(delivery_id=delivery_id, shop_domain=shop, topic=topic))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False
            return True

    def release(self, delivery_id: str) -> None:
        with self._factory() as db:
            db.execute(delete(WebhookDelivery).where(WebhookDelivery.delivery_id == delivery_id))
            db.commit()
