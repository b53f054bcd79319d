# giftbasket/services/sessions.py
import threading
from typing import Dict, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..models import Shop

class ShopSessionStore(Protocol):
    """shop domain -> offline access token. The only answer to 'is this shop installed?'"""

    def get(self, shop: str) -> Optional[str]: ...
    def put(self, shop: str, access_token: str) -> None: ...
    def has(self, shop: str) -> bool: ...

class InMemoryShopSessionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: Dict[str, str] = {}

    def get(self, shop: str) -> Optional[str]:
        with self._lock:
            return self._tokens.get(shop)

    def put(self, shop: str, access_token: str) -> None:
        with self._lock:
            self._tokens[shop] = access_token

    def has(self, shop: str) -> bool:
        with self._lock:
            return shop in self._tokens

class SqlShopSessionStore:
    """Tokens in the `shops` table; the unique shop_domain settles concurrent inserts."""

    def __init__(self, factory: sessionmaker) -> None:
        self._factory = factory

    def get(self, shop: str) -> Optional[str]:
        with self._factory() as db:
            return db.execute(
                select(Shop.access_token).where(Shop.shop_domain == shop)
            ).scalar_one_or_none()

    def put(self, shop: str, access_token: str) -> None:
        with self._factory() as db:
            existing = db.execute(select(Shop).where(Shop.shop_domain == shop)).scalar_one_or_none()
            if existing:
                existing.access_token = access_token
                db.commit()
                return
            db.add(Shop(shop_domain=shop, access_token=access_token))
            try:
                db.commit()
            except IntegrityError:
                # another worker inserted first; upsert as update
                db.rollback()
                row = db.execute(select(Shop).where(Shop.shop_domain == shop)).scalar_one()
                row.access_token = access_token
                db.commit()

    def has(self, shop: str) -> bool:
        return self.get(shop) is not None
