from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

@dataclass(frozen=True)
class ShopSession:
    """Explicit platform context handed to every gateway call."""
    shop_domain: str
    access_token: str

    def __repr__(self) -> str:
        return f"ShopSession(shop_domain={self.shop_domain!r})"

class ChargeStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    active = "active"
    declined = "declined"
    expired = "expired"
    frozen = "frozen"
    cancelled = "cancelled"

LIVE_CHARGE_STATUSES = {ChargeStatus.pending, ChargeStatus.accepted, ChargeStatus.active}

# ---------- remote entities ----------
class _Remote(BaseModel):
    model_config = ConfigDict(extra="ignore")

class RecurringCharge(_Remote):
    id: int
    name: Optional[str] = None
    status: ChargeStatus
    price: Optional[float] = None
    capped_amount: Optional[float] = None
    terms: Optional[str] = None
    confirmation_url: Optional[str] = None
    return_url: Optional[str] = None
    test: Optional[bool] = None

class RecurringChargeRequest(BaseModel):
    name: str
    price: float
    capped_amount: float
    terms: str
    return_url: str
    test: bool = False

class UsageCharge(_Remote):
    id: Optional[int] = None
    description: str
    price: float
    recurring_application_charge_id: Optional[int] = None

class WebhookSubscription(_Remote):
    id: Optional[int] = None
    topic: str
    address: str
    format: str = "json"

class Variant(_Remote):
    id: int
    inventory_quantity: int = 0

class Metafield(_Remote):
    namespace: Optional[str] = None
    key: str
    value: Any = None

# ---------- inbound webhook payload ----------
class LineItem(_Remote):
    variant_id: Optional[int] = None

class OrderEvent(_Remote):
    id: Optional[int] = None
    line_items: List[LineItem]
