# giftbasket/services/orders.py
import json
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from ..config import Settings
from ..errors import BadPayload, BillingError, PlatformError, Unauthorized, UpstreamFailure
from ..schemas import Metafield, OrderEvent, ShopSession
from ..utils.locks import KeyedLock
from ..utils.logging import logger
from ..utils.shopify import normalize_shop_domain, verify_webhook
from .billing import BillingManager
from .gateway import PlatformGateway
from .idempotency import DeliveryLedger
from .sessions import ShopSessionStore

HMAC_HEADERS = ("x-platform-hmac-sha256", "x-shopify-hmac-sha256")
SHOP_HEADERS = ("x-platform-shop-domain", "x-shopify-shop-domain")
DELIVERY_HEADERS = ("x-platform-webhook-id", "x-shopify-webhook-id")

INGREDIENTS_KEY = "ingredients"
ORDER_CREATE_TOPIC = "orders/create"

def _header(headers: Mapping[str, str], names) -> Optional[str]:
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for name in names:
        value = lowered.get(name)
        if value:
            return value
    return None

def parse_ingredients(value: Any) -> List[int]:
    """
    Linked variant ids from an `ingredients` metafield.
    Comma-separated string is the canonical form; a JSON list is tolerated.
    Blank and non-numeric entries are skipped.
    """
    if value is None:
        return []
    if isinstance(value, str) and value.strip().startswith("["):
        try:
            value = json.loads(value)
        except ValueError:
            pass
    items = value if isinstance(value, list) else str(value).split(",")

    ids: List[int] = []
    for item in items:
        text = str(item).strip()
        if not text:
            continue
        try:
            ids.append(int(text))
        except ValueError:
            logger.warning("Ignoring non-numeric ingredient id %r", text)
    return ids

@dataclass
class WebhookOutcome:
    shop: str
    delivery_id: Optional[str] = None
    duplicate: bool = False
    usage_charged: bool = False
    decremented: List[int] = field(default_factory=list)

class OrderWebhookProcessor:
    def __init__(
        self,
        settings: Settings,
        store: ShopSessionStore,
        billing: BillingManager,
        gateway: PlatformGateway,
        ledger: DeliveryLedger,
        locks: Optional[KeyedLock] = None,
    ):
        self.settings = settings
        self.store = store
        self.billing = billing
        self.gateway = gateway
        self.ledger = ledger
        self._locks = locks or KeyedLock()

    def handle(self, body: bytes, headers: Mapping[str, str]) -> WebhookOutcome:
        # 1. authenticity of this very message
        if not verify_webhook(body, _header(headers, HMAC_HEADERS), self.settings.secret_bytes):
            logger.warning("Webhook rejected: bad HMAC")
            raise Unauthorized("You're not authorized to perform this action.")

        # 2. installed shop
        try:
            shop = normalize_shop_domain(_header(headers, SHOP_HEADERS))
        except ValueError:
            raise Unauthorized("You're not authorized to perform this action.")
        token = self.store.get(shop)
        if token is None:
            logger.warning("Webhook for unknown shop %s", shop)
            raise Unauthorized("You're not authorized to perform this action.")
        session = ShopSession(shop, token)

        # 3. payload shape before any side effect
        try:
            event = OrderEvent.model_validate_json(body)
        except ValidationError as e:
            raise BadPayload(f"Malformed order payload: {e.error_count()} error(s)")

        # 4. redelivery
        delivery_id = _header(headers, DELIVERY_HEADERS)
        outcome = WebhookOutcome(shop=shop, delivery_id=delivery_id)
        if delivery_id and not self.ledger.claim(delivery_id, shop=shop, topic=ORDER_CREATE_TOPIC):
            logger.info("Duplicate delivery %s for %s; skipping", delivery_id, shop)
            outcome.duplicate = True
            return outcome

        # 5. usage fee, fail-open
        try:
            self.billing.charge_usage(session, self.settings.USAGE_PRICE)
            outcome.usage_charged = True
        except BillingError as e:
            logger.warning("Usage charge skipped for %s: %s", shop, e.message)

        # 6. linked inventory
        try:
            for item in event.line_items:
                if item.variant_id is None:
                    continue
                for linked_id in self._ingredients_of(session, item.variant_id):
                    self._decrement(session, linked_id)
                    outcome.decremented.append(linked_id)
        except PlatformError as e:
            if delivery_id:
                self.ledger.release(delivery_id)
            logger.error(
                "Inventory update incomplete for %s (order %s, %d done): %s",
                shop, event.id, len(outcome.decremented), e.message,
            )
            raise UpstreamFailure("Inventory update failed; retry the delivery")
        except Exception:
            # unexpected failure: the delivery must stay retryable
            if delivery_id:
                self.ledger.release(delivery_id)
            raise

        logger.info("Order %s for %s: decremented %s", event.id, shop, outcome.decremented)
        return outcome

    def _ingredients_of(self, session: ShopSession, variant_id: int) -> List[int]:
        metafields: List[Metafield] = self.gateway.get_variant_metafields(session, variant_id)
        ids: List[int] = []
        for mf in metafields:
            if mf.key == INGREDIENTS_KEY:
                ids.extend(parse_ingredients(mf.value))
        return ids

    def _decrement(self, session: ShopSession, variant_id: int) -> None:
        # read-modify-write serialized per variant; no CAS on the remote side
        with self._locks.hold((session.shop_domain, variant_id)):
            variant = self.gateway.get_variant(session, variant_id)
            updated = variant.model_copy(update={"inventory_quantity": variant.inventory_quantity - 1})
            self.gateway.save_variant(session, updated)
