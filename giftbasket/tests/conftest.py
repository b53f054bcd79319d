import base64
import hashlib
import hmac
import os
import threading
import time

# giftbasket.main builds its module-level app from the environment
os.environ.setdefault("SHOPIFY_API_KEY", "test-key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-secret")
os.environ.setdefault("APP_URL", "https://giftbasket.example")

import pytest

from giftbasket.config import Settings
from giftbasket.dependencies import build_services
from giftbasket.errors import PlatformError
from giftbasket.schemas import ChargeStatus, Metafield, RecurringCharge, UsageCharge, Variant, WebhookSubscription
from giftbasket.services.sessions import InMemoryShopSessionStore

SECRET = "test-secret"
SHOP = "acme.example"
TOKEN = "shpat_acme"

def sign_install(params: dict, secret: str = SECRET) -> str:
    pairs = sorted((k, v) for k, v in params.items() if k not in ("hmac", "signature"))
    msg = "&".join(f"{k}={v}" for k, v in pairs)
    return hmac.new(secret.encode(), msg.encode(), hashlib.sha256).hexdigest()

def signed_query(params: dict, secret: str = SECRET) -> str:
    params = dict(params, hmac=sign_install(params, secret))
    return "&".join(f"{k}={v}" for k, v in params.items())

def sign_webhook(body: bytes, secret: str = SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()

def webhook_headers(body: bytes, shop: str = SHOP, delivery_id: str | None = None, secret: str = SECRET) -> dict:
    headers = {
        "X-Platform-Hmac-Sha256": sign_webhook(body, secret),
        "X-Platform-Shop-Domain": shop,
        "Content-Type": "application/json",
    }
    if delivery_id:
        headers["X-Platform-Webhook-Id"] = delivery_id
    return headers

class FakeGateway:
    """In-memory stand-in for the platform; records every call by name."""

    def __init__(self):
        self._lock = threading.Lock()
        self.calls: list[tuple[str, tuple]] = []
        self.token = TOKEN
        self.charges: dict[int, RecurringCharge] = {}
        self.usage: list[UsageCharge] = []
        self.webhooks: list[WebhookSubscription] = []
        self.inventory: dict[int, int] = {}
        self.metafields: dict[int, list[Metafield]] = {}
        self.failing: set[str] = set()
        self.read_delay = 0.0
        self._next_id = 1000

    # ---------- helpers for tests ----------
    def _record(self, name, *args):
        with self._lock:
            self.calls.append((name, args))
        if name in self.failing:
            raise PlatformError(f"{name} failed", status=503, retryable=True)

    def count(self, name) -> int:
        return sum(1 for n, _ in self.calls if n == name)

    def _new_id(self) -> int:
        with self._lock:
            self._next_id += 1
            return self._next_id

    def add_charge(self, status: ChargeStatus, charge_id: int | None = None) -> RecurringCharge:
        cid = charge_id or self._new_id()
        charge = RecurringCharge(
            id=cid, name="Gift Basket Plan", status=status, price=4.99,
            confirmation_url=f"https://{SHOP}/admin/charges/{cid}/confirm",
        )
        self.charges[cid] = charge
        return charge

    def link(self, variant_id: int, value, namespace: str = "test"):
        self.metafields[variant_id] = [Metafield(namespace=namespace, key="ingredients", value=value)]

    # ---------- PlatformGateway ----------
    def exchange_token(self, shop, code):
        self._record("exchange_token", shop, code)
        return self.token

    def list_recurring_charges(self, session):
        self._record("list_recurring_charges", session)
        return list(self.charges.values())

    def get_recurring_charge(self, session, charge_id):
        self._record("get_recurring_charge", session, charge_id)
        if charge_id not in self.charges:
            raise PlatformError("Not Found", status=404)
        return self.charges[charge_id]

    def create_recurring_charge(self, session, charge):
        self._record("create_recurring_charge", session, charge)
        created = self.add_charge(ChargeStatus.pending)
        created = created.model_copy(update={"return_url": charge.return_url, "terms": charge.terms})
        self.charges[created.id] = created
        return created

    def activate_recurring_charge(self, session, charge_id):
        self._record("activate_recurring_charge", session, charge_id)
        charge = self.charges[charge_id].model_copy(update={"status": ChargeStatus.active})
        self.charges[charge_id] = charge
        return charge

    def create_usage_charge(self, session, charge_id, description, price):
        self._record("create_usage_charge", session, charge_id, description, price)
        usage = UsageCharge(id=self._new_id(), description=description, price=price,
                            recurring_application_charge_id=charge_id)
        self.usage.append(usage)
        return usage

    def list_webhooks(self, session, topic):
        self._record("list_webhooks", session, topic)
        return [w for w in self.webhooks if w.topic == topic]

    def create_webhook(self, session, topic, address):
        self._record("create_webhook", session, topic, address)
        webhook = WebhookSubscription(id=self._new_id(), topic=topic, address=address)
        self.webhooks.append(webhook)
        return webhook

    def get_variant(self, session, variant_id):
        self._record("get_variant", session, variant_id)
        qty = self.inventory.get(variant_id, 0)
        if self.read_delay:
            time.sleep(self.read_delay)
        return Variant(id=variant_id, inventory_quantity=qty)

    def get_variant_metafields(self, session, variant_id):
        self._record("get_variant_metafields", session, variant_id)
        return list(self.metafields.get(variant_id, []))

    def save_variant(self, session, variant):
        self._record("save_variant", session, variant.id, variant.inventory_quantity)
        self.inventory[variant.id] = variant.inventory_quantity
        return variant

@pytest.fixture
def settings():
    return Settings(
        SHOPIFY_API_KEY="test-key",
        SHOPIFY_API_SECRET=SECRET,
        APP_URL="https://giftbasket.example/",
        DATABASE_URL=None,
        _env_file=None,
    )

@pytest.fixture
def gateway():
    return FakeGateway()

@pytest.fixture
def store():
    return InMemoryShopSessionStore()

@pytest.fixture
def services(settings, gateway, store):
    return build_services(settings, gateway=gateway, store=store)

@pytest.fixture
def installed(store):
    """acme.example already holds a token."""
    store.put(SHOP, TOKEN)
    return store
