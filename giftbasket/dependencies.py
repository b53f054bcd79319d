# giftbasket/dependencies.py
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .auth.shopify_oauth import OnboardingFlow
from .config import Settings
from .database import create_tables, get_sessionmaker
from .services.billing import BillingManager
from .services.gateway import PlatformGateway, ShopifyGateway
from .services.idempotency import DeliveryLedger, InMemoryDeliveryLedger, SqlDeliveryLedger
from .services.orders import OrderWebhookProcessor
from .services.sessions import InMemoryShopSessionStore, ShopSessionStore, SqlShopSessionStore
from .utils.locks import KeyedLock

@dataclass
class Services:
    settings: Settings
    store: ShopSessionStore
    ledger: DeliveryLedger
    gateway: PlatformGateway
    billing: BillingManager
    onboarding: OnboardingFlow
    orders: OrderWebhookProcessor

def build_services(
    settings: Settings,
    gateway: Optional[PlatformGateway] = None,
    store: Optional[ShopSessionStore] = None,
    ledger: Optional[DeliveryLedger] = None,
) -> Services:
    """Assemble the object graph once per app; tests pass fakes for any piece."""
    if settings.DATABASE_URL and (store is None or ledger is None):
        if settings.AUTO_CREATE_TABLES:
            create_tables(settings.DATABASE_URL)
        factory = get_sessionmaker(settings.DATABASE_URL)
        store = store or SqlShopSessionStore(factory)
        ledger = ledger or SqlDeliveryLedger(factory)
    store = store or InMemoryShopSessionStore()
    ledger = ledger or InMemoryDeliveryLedger(ttl_seconds=settings.WEBHOOK_DEDUP_TTL)
    gateway = gateway or ShopifyGateway(
        api_key=settings.SHOPIFY_API_KEY,
        api_secret=settings.SHOPIFY_API_SECRET.get_secret_value(),
        api_version=settings.SHOPIFY_API_VERSION,
        timeout=settings.PLATFORM_TIMEOUT,
        max_retries=settings.PLATFORM_MAX_RETRIES,
    )
    billing = BillingManager(gateway, settings)
    locks = KeyedLock()
    return Services(
        settings=settings,
        store=store,
        ledger=ledger,
        gateway=gateway,
        billing=billing,
        onboarding=OnboardingFlow(settings, store, gateway, billing, locks=locks),
        orders=OrderWebhookProcessor(settings, store, billing, gateway, ledger, locks=locks),
    )

def get_services(request: Request) -> Services:
    return request.app.state.services

def get_onboarding(request: Request) -> OnboardingFlow:
    return get_services(request).onboarding

def get_order_processor(request: Request) -> OrderWebhookProcessor:
    return get_services(request).orders
