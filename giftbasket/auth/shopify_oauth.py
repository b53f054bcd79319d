# giftbasket/auth/shopify_oauth.py
import urllib.parse
from typing import Mapping, Optional

from ..config import Settings
from ..errors import BillingError, ExchangeFailed, InvalidSignature, MissingParameter, PlatformError
from ..schemas import ChargeStatus, ShopSession, WebhookSubscription
from ..services.billing import BillingManager
from ..services.gateway import PlatformGateway
from ..services.sessions import ShopSessionStore
from ..utils.locks import KeyedLock
from ..utils.logging import logger
from ..utils.shopify import normalize_shop_domain, verify_install

SCOPES = ("read_orders", "read_products", "write_products")
ORDER_CREATE_TOPIC = "orders/create"

class OnboardingFlow:
    """
    Install -> callback -> token -> charge -> activation -> webhook subscription.

    State lives on the platform (charges, webhooks) and in the session store;
    this object only drives the transitions.
    """

    def __init__(
        self,
        settings: Settings,
        store: ShopSessionStore,
        gateway: PlatformGateway,
        billing: BillingManager,
        locks: Optional[KeyedLock] = None,
    ):
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.billing = billing
        self._locks = locks or KeyedLock()

    @property
    def callback_url(self) -> str:
        return f"{self.settings.base_url}/auth"

    @property
    def webhook_address(self) -> str:
        return f"{self.settings.base_url}/webhook/order_create"

    @property
    def post_install_url(self) -> str:
        return self.settings.POST_INSTALL_URL

    def begin_install(self, shop: str) -> str:
        """Authorization URL for the merchant. Raises ValueError for a bad shop domain."""
        shop = normalize_shop_domain(shop)
        params = {
            "client_id": self.settings.SHOPIFY_API_KEY,
            "scope": ",".join(SCOPES),
            "redirect_uri": self.callback_url,
        }
        return f"https://{shop}/admin/oauth/authorize?{urllib.parse.urlencode(params)}"

    def handle_callback(self, params: Mapping[str, str], provided_hmac: Optional[str]) -> str:
        """
        `params` are the raw (still percent-encoded) query parameters.
        Returns where to redirect the merchant next.
        """
        if not verify_install(params, provided_hmac, self.settings.secret_bytes):
            logger.warning("Install callback rejected: bad signature (shop=%r)", params.get("shop"))
            raise InvalidSignature("Authentication failed")

        try:
            shop = normalize_shop_domain(urllib.parse.unquote(params.get("shop", "")))
        except ValueError:
            raise MissingParameter("Missing or invalid shop")
        code = urllib.parse.unquote(params.get("code", ""))

        with self._locks.hold(shop):
            token = self.store.get(shop)
            if token is None:
                if not code:
                    raise MissingParameter("Missing code")
                try:
                    token = self.gateway.exchange_token(shop, code)
                except PlatformError as e:
                    logger.error("Token exchange failed for %s: %s", shop, e.message)
                    raise ExchangeFailed("Something went wrong.")
                self.store.put(shop, token)
                logger.info("Stored offline token for %s", shop)
            else:
                logger.info("Shop %s already authenticated; skipping exchange", shop)

        session = ShopSession(shop, token)
        with self._locks.hold(("charge", shop)):
            try:
                confirmation_url = self.billing.ensure_charge(session)
            except BillingError as e:
                logger.error("Recurring charge setup failed for %s: %s", shop, e.message)
                confirmation_url = None

        return confirmation_url or self.post_install_url

    def activate_charge(self, shop: Optional[str], charge_id) -> str:
        """Best effort: failures are logged, the merchant is always sent on."""
        try:
            shop = normalize_shop_domain(shop)
        except ValueError:
            logger.warning("Charge %s returned without a valid shop", charge_id)
            return self.post_install_url

        token = self.store.get(shop)
        if token is None:
            logger.warning("Charge %s returned for unknown shop %s", charge_id, shop)
            return self.post_install_url
        session = ShopSession(shop, token)

        try:
            charge_id = int(charge_id)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid charge id %r for %s", charge_id, shop)
            charge_id = None

        if charge_id is not None:
            try:
                charge = self.gateway.get_recurring_charge(session, charge_id)
                if charge.status == ChargeStatus.accepted:
                    self.gateway.activate_recurring_charge(session, charge.id)
                    logger.info("Activated charge %s for %s", charge.id, shop)
                else:
                    logger.info("Charge %s for %s is %s; nothing to activate", charge.id, shop, charge.status.value)
            except PlatformError as e:
                logger.error("Charge activation failed for %s: %s", shop, e.message)

        try:
            self.ensure_webhook_subscription(session)
        except PlatformError as e:
            logger.error("Webhook subscription failed for %s: %s", shop, e.message)

        return self.post_install_url

    def ensure_webhook_subscription(self, session: ShopSession) -> Optional[WebhookSubscription]:
        """Create the orders/create subscription unless one already points at us."""
        with self._locks.hold(("webhook", session.shop_domain)):
            existing = self.gateway.list_webhooks(session, ORDER_CREATE_TOPIC)
            if any(w.topic == ORDER_CREATE_TOPIC and w.address == self.webhook_address for w in existing):
                return None
            webhook = self.gateway.create_webhook(session, ORDER_CREATE_TOPIC, self.webhook_address)
        logger.info("Subscribed %s to %s", session.shop_domain, ORDER_CREATE_TOPIC)
        return webhook
