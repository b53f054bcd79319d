# giftbasket/services/gateway.py
"""
Remote-call boundary to the commerce platform (Shopify Admin REST).

Every call takes the ShopSession explicitly; nothing here remembers a "current" shop.
Responses are validated into pydantic models and anything unexpected becomes a
PlatformError, so callers never branch on the presence of raw JSON fields.
"""
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from ..errors import PlatformError
from ..schemas import (
    Metafield,
    RecurringCharge,
    RecurringChargeRequest,
    ShopSession,
    UsageCharge,
    Variant,
    WebhookSubscription,
)
from ..utils.logging import logger

M = TypeVar("M", bound=BaseModel)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

class PlatformGateway(Protocol):
    def exchange_token(self, shop: str, code: str) -> str: ...
    def list_recurring_charges(self, session: ShopSession) -> List[RecurringCharge]: ...
    def get_recurring_charge(self, session: ShopSession, charge_id: int) -> RecurringCharge: ...
    def create_recurring_charge(self, session: ShopSession, charge: RecurringChargeRequest) -> RecurringCharge: ...
    def activate_recurring_charge(self, session: ShopSession, charge_id: int) -> RecurringCharge: ...
    def create_usage_charge(self, session: ShopSession, charge_id: int, description: str, price: float) -> UsageCharge: ...
    def list_webhooks(self, session: ShopSession, topic: str) -> List[WebhookSubscription]: ...
    def create_webhook(self, session: ShopSession, topic: str, address: str) -> WebhookSubscription: ...
    def get_variant(self, session: ShopSession, variant_id: int) -> Variant: ...
    def get_variant_metafields(self, session: ShopSession, variant_id: int) -> List[Metafield]: ...
    def save_variant(self, session: ShopSession, variant: Variant) -> Variant: ...

def _one(model: Type[M], data: Dict[str, Any], key: str) -> M:
    try:
        return model.model_validate(data[key])
    except (KeyError, TypeError, ValidationError) as e:
        raise PlatformError(f"Unexpected response shape for {key!r}: {e}")

def _many(model: Type[M], data: Dict[str, Any], key: str) -> List[M]:
    try:
        return [model.model_validate(item) for item in data[key]]
    except (KeyError, TypeError, ValidationError) as e:
        raise PlatformError(f"Unexpected response shape for {key!r}: {e}")

class ShopifyGateway:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        api_version: str = "2025-01",
        timeout: float = 5.0,
        max_retries: int = 3,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self._api_secret = api_secret
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.http = http or requests.Session()
        self._sleep = sleep

    # ---------- transport ----------
    def _admin_url(self, shop: str, path: str) -> str:
        return f"https://{shop}/admin/api/{self.api_version}/{path}"

    def _request(
        self,
        method: str,
        url: str,
        token: Optional[str] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        retry: bool = False,
    ) -> Dict[str, Any]:
        """
        One HTTP call with a bounded timeout. Only idempotent reads pass retry=True;
        writes are attempted once so a timeout never turns into a duplicate charge.
        """
        headers = {"Accept": "application/json"}
        if token:
            headers["X-Shopify-Access-Token"] = token
        attempts = self.max_retries if retry else 1

        for attempt in range(attempts):
            try:
                r = self.http.request(
                    method, url, headers=headers, json=json, params=params,
                    timeout=self.timeout, allow_redirects=False,
                )
            except requests.RequestException as e:
                err = PlatformError(f"{method} {url}: {type(e).__name__}", retryable=True)
            else:
                if 200 <= r.status_code < 300:
                    if not r.content:
                        return {}
                    try:
                        return r.json()
                    except ValueError:
                        raise PlatformError(f"Invalid JSON from {method} {url}", status=r.status_code)
                snippet = (r.text or "")[:300]
                err = PlatformError(
                    f"{method} {url} -> HTTP {r.status_code}: {snippet}",
                    status=r.status_code,
                    retryable=r.status_code in RETRYABLE_STATUS,
                )

            if err.retryable and attempt < attempts - 1:
                delay = 1.5 * (attempt + 1)
                logger.warning("Retrying %s %s in %.1fs due to: %s", method, url, delay, err.message)
                self._sleep(delay)
                continue
            raise err
        raise PlatformError(f"{method} {url}: no attempt made")

    # ---------- OAuth ----------
    def exchange_token(self, shop: str, code: str) -> str:
        """POST /admin/oauth/access_token for an offline token (offline tokens don't expire)."""
        payload = {
            "client_id": self.api_key,
            "client_secret": self._api_secret,
            "code": code,
        }
        data = self._request("POST", f"https://{shop}/admin/oauth/access_token", json=payload)
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise PlatformError("No access token returned")
        return token

    # ---------- billing ----------
    def list_recurring_charges(self, session: ShopSession) -> List[RecurringCharge]:
        data = self._request(
            "GET", self._admin_url(session.shop_domain, "recurring_application_charges.json"),
            token=session.access_token, retry=True,
        )
        return _many(RecurringCharge, data, "recurring_application_charges")

    def get_recurring_charge(self, session: ShopSession, charge_id: int) -> RecurringCharge:
        data = self._request(
            "GET", self._admin_url(session.shop_domain, f"recurring_application_charges/{int(charge_id)}.json"),
            token=session.access_token, retry=True,
        )
        return _one(RecurringCharge, data, "recurring_application_charge")

    def create_recurring_charge(self, session: ShopSession, charge: RecurringChargeRequest) -> RecurringCharge:
        data = self._request(
            "POST", self._admin_url(session.shop_domain, "recurring_application_charges.json"),
            token=session.access_token,
            json={"recurring_application_charge": charge.model_dump()},
        )
        return _one(RecurringCharge, data, "recurring_application_charge")

    def activate_recurring_charge(self, session: ShopSession, charge_id: int) -> RecurringCharge:
        data = self._request(
            "POST",
            self._admin_url(session.shop_domain, f"recurring_application_charges/{int(charge_id)}/activate.json"),
            token=session.access_token,
            json={"recurring_application_charge": {"id": int(charge_id)}},
        )
        return _one(RecurringCharge, data, "recurring_application_charge")

    def create_usage_charge(self, session: ShopSession, charge_id: int, description: str, price: float) -> UsageCharge:
        data = self._request(
            "POST",
            self._admin_url(session.shop_domain, f"recurring_application_charges/{int(charge_id)}/usage_charges.json"),
            token=session.access_token,
            json={"usage_charge": {"description": description, "price": price}},
        )
        return _one(UsageCharge, data, "usage_charge")

    # ---------- webhooks ----------
    def list_webhooks(self, session: ShopSession, topic: str) -> List[WebhookSubscription]:
        data = self._request(
            "GET", self._admin_url(session.shop_domain, "webhooks.json"),
            token=session.access_token, params={"topic": topic}, retry=True,
        )
        return _many(WebhookSubscription, data, "webhooks")

    def create_webhook(self, session: ShopSession, topic: str, address: str) -> WebhookSubscription:
        data = self._request(
            "POST", self._admin_url(session.shop_domain, "webhooks.json"),
            token=session.access_token,
            json={"webhook": {"topic": topic, "address": address, "format": "json"}},
        )
        return _one(WebhookSubscription, data, "webhook")

    # ---------- catalog ----------
    def get_variant(self, session: ShopSession, variant_id: int) -> Variant:
        data = self._request(
            "GET", self._admin_url(session.shop_domain, f"variants/{int(variant_id)}.json"),
            token=session.access_token, retry=True,
        )
        return _one(Variant, data, "variant")

    def get_variant_metafields(self, session: ShopSession, variant_id: int) -> List[Metafield]:
        data = self._request(
            "GET", self._admin_url(session.shop_domain, f"variants/{int(variant_id)}/metafields.json"),
            token=session.access_token, retry=True,
        )
        return _many(Metafield, data, "metafields")

    def save_variant(self, session: ShopSession, variant: Variant) -> Variant:
        data = self._request(
            "PUT", self._admin_url(session.shop_domain, f"variants/{variant.id}.json"),
            token=session.access_token,
            json={"variant": {"id": variant.id, "inventory_quantity": variant.inventory_quantity}},
        )
        return _one(Variant, data, "variant")
