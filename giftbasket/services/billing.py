# giftbasket/services/billing.py
from typing import List, Optional
from urllib.parse import urlencode

from ..config import Settings
from ..errors import BillingError, PlatformError
from ..schemas import (
    ChargeStatus,
    RecurringCharge,
    RecurringChargeRequest,
    ShopSession,
    UsageCharge,
)
from ..utils.logging import logger
from .gateway import PlatformGateway

def _latest(charges: List[RecurringCharge], *statuses: ChargeStatus) -> Optional[RecurringCharge]:
    matching = [c for c in charges if c.status in statuses]
    return max(matching, key=lambda c: c.id) if matching else None

class BillingManager:
    """Recurring plan charge plus per-order usage charges on top of it."""

    def __init__(self, gateway: PlatformGateway, settings: Settings):
        self.gateway = gateway
        self.settings = settings

    def activation_url(self, shop: str) -> str:
        # the platform appends charge_id; the shop has to travel with us
        return f"{self.settings.base_url}/activatecharge?{urlencode({'shop': shop})}"

    def plan_for(self, shop: str) -> RecurringChargeRequest:
        s = self.settings
        return RecurringChargeRequest(
            name=s.CHARGE_NAME,
            price=s.CHARGE_PRICE,
            capped_amount=s.CHARGE_CAPPED_AMOUNT,
            terms=s.CHARGE_TERMS,
            return_url=self.activation_url(shop),
            test=s.CHARGE_TEST,
        )

    def ensure_charge(self, session: ShopSession) -> Optional[str]:
        """
        Returns a confirmation URL the merchant must visit, or None when the shop
        already has an accepted/active charge.
          - active/accepted -> None
          - pending         -> the existing confirmation URL (never a second charge)
          - none / declined / expired / ... -> create one
        """
        try:
            charges = self.gateway.list_recurring_charges(session)
        except PlatformError as e:
            raise BillingError(f"Could not list charges for {session.shop_domain}: {e.message}")

        if _latest(charges, ChargeStatus.active, ChargeStatus.accepted):
            return None

        pending = _latest(charges, ChargeStatus.pending)
        if pending and pending.confirmation_url:
            logger.info("Shop %s has pending charge %s; re-sending confirmation", session.shop_domain, pending.id)
            return pending.confirmation_url

        try:
            charge = self.gateway.create_recurring_charge(session, self.plan_for(session.shop_domain))
        except PlatformError as e:
            raise BillingError(f"Could not create charge for {session.shop_domain}: {e.message}")
        if not charge.confirmation_url:
            raise BillingError(f"Charge {charge.id} has no confirmation URL")

        logger.info("Created recurring charge %s for shop %s", charge.id, session.shop_domain)
        return charge.confirmation_url

    def charge_usage(self, session: ShopSession, price: Optional[float] = None) -> UsageCharge:
        price = self.settings.USAGE_PRICE if price is None else price
        try:
            charge = _latest(self.gateway.list_recurring_charges(session), ChargeStatus.active)
            if charge is None:
                raise BillingError(f"No active recurring charge for {session.shop_domain}")
            usage = self.gateway.create_usage_charge(
                session, charge.id, self.settings.USAGE_DESCRIPTION, price
            )
        except PlatformError as e:
            raise BillingError(f"Usage charge rejected for {session.shop_domain}: {e.message}")

        logger.info("Usage charge %.2f created for shop %s (charge %s)", price, session.shop_domain, charge.id)
        return usage
