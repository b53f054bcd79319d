# giftbasket/auth/auth.py
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from ..dependencies import get_onboarding
from ..errors import AuthError
from ..utils.shopify import parse_raw_query
from .shopify_oauth import OnboardingFlow

router = APIRouter(tags=["auth"])

@router.get("/install")
def install(shop: str | None = None, flow: OnboardingFlow = Depends(get_onboarding)):
    """
    Entry: /install?shop=mystore.myshopify.com
    Redirects the merchant to the platform's authorization screen.
    """
    try:
        url = flow.begin_install(shop)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid shop domain")
    return RedirectResponse(url, status_code=302)

@router.get("/auth")
def oauth_callback(request: Request, flow: OnboardingFlow = Depends(get_onboarding)):
    # signature is over the query exactly as sent, so skip starlette's decoding
    params = parse_raw_query(request.url.query)
    try:
        url = flow.handle_callback(params, params.get("hmac"))
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return RedirectResponse(url, status_code=302)

@router.get("/activatecharge")
def activate_charge(charge_id: str | None = None, shop: str | None = None, flow: OnboardingFlow = Depends(get_onboarding)):
    url = flow.activate_charge(shop, charge_id)
    return RedirectResponse(url, status_code=302)
