# giftbasket/routes/webhooks.py
from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_order_processor
from ..errors import WebhookError
from ..services.orders import OrderWebhookProcessor

router = APIRouter(prefix="/webhook", tags=["webhooks"])

@router.post("/order_create")
async def order_create(request: Request, processor: OrderWebhookProcessor = Depends(get_order_processor)):
    raw = await request.body()  # HMAC is over these exact bytes
    try:
        outcome = await run_in_threadpool(processor.handle, raw, request.headers)
    except WebhookError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if outcome.duplicate:
        return {"ok": True, "dedup": True}
    return {
        "ok": True,
        "usage_charged": outcome.usage_charged,
        "decremented": outcome.decremented,
    }
