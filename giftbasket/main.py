from typing import Optional

from fastapi import FastAPI

from .auth.auth import router as auth_router
from .config import Settings, get_settings
from .dependencies import build_services
from .routes.webhooks import router as webhooks_router
from .services.gateway import PlatformGateway
from .services.idempotency import DeliveryLedger
from .services.sessions import ShopSessionStore
from .utils.logging import configure_logging

def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PlatformGateway] = None,
    store: Optional[ShopSessionStore] = None,
    ledger: Optional[DeliveryLedger] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Gift Basket",
                  description="Install, billing and order webhooks for the Gift Basket app",
        version="0.1.0",
        docs_url="/docs",          # Swagger UI
        redoc_url="/redoc",        # ReDoc
        openapi_url="/openapi.json")
    app.state.services = build_services(settings, gateway=gateway, store=store, ledger=ledger)

    app.include_router(auth_router)
    app.include_router(webhooks_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app

app = create_app()
