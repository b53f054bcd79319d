from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    SHOPIFY_API_KEY: str
    SHOPIFY_API_SECRET: SecretStr
    APP_URL: str                      # externally reachable base, e.g. https://giftbasket.example
    SHOPIFY_API_VERSION: str = "2025-01"

    DATABASE_URL: str | None = None   # unset -> in-memory stores
    AUTO_CREATE_TABLES: bool = False

    PLATFORM_TIMEOUT: float = 5.0
    PLATFORM_MAX_RETRIES: int = 3
    WEBHOOK_DEDUP_TTL: int = 86400

    POST_INSTALL_URL: str = (
        "https://www.shopify.com/admin/bulk"
        "?resource_name=ProductVariant"
        "&edit=metafields.test.ingredients:string"
    )

    CHARGE_NAME: str = "Gift Basket Plan"
    CHARGE_PRICE: float = 4.99
    CHARGE_CAPPED_AMOUNT: float = 100.0
    CHARGE_TERMS: str = "$1 for every order created"
    CHARGE_TEST: bool = True
    USAGE_PRICE: float = 1.0
    USAGE_DESCRIPTION: str = "1 dollar per order plan"

    LOG_LEVEL: str = "INFO"
    ENV: str = "dev"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def base_url(self) -> str:
        return self.APP_URL.strip().rstrip("/")

    @property
    def secret_bytes(self) -> bytes:
        return self.SHOPIFY_API_SECRET.get_secret_value().encode("utf-8")

@lru_cache
def get_settings() -> Settings:
    return Settings()
