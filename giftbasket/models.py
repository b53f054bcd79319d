from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import BigInteger, DateTime, Integer, String, Text, func
from .database import Base

# SQLite only autoincrements INTEGER primary keys
_PK = BigInteger().with_variant(Integer, "sqlite")

# ----------------------------
# Installed shops (offline tokens)
# ----------------------------
class Shop(Base):
    __tablename__ = "shops"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    shop_domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    installed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

# ----------------------------
# Webhook deliveries seen (dedup by delivery id)
# ----------------------------
class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    delivery_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    shop_domain: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    topic: Mapped[Optional[str]] = mapped_column(String(128))
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
