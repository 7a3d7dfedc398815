# config.py

"""Application configuration utilities.

Values are primarily loaded from ``config.json`` and may be overridden by
environment variables. The :func:`get_settings` helper merges the two sources
and caches the result.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayProvider(str, Enum):
    """Payment gateway used for customer checkout.

    ``MOCK`` issues sandbox intents locally and is meant for development;
    ``NONE`` disables online payments so only staff-asserted payments work.
    """

    RAZORPAY = "razorpay"
    MOCK = "mock"
    NONE = "none"


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./dev_orders.db"
    timezone: str = "Asia/Kolkata"
    currency: str = "INR"
    tax_rate: float = 18.0
    gst_split: bool = False
    service_charge_rate: float = 0.0
    round_off_bills: bool = True
    money_rounding: str = "bankers"
    round_off_rounding: str = "half-up"
    cas_max_attempts: int = 3
    order_number_fallback: bool = True
    gateway_provider: GatewayProvider = GatewayProvider.RAZORPAY
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None
    gateway_base_url: str = "https://api.razorpay.com/v1"
    gateway_timeout_secs: float = 10.0
    secret_key: str = "change-me"
    log_level: str = "INFO"
    error_dsn: str | None = None


# Cached singleton to avoid repeated file reads
@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence.

    The configuration is read from ``config.json`` located alongside this file
    and fed into :class:`Settings`. Environment variables override any values
    from the JSON file. A missing file simply leaves the field defaults in
    place.
    """

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        k.lower(): v
        for k, v in os.environ.items()
        if k.lower() in Settings.model_fields
    }
    merged = {**data, **env_override}
    # Environment variables override values from the JSON file.
    return Settings(**merged)
