"""Shared fixtures for the order engine unit tests."""

import os
import pathlib
import sys
from datetime import datetime, timezone
from decimal import Decimal

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from api.app.catalog import CatalogItem, MemoryCatalog  # noqa: E402
from api.app.domain.values import Principal, TaxRate  # noqa: E402
from api.app.events import EventBus  # noqa: E402
from api.app.pricing.calculator import PricingPolicy  # noqa: E402
from api.app.repos.memory_orders_repo import MemoryOrdersRepo  # noqa: E402
from api.app.services.order_service import OrderService  # noqa: E402

NOW = datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def staff() -> Principal:
    return Principal(id="staff-1", role="staff")


@pytest.fixture
def customer() -> Principal:
    return Principal(id="cust-1", role="customer")


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog(
        [
            CatalogItem("burger", "Burger", Decimal("100")),
            CatalogItem("fries", "Fries", Decimal("50")),
            CatalogItem("tea", "Tea", Decimal("12.50")),
            CatalogItem("soup", "Soup", Decimal("80"), available=False),
        ]
    )


@pytest.fixture
def policy() -> PricingPolicy:
    return PricingPolicy(taxes=(TaxRate("GST", Decimal("18")),), round_off=True)


@pytest.fixture
def repo() -> MemoryOrdersRepo:
    return MemoryOrdersRepo()


@pytest.fixture
def service(repo, catalog, policy) -> OrderService:
    return OrderService(repo, catalog, policy, events=EventBus(), clock=lambda: NOW)
