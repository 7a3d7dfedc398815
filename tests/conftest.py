import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("GATEWAY_PROVIDER", "mock")

from api.app.auth import create_access_token  # noqa: E402
from api.app.catalog import CatalogItem, MemoryCatalog  # noqa: E402
from api.app.main import app, init_services  # noqa: E402
from api.app.payments.gateway import MockGateway  # noqa: E402
from api.app.repos.memory_orders_repo import MemoryOrdersRepo  # noqa: E402
from config import get_settings  # noqa: E402


def auth_header(sub: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(sub, role)}"}


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway("test_secret")


@pytest.fixture
def client(gateway):
    get_settings.cache_clear()
    catalog = MemoryCatalog(
        [
            CatalogItem("burger", "Burger", Decimal("100")),
            CatalogItem("fries", "Fries", Decimal("50")),
            CatalogItem("soup", "Soup", Decimal("80"), available=False),
        ]
    )
    init_services(app, repo=MemoryOrdersRepo(), catalog=catalog, gateway=gateway)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.state.order_service = None
    app.state.payment_service = None


@pytest.fixture
def customer() -> dict[str, str]:
    return auth_header("cust-1", "customer")


@pytest.fixture
def staff() -> dict[str, str]:
    return auth_header("staff-1", "staff")


@pytest.fixture
def other_customer() -> dict[str, str]:
    return auth_header("cust-2", "customer")
