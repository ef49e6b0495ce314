"""Pytest configuration and fixtures."""

import os

# Set test environment variables before importing settings
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")

import pytest
from unittest.mock import MagicMock

from tillbook.models.records import UserSession
from tillbook.services.store_service import StoreService
from tests.fakes import FakeStore, inventory_row, order_row


@pytest.fixture
def store():
    """A fake store seeded with three items and one open order."""
    fake = FakeStore()
    fake.seed(
        "inventory",
        inventory_row("A", 10, name="Rice 5kg", cost=40.0, price=55.0),
        inventory_row("B", 3, name="Cooking Oil", cost=20.0, price=28.0),
        inventory_row("C", 0, name="Sugar", cost=8.0, price=12.0),
    )
    fake.seed(
        "purchase_orders",
        order_row("PO-1", [{"itemId": "A", "name": "Rice 5kg", "quantity": 5, "unitCost": 2.0}]),
    )
    return fake


@pytest.fixture
def notices():
    return []


@pytest.fixture
def service(store, notices):
    """A StoreService over the fake store, loaded and without a session."""
    svc = StoreService(store_client=store, notifier=notices.append)
    svc.refresh()
    return svc


@pytest.fixture
def admin_session():
    return UserSession(user_id="u-admin", email="owner@example.com", role="admin", access_token="admin-token")


@pytest.fixture
def cashier_session():
    return UserSession(user_id="u-cashier", email="till@example.com", role="cashier", access_token="cashier-token")


@pytest.fixture
def mock_gemini_client():
    """Create a mock Gemini client."""
    client = MagicMock()
    client.generate_text.return_value = "**Sales are healthy.**"
    return client
