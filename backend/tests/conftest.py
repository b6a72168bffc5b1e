"""Test fixtures for the camp registration backend."""
from __future__ import annotations

import datetime
import os
from collections.abc import AsyncIterator
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ["PAYMENTS_WEBHOOK_VERIFY"] = "false"
os.environ["STRIPE_SECRET_KEY"] = ""

from campreg.api import deps
from campreg.core.config import get_settings
from campreg.db.base import Base
from campreg.db.session import dispose_engine, get_sessionmaker
from campreg.integrations import CheckoutSession, StripeClient, StripeClientError
from campreg.main import app
from campreg.models import Addon, Camp, Tenant


class RecordingStripeClient(StripeClient):
    """Demo-mode Stripe client that remembers every session request."""

    def __init__(self) -> None:
        super().__init__(None, currency="usd")
        self.calls: list[dict[str, Any]] = []
        self.fail = False

    def create_checkout_session(self, **kwargs: Any) -> CheckoutSession:
        self.calls.append(kwargs)
        if self.fail:
            raise StripeClientError("Payment provider unavailable")
        return super().create_checkout_session(**kwargs)


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest.fixture()
def stripe_client() -> RecordingStripeClient:
    return RecordingStripeClient()


@pytest_asyncio.fixture()
async def app_context(
    reset_database: AsyncIterator[None],
    db_url: str,
    stripe_client: RecordingStripeClient,
) -> AsyncIterator[dict[str, Any]]:
    """Yield an async client plus a seeded tenant, camp and add-ons."""
    sessionmaker = get_sessionmaker(db_url)

    async with sessionmaker() as session:
        tenant = Tenant(name="HQ", slug="hq", tax_rate_percent=Decimal("8.000"))
        session.add(tenant)
        await session.flush()

        camp = Camp(
            tenant_id=tenant.id,
            name="Summer Speed Camp",
            slug="summer-speed-camp",
            start_date=datetime.date(2026, 7, 6),
            end_date=datetime.date(2026, 7, 10),
            capacity=5,
            price_cents=30000,
        )
        session.add(camp)
        await session.flush()

        shirt = Addon(
            tenant_id=tenant.id,
            camp_id=camp.id,
            name="Camp T-Shirt",
            price_cents=2500,
            is_taxable=True,
        )
        lunch = Addon(
            tenant_id=tenant.id,
            camp_id=camp.id,
            name="Lunch Plan",
            price_cents=4000,
            is_taxable=False,
        )
        session.add_all([shirt, lunch])
        await session.commit()

        context: dict[str, Any] = {
            "tenant_id": tenant.id,
            "camp_id": camp.id,
            "camp_slug": camp.slug,
            "shirt_addon_id": shirt.id,
            "lunch_addon_id": lunch.id,
            "stripe": stripe_client,
        }

    app.dependency_overrides[deps.get_stripe_client] = lambda: stripe_client
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            context["client"] = client
            yield context
    finally:
        app.dependency_overrides.pop(deps.get_stripe_client, None)
