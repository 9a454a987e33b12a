"""Pytest fixtures for Stampman tests."""

from decimal import Decimal

import pytest

from stampman.models import (
    Business,
    Client,
    LoyaltyCard,
    PurchaseTier,
    Reward,
    StampTier,
)


@pytest.fixture
def business(db):
    """Create a test business."""
    return Business.objects.create(
        code="BIZ-001",
        name="Corner Bakery",
        logo="https://example.com/logo.png",
        email="bakery@example.com",
    )


@pytest.fixture
def other_business(db):
    """Create a second business."""
    return Business.objects.create(code="BIZ-002", name="Coffee Stop")


@pytest.fixture
def client_a(db):
    """Create a test client."""
    return Client.objects.create(
        code="CLI-001",
        first_name="John",
        last_name="Doe",
        email="John@Example.com",
    )


@pytest.fixture
def client_b(db):
    """Create a second client."""
    return Client.objects.create(
        code="CLI-002",
        first_name="Jane",
        last_name="Roe",
        email="jane@example.com",
    )


@pytest.fixture
def make_card(db):
    """Card factory with a consistent balance."""

    def _make(client, business, available=0, used=0):
        return LoyaltyCard.objects.create(
            client=client,
            business=business,
            total_stamps=available + used,
            available_stamps=available,
            used_stamps=used,
            level=(available + used) // 10 + 1,
        )

    return _make


@pytest.fixture
def card(make_card, client_a, business):
    """Card of client_a at business with 10 points available."""
    return make_card(client_a, business, available=10)


@pytest.fixture
def reward(db, business):
    """Reward costing 10 points with unlimited stock."""
    return Reward.objects.create(
        business=business,
        name="Free coffee",
        description="Any size",
        point_cost=10,
    )


@pytest.fixture
def tiers(db, business):
    """Small / medium / large sale tiers."""
    return [
        StampTier.objects.create(
            business=business,
            name="Small",
            purchase_tier=PurchaseTier.SMALL,
            min_amount=Decimal("0.00"),
            stamp_value=1,
        ),
        StampTier.objects.create(
            business=business,
            name="Medium",
            purchase_tier=PurchaseTier.MEDIUM,
            min_amount=Decimal("50.00"),
            stamp_value=2,
        ),
        StampTier.objects.create(
            business=business,
            name="Large",
            purchase_tier=PurchaseTier.LARGE,
            min_amount=Decimal("100.00"),
            stamp_value=5,
        ),
    ]
