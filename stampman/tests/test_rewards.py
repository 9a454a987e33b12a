"""Tests for RewardService."""

from datetime import timedelta

import pytest
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.models import Reward, RewardType
from stampman.services import RewardService, TicketService


pytestmark = pytest.mark.django_db


class TestCreateReward:
    def test_create(self, business):
        reward = RewardService.create_reward(
            "BIZ-001",
            name="  Free muffin ",
            point_cost=8,
            reward_type=RewardType.PRODUCT,
            stock=5,
        )
        assert reward.name == "Free muffin"
        assert reward.stock == 5
        assert reward.is_active

    def test_unlimited_by_default(self, business):
        reward = RewardService.create_reward("BIZ-001", name="Refill", point_cost=3)
        assert reward.stock is None
        assert reward.is_unlimited

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "", "point_cost": 5},
            {"name": "X", "point_cost": 0},
            {"name": "X", "point_cost": "5"},
            {"name": "X", "point_cost": 5, "stock": -1},
            {"name": "X", "point_cost": 5, "reward_type": "voucher"},
        ],
    )
    def test_invalid(self, business, kwargs):
        with pytest.raises(StampmanError) as exc:
            RewardService.create_reward("BIZ-001", **kwargs)
        assert exc.value.code == "INVALID_REWARD"
        assert not Reward.objects.exists()


class TestUpdateReward:
    def test_update_whitelisted_fields(self, reward):
        updated = RewardService.update_reward(
            "BIZ-001",
            reward.uuid,
            point_cost=12,
            stock=3,
            description="Large only",
        )
        assert updated.point_cost == 12
        assert updated.stock == 3
        reward.refresh_from_db()
        assert reward.description == "Large only"

    def test_unknown_field_rejected(self, reward):
        with pytest.raises(StampmanError) as exc:
            RewardService.update_reward("BIZ-001", reward.uuid, business_id=99)
        assert exc.value.code == "INVALID_REWARD"
        assert exc.value.data["fields"] == ["business_id"]

    def test_other_business(self, reward, other_business):
        with pytest.raises(StampmanError) as exc:
            RewardService.update_reward("BIZ-002", reward.uuid, point_cost=1)
        assert exc.value.code == "REWARD_NOT_FOUND"


class TestDisableReward:
    def test_soft_delete(self, reward):
        RewardService.disable_reward("BIZ-001", reward.uuid)
        reward.refresh_from_db()
        assert reward.is_active is False
        assert RewardService.get_reward("BIZ-001", reward.uuid) == reward

    def test_disabled_reward_cannot_be_redeemed(self, reward, card):
        RewardService.disable_reward("BIZ-001", reward.uuid)
        with pytest.raises(StampmanError) as exc:
            TicketService.redeem_reward("BIZ-001", reward.uuid, "CLI-001")
        assert exc.value.code == "REWARD_NOT_FOUND"

    def test_tickets_survive_disable(self, reward, card):
        view = TicketService.redeem_reward("BIZ-001", reward.uuid, "CLI-001")
        RewardService.disable_reward("BIZ-001", reward.uuid)
        assert TicketService.find_by_code("BIZ-001", view.code).reward_name == "Free coffee"


class TestListings:
    def test_list_and_available(self, business):
        now = timezone.now()
        RewardService.create_reward("BIZ-001", name="Cake", point_cost=15)
        RewardService.create_reward("BIZ-001", name="Cookie", point_cost=5)
        RewardService.create_reward("BIZ-001", name="Sold out", point_cost=2, stock=0)
        RewardService.create_reward(
            "BIZ-001",
            name="Seasonal",
            point_cost=1,
            expiration_date=now - timedelta(days=1),
        )
        hidden = RewardService.create_reward("BIZ-001", name="Hidden", point_cost=3)
        RewardService.disable_reward("BIZ-001", hidden.uuid)

        all_rewards = RewardService.list_rewards_by_business("BIZ-001")
        assert [r.name for r in all_rewards] == ["Seasonal", "Sold out", "Hidden", "Cookie", "Cake"]

        active = RewardService.list_rewards_by_business("BIZ-001", only_active=True)
        assert "Hidden" not in [r.name for r in active]

        available = RewardService.available_rewards("BIZ-001")
        assert [r.name for r in available] == ["Cookie", "Cake"]

    def test_statistics(self, reward, card, business):
        other = RewardService.create_reward("BIZ-001", name="Tea", point_cost=20)
        TicketService.redeem_reward("BIZ-001", reward.uuid, "CLI-001")

        stats = RewardService.statistics("BIZ-001")

        assert stats["active_rewards"] == 2
        assert stats["total_redemptions"] == 1
        assert stats["pending_redemptions"] == 1
        assert stats["most_redeemed"] == reward
        assert stats["most_redeemed"] != other
        assert stats["most_redeemed"].times_redeemed == 1
