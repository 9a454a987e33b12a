"""Reward catalog service."""

import logging

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.models import RedemptionStatus, Reward, RewardRedemption, RewardType
from stampman.services.lookups import get_business, parse_uuid

logger = logging.getLogger(__name__)


class RewardService:
    """
    Service for the reward catalog of a business.

    Rewards are never deleted: disable_reward() is a soft delete because
    tickets keep referencing the reward.
    """

    UPDATABLE_FIELDS = {
        "name",
        "description",
        "reward_type",
        "special_conditions",
        "point_cost",
        "stock",
        "is_active",
        "expiration_date",
    }

    _VALIDATED = {"name", "point_cost", "reward_type", "stock"}

    @classmethod
    def create_reward(
        cls,
        business_code: str,
        name: str,
        point_cost: int,
        description: str = "",
        reward_type: str = RewardType.PRODUCT,
        special_conditions: str = "",
        stock: int | None = None,
        expiration_date=None,
    ) -> Reward:
        """
        Add a reward to the business catalog.

        Args:
            stock: Units available. None means unlimited, 0 means out of stock.

        Raises:
            StampmanError: BUSINESS_NOT_FOUND or INVALID_REWARD
        """
        business = get_business(business_code)
        cls._validate(
            name=name,
            point_cost=point_cost,
            reward_type=reward_type,
            stock=stock,
        )

        reward = Reward.objects.create(
            business=business,
            name=name.strip(),
            point_cost=point_cost,
            description=description,
            reward_type=reward_type,
            special_conditions=special_conditions,
            stock=stock,
            expiration_date=expiration_date,
        )
        logger.info(
            "Reward created business=%s name=%s cost=%d stock=%s",
            business.code,
            reward.name,
            reward.point_cost,
            "unlimited" if reward.stock is None else reward.stock,
        )
        return reward

    @classmethod
    def update_reward(cls, business_code: str, reward_uuid, **fields) -> Reward:
        """
        Update whitelisted reward fields.

        The reward row is locked so an edit never interleaves with a
        concurrent exchange decrementing the stock.

        Raises:
            StampmanError: REWARD_NOT_FOUND or INVALID_REWARD
        """
        unknown = set(fields) - cls.UPDATABLE_FIELDS
        if unknown:
            raise StampmanError(
                "INVALID_REWARD",
                message=f"Fields not updatable: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )
        cls._validate(**{k: v for k, v in fields.items() if k in cls._VALIDATED})

        business = get_business(business_code)
        with transaction.atomic():
            reward = cls._lock(business, reward_uuid)
            for key, value in fields.items():
                if key == "name":
                    value = value.strip()
                setattr(reward, key, value)
            reward.save(update_fields=[*fields, "updated_at"])

        logger.info("Reward %s updated: %s", reward.uuid, ", ".join(sorted(fields)))
        return reward

    @classmethod
    def disable_reward(cls, business_code: str, reward_uuid) -> Reward:
        """Soft delete: the reward stays resolvable for existing tickets."""
        business = get_business(business_code)
        with transaction.atomic():
            reward = cls._lock(business, reward_uuid)
            if reward.is_active:
                reward.is_active = False
                reward.save(update_fields=["is_active", "updated_at"])
                logger.info("Reward %s disabled by business=%s", reward.uuid, business.code)
        return reward

    @classmethod
    def get_reward(cls, business_code: str, reward_uuid) -> Reward:
        """
        Reward of the business, active or not.

        Raises:
            StampmanError: REWARD_NOT_FOUND
        """
        business = get_business(business_code)
        reward_uuid = parse_uuid(reward_uuid, "REWARD_NOT_FOUND")
        try:
            return Reward.objects.get(uuid=reward_uuid, business=business)
        except Reward.DoesNotExist:
            raise StampmanError("REWARD_NOT_FOUND", reward=str(reward_uuid))

    @classmethod
    def list_rewards_by_business(
        cls,
        business_code: str,
        only_active: bool = False,
    ) -> list[Reward]:
        """Catalog of a business, cheapest first."""
        business = get_business(business_code)
        qs = Reward.objects.filter(business=business)
        if only_active:
            qs = qs.filter(is_active=True)
        return list(qs.order_by("point_cost", "name"))

    @classmethod
    def available_rewards(cls, business_code: str) -> list[Reward]:
        """Rewards a client could exchange right now: active, unexpired, in stock."""
        business = get_business(business_code)
        now = timezone.now()
        return list(
            Reward.objects.filter(business=business, is_active=True)
            .filter(Q(stock__isnull=True) | Q(stock__gt=0))
            .filter(Q(expiration_date__isnull=True) | Q(expiration_date__gte=now))
            .order_by("point_cost", "name")
        )

    @classmethod
    def statistics(cls, business_code: str) -> dict:
        """Active rewards, ticket totals and the most redeemed reward."""
        business = get_business(business_code)
        tickets = RewardRedemption.objects.filter(business=business)
        most_redeemed = (
            Reward.objects.filter(business=business)
            .annotate(times_redeemed=Count("redemptions"))
            .filter(times_redeemed__gt=0)
            .order_by("-times_redeemed", "point_cost", "name")
            .first()
        )
        return {
            "active_rewards": Reward.objects.filter(business=business, is_active=True).count(),
            "total_redemptions": tickets.count(),
            "pending_redemptions": tickets.filter(status=RedemptionStatus.PENDING).count(),
            "most_redeemed": most_redeemed,
        }

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _validate(cls, **fields) -> None:
        if "name" in fields and not (fields["name"] or "").strip():
            raise StampmanError("INVALID_REWARD", message="Reward name is required")
        if "point_cost" in fields:
            cost = fields["point_cost"]
            if isinstance(cost, bool) or not isinstance(cost, int) or cost < 1:
                raise StampmanError(
                    "INVALID_REWARD",
                    message="Point cost must be a positive integer",
                    point_cost=cost,
                )
        if "reward_type" in fields and fields["reward_type"] not in RewardType.values:
            raise StampmanError(
                "INVALID_REWARD",
                message="Unknown reward type",
                reward_type=fields["reward_type"],
            )
        if "stock" in fields:
            stock = fields["stock"]
            if stock is not None and (
                isinstance(stock, bool) or not isinstance(stock, int) or stock < 0
            ):
                raise StampmanError(
                    "INVALID_REWARD",
                    message="Stock must be empty (unlimited) or a non-negative integer",
                    stock=stock,
                )

    @classmethod
    def _lock(cls, business, reward_uuid) -> Reward:
        """
        Reward of the business with row-level lock.

        MUST be called inside transaction.atomic().
        """
        reward_uuid = parse_uuid(reward_uuid, "REWARD_NOT_FOUND")
        try:
            return Reward.objects.select_for_update().get(uuid=reward_uuid, business=business)
        except Reward.DoesNotExist:
            raise StampmanError("REWARD_NOT_FOUND", reward=str(reward_uuid))
