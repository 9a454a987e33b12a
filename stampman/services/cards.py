"""Card service: per (client, business) point balances.

Every balance change goes through the _apply_* helpers on a card row that the
caller locked with select_for_update() inside transaction.atomic(). The
public credit()/debit() open that transaction themselves; the stamp and
ticket services call the helpers from inside their own.
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import LedgerCorruption, StampmanError
from stampman.gates import Gates
from stampman.models import LoyaltyCard, Reward
from stampman.services.lookups import get_business, get_client, parse_uuid

logger = logging.getLogger(__name__)


@dataclass
class CardSummary:
    """Card plus the reward it is progressing towards."""

    card: LoyaltyCard
    nearest_reward: Reward | None
    progress_target: int


class CardService:
    """
    Service for loyalty card operations.

    Uses @classmethod for extensibility (consistent with the other services).
    All point mutations use transaction.atomic() + select_for_update().
    """

    @classmethod
    def get_or_create(cls, client_code: str, business_code: str) -> LoyaltyCard:
        """
        Get the client's card at a business, creating an empty one if needed.

        Idempotent: concurrent calls end with a single card (unique pair).

        Raises:
            StampmanError: CLIENT_NOT_FOUND or BUSINESS_NOT_FOUND
        """
        client = get_client(client_code)
        business = get_business(business_code)
        card, created = LoyaltyCard.objects.get_or_create(client=client, business=business)
        if created:
            logger.info("Card created for client=%s business=%s", client.code, business.code)
        Gates.card_balance(card)
        return card

    @classmethod
    def get_card(cls, client_code: str, business_code: str) -> LoyaltyCard:
        """
        Get the client's card at a business.

        Raises:
            StampmanError: CARD_NOT_FOUND
        """
        try:
            card = LoyaltyCard.objects.select_related("client", "business").get(
                client__code=client_code,
                business__code=business_code,
            )
        except LoyaltyCard.DoesNotExist:
            raise StampmanError(
                "CARD_NOT_FOUND",
                client_code=client_code,
                business_code=business_code,
            )
        Gates.card_balance(card)
        return card

    @classmethod
    def credit(cls, card_uuid, amount: int) -> LoyaltyCard:
        """
        Add points to a card (total and available both grow by ``amount``).

        Raises:
            StampmanError: CARD_NOT_FOUND or INVALID_POINTS
        """
        with transaction.atomic():
            card = cls._lock(card_uuid)
            cls._apply_credit(card, amount)
        return card

    @classmethod
    def debit(cls, card_uuid, amount: int) -> LoyaltyCard:
        """
        Spend points from a card (available shrinks, used grows).

        Raises:
            StampmanError: CARD_NOT_FOUND, INVALID_POINTS or INSUFFICIENT_POINTS
        """
        with transaction.atomic():
            card = cls._lock(card_uuid)
            cls._apply_debit(card, amount)
        return card

    @classmethod
    def list_cards_by_client(cls, client_code: str) -> list[CardSummary]:
        """Client's cards, most recently stamped first, with reward progress."""
        cards = LoyaltyCard.objects.filter(
            client__code=client_code,
            client__is_active=True,
        ).select_related("business", "client")
        summaries = []
        for card in cards:
            Gates.card_balance(card)
            summaries.append(cls.card_progress(card))
        return summaries

    @classmethod
    def list_cards_by_business(cls, business_code: str) -> list[LoyaltyCard]:
        """
        All cards held at a business, most recently stamped first.

        Never-stamped cards come last. Each card carries ``redemption_count``,
        the number of stamp codes its client redeemed at the business.
        """
        cards = list(
            LoyaltyCard.objects.filter(
                business__code=business_code,
                business__is_active=True,
            )
            .select_related("client", "business")
            .annotate(redemption_count=Count("stamp_redemptions"))
            .order_by(F("last_stamp_at").desc(nulls_last=True), "-created_at", "-id")
        )
        for card in cards:
            Gates.card_balance(card)
        return cards

    @classmethod
    def card_progress(cls, card: LoyaltyCard, now=None) -> CardSummary:
        """
        Nearest exchangeable reward for a card.

        The nearest reward is the cheapest active, unexpired, in-stock reward
        of the card's business; its cost is the progress target.
        """
        now = now or timezone.now()
        nearest = None
        for reward in Reward.objects.filter(
            business_id=card.business_id,
            is_active=True,
        ).order_by("point_cost", "name"):
            if reward.is_exchangeable(now):
                nearest = reward
                break
        target = nearest.point_cost if nearest else stampman_settings.DEFAULT_PROGRESS_TARGET
        return CardSummary(card=card, nearest_reward=nearest, progress_target=target)

    @classmethod
    def level_for(cls, total_stamps: int) -> int:
        """Level reached with ``total_stamps`` points (every LEVEL_STEP adds one)."""
        return total_stamps // stampman_settings.LEVEL_STEP + 1

    # ======================================================================
    # Locked mutation helpers (call inside transaction.atomic())
    # ======================================================================

    @classmethod
    def _lock(cls, card_uuid) -> LoyaltyCard:
        """
        Get card with row-level lock for mutation.

        MUST be called inside transaction.atomic().
        """
        card_uuid = parse_uuid(card_uuid, "CARD_NOT_FOUND")
        try:
            card = LoyaltyCard.objects.select_for_update().get(uuid=card_uuid)
        except LoyaltyCard.DoesNotExist:
            raise StampmanError("CARD_NOT_FOUND", card=str(card_uuid))
        Gates.card_balance(card)
        return card

    @classmethod
    def _lock_or_create(cls, client, business_id: int) -> LoyaltyCard:
        """
        Locked card for (client, business), created on first use.

        MUST be called inside transaction.atomic(). A concurrent creator
        loses on the unique pair and get_or_create falls back to reading
        (and locking) the winner's row.
        """
        card, created = LoyaltyCard.objects.select_for_update().get_or_create(
            client=client,
            business_id=business_id,
        )
        if created:
            logger.info("Card created for client=%s business_id=%s", client.code, business_id)
        Gates.card_balance(card)
        return card

    @classmethod
    def _apply_credit(cls, card: LoyaltyCard, amount: int, now=None) -> None:
        if amount <= 0:
            raise StampmanError("INVALID_POINTS", amount=amount)

        card.total_stamps += amount
        card.available_stamps += amount
        card.level = cls.level_for(card.total_stamps)
        card.last_stamp_at = now or timezone.now()
        Gates.card_balance(card)
        card.save(update_fields=[
            "total_stamps",
            "available_stamps",
            "level",
            "last_stamp_at",
            "updated_at",
        ])

    @classmethod
    def _apply_debit(cls, card: LoyaltyCard, amount: int) -> None:
        if amount <= 0:
            raise StampmanError("INVALID_POINTS", amount=amount)
        Gates.sufficient_balance(card, amount)

        card.available_stamps -= amount
        card.used_stamps += amount
        Gates.card_balance(card)
        card.save(update_fields=["available_stamps", "used_stamps", "updated_at"])

    @classmethod
    def _apply_refund(cls, card: LoyaltyCard, amount: int) -> None:
        """Give spent points back (used shrinks, available grows)."""
        if amount <= 0:
            raise StampmanError("INVALID_POINTS", amount=amount)
        if card.used_stamps < amount:
            raise LedgerCorruption(
                f"Card {card.uuid} cannot refund {amount} points: only {card.used_stamps} used"
            )

        card.used_stamps -= amount
        card.available_stamps += amount
        Gates.card_balance(card)
        card.save(update_fields=["available_stamps", "used_stamps", "updated_at"])
