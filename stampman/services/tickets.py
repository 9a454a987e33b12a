"""
Ticket service: exchange points for rewards and deliver the tickets.

Lock order:
- redeem_reward: card -> reward
- cancel_redemption: ticket -> card -> reward
- deliver_redemption: ticket only
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from stampman.codes import BASE36, create_with_unique_code
from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.gates import Gates
from stampman.models import LoyaltyCard, RedemptionStatus, Reward, RewardRedemption
from stampman.services.cards import CardService
from stampman.services.lookups import (
    PageResult,
    get_business,
    get_client,
    paginate,
    parse_uuid,
)
from stampman.signals import redemption_cancelled, redemption_delivered, reward_redeemed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketView:
    """Ticket joined with the client, reward and business it belongs to."""

    uuid: UUID
    code: str
    status: str
    points_spent: int
    points_before: int
    points_after: int
    expires_at: datetime
    created_at: datetime
    delivered_at: datetime | None
    delivered_by: str
    notes: str
    client_code: str
    client_name: str
    client_email: str
    reward_uuid: UUID
    reward_name: str
    reward_description: str
    business_code: str
    business_name: str
    business_logo: str

    @classmethod
    def from_ticket(cls, ticket: RewardRedemption) -> "TicketView":
        return cls(
            uuid=ticket.uuid,
            code=ticket.code,
            status=ticket.status,
            points_spent=ticket.points_spent,
            points_before=ticket.points_before,
            points_after=ticket.points_after,
            expires_at=ticket.expires_at,
            created_at=ticket.created_at,
            delivered_at=ticket.delivered_at,
            delivered_by=ticket.delivered_by,
            notes=ticket.notes,
            client_code=ticket.client.code,
            client_name=ticket.client.name,
            client_email=ticket.client.email,
            reward_uuid=ticket.reward.uuid,
            reward_name=ticket.reward.name,
            reward_description=ticket.reward.description,
            business_code=ticket.business.code,
            business_name=ticket.business.name,
            business_logo=ticket.business.logo,
        )


class TicketService:
    """
    Service for reward redemption tickets.

    Uses @classmethod for extensibility (consistent with the other services).
    """

    # ======================================================================
    # Redeem
    # ======================================================================

    @classmethod
    def redeem_reward(cls, business_code: str, reward_uuid, client_code: str) -> TicketView:
        """
        Exchange card points for a reward and open a pending ticket.

        The card debit, the stock decrement and the ticket insert commit
        together. Reward and balance checks run once up front (fast fail)
        and again under the card and reward locks.

        Raises:
            StampmanError: BUSINESS_NOT_FOUND, CLIENT_NOT_FOUND,
                REWARD_NOT_FOUND, REWARD_OUT_OF_STOCK, REWARD_EXPIRED,
                CARD_NOT_FOUND, INSUFFICIENT_POINTS, CODE_CONFLICT,
                CODE_SPACE_EXHAUSTED
        """
        business = get_business(business_code)
        client = get_client(client_code)
        reward_uuid = parse_uuid(reward_uuid, "REWARD_NOT_FOUND")

        reward = cls._get_active_reward(business, reward_uuid)
        Gates.reward_exchangeable(reward, timezone.now())

        with transaction.atomic():
            try:
                card = LoyaltyCard.objects.select_for_update().get(client=client, business=business)
            except LoyaltyCard.DoesNotExist:
                raise StampmanError(
                    "CARD_NOT_FOUND",
                    client_code=client.code,
                    business_code=business.code,
                )
            Gates.card_balance(card)

            reward = Reward.objects.select_for_update().get(pk=reward.pk)
            # Read the clock after the lock waits
            now = timezone.now()
            if not reward.is_active:
                raise StampmanError("REWARD_NOT_FOUND", reward=str(reward_uuid))
            Gates.reward_exchangeable(reward, now)
            Gates.sufficient_balance(card, reward.point_cost)

            points_before = card.available_stamps
            expires_at = now + timedelta(hours=stampman_settings.TICKET_TTL_HOURS)

            def create(code: str) -> RewardRedemption:
                return RewardRedemption.objects.create(
                    reward=reward,
                    client=client,
                    card=card,
                    business=business,
                    points_spent=reward.point_cost,
                    points_before=points_before,
                    points_after=points_before - reward.point_cost,
                    code=code,
                    status=RedemptionStatus.PENDING,
                    expires_at=expires_at,
                )

            ticket = create_with_unique_code(
                create=create,
                exists=lambda code: RewardRedemption.objects.filter(code=code).exists(),
                length=stampman_settings.TICKET_CODE_LENGTH,
                alphabet=BASE36,
            )

            CardService._apply_debit(card, reward.point_cost)

            if reward.stock is not None:
                reward.stock -= 1
                reward.save(update_fields=["stock", "updated_at"])

            transaction.on_commit(
                lambda: reward_redeemed.send(sender=RewardRedemption, ticket=ticket)
            )

        logger.info(
            "Reward %s redeemed by %s at %s: ticket=%s -%d points (available=%d)",
            reward.name,
            client.code,
            business.code,
            ticket.code,
            ticket.points_spent,
            card.available_stamps,
        )
        return TicketView.from_ticket(ticket)

    # ======================================================================
    # Deliver / cancel
    # ======================================================================

    @classmethod
    def deliver_redemption(
        cls,
        business_code: str,
        ticket_uuid,
        delivered_by: str,
        notes: str = "",
    ) -> TicketView:
        """
        Mark a pending ticket as delivered.

        A ticket found past its expiry is flipped to expired and that flip is
        committed before TICKET_EXPIRED is raised.

        Raises:
            StampmanError: TICKET_NOT_FOUND (missing, other business or not
                pending) or TICKET_EXPIRED
        """
        business = get_business(business_code)
        ticket_uuid = parse_uuid(ticket_uuid, "TICKET_NOT_FOUND")
        expired = False

        with transaction.atomic():
            try:
                ticket = RewardRedemption.objects.select_for_update().get(
                    uuid=ticket_uuid,
                    business=business,
                    status=RedemptionStatus.PENDING,
                )
            except RewardRedemption.DoesNotExist:
                raise StampmanError("TICKET_NOT_FOUND", ticket=str(ticket_uuid))

            now = timezone.now()

            if ticket.is_past_expiry(now):
                Gates.ticket_transition(ticket.status, RedemptionStatus.EXPIRED)
                ticket.status = RedemptionStatus.EXPIRED
                ticket.save(update_fields=["status", "updated_at"])
                expired = True
            else:
                Gates.ticket_transition(ticket.status, RedemptionStatus.DELIVERED)
                ticket.status = RedemptionStatus.DELIVERED
                ticket.delivered_at = now
                ticket.delivered_by = delivered_by
                ticket.notes = notes
                ticket.save(update_fields=[
                    "status",
                    "delivered_at",
                    "delivered_by",
                    "notes",
                    "updated_at",
                ])
                transaction.on_commit(
                    lambda: redemption_delivered.send(sender=RewardRedemption, ticket=ticket)
                )

        if expired:
            logger.info("Ticket %s expired on delivery attempt", ticket.code)
            raise StampmanError(
                "TICKET_EXPIRED",
                ticket=str(ticket.uuid),
                expires_at=ticket.expires_at.isoformat(),
            )

        logger.info("Ticket %s delivered by %s", ticket.code, delivered_by or "-")
        return cls.get_ticket_view(ticket)

    @classmethod
    def cancel_redemption(
        cls,
        business_code: str,
        ticket_uuid,
        refund: bool = False,
        notes: str = "",
    ) -> TicketView:
        """
        Cancel a pending ticket.

        With ``refund=True`` the spent points go back to the card's available
        balance and one unit of finite stock is restored, in the same
        transaction.

        Raises:
            StampmanError: TICKET_NOT_FOUND or INVALID_TRANSITION (not pending)
        """
        business = get_business(business_code)
        ticket_uuid = parse_uuid(ticket_uuid, "TICKET_NOT_FOUND")

        with transaction.atomic():
            try:
                ticket = RewardRedemption.objects.select_for_update().get(
                    uuid=ticket_uuid,
                    business=business,
                )
            except RewardRedemption.DoesNotExist:
                raise StampmanError("TICKET_NOT_FOUND", ticket=str(ticket_uuid))

            Gates.ticket_transition(ticket.status, RedemptionStatus.CANCELLED)

            if refund:
                card = LoyaltyCard.objects.select_for_update().get(pk=ticket.card_id)
                Gates.card_balance(card)
                CardService._apply_refund(card, ticket.points_spent)

                reward = Reward.objects.select_for_update().get(pk=ticket.reward_id)
                if reward.stock is not None:
                    reward.stock += 1
                    reward.save(update_fields=["stock", "updated_at"])

            ticket.status = RedemptionStatus.CANCELLED
            update_fields = ["status", "updated_at"]
            if notes:
                ticket.notes = notes
                update_fields.append("notes")
            ticket.save(update_fields=update_fields)

            transaction.on_commit(
                lambda: redemption_cancelled.send(
                    sender=RewardRedemption,
                    ticket=ticket,
                    refunded=refund,
                )
            )

        logger.info("Ticket %s cancelled (refund=%s)", ticket.code, refund)
        return cls.get_ticket_view(ticket)

    # ======================================================================
    # Lookups / listings
    # ======================================================================

    @classmethod
    def find_by_code(cls, business_code: str, code: str) -> TicketView:
        """
        Ticket of the business by its code (case-insensitive).

        Raises:
            StampmanError: TICKET_NOT_FOUND (missing or other business)
        """
        business = get_business(business_code)
        normalized = (code or "").strip().upper()
        try:
            ticket = RewardRedemption.objects.select_related(
                "client", "reward", "business"
            ).get(code=normalized, business=business)
        except RewardRedemption.DoesNotExist:
            raise StampmanError("TICKET_NOT_FOUND", code=code)
        return TicketView.from_ticket(ticket)

    @classmethod
    def get_ticket_view(cls, ticket: RewardRedemption) -> TicketView:
        return TicketView.from_ticket(ticket)

    @classmethod
    def list_tickets_by_business(
        cls,
        business_code: str,
        filters: dict | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> PageResult:
        """
        Tickets of a business as TicketView items, newest first.

        Filters: status, reward_uuid, client_code, date_from, date_to.
        """
        business = get_business(business_code)
        qs = RewardRedemption.objects.filter(business=business)
        qs = cls._apply_filters(qs, filters or {}, allow_client=True)
        return cls._view_page(qs, page, page_size)

    @classmethod
    def list_tickets_by_client(
        cls,
        client_code: str,
        filters: dict | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> PageResult:
        """
        Tickets of a client across businesses, newest first.

        Filters: status, reward_uuid, date_from, date_to.
        """
        client = get_client(client_code)
        qs = RewardRedemption.objects.filter(client=client)
        qs = cls._apply_filters(qs, filters or {}, allow_client=False)
        return cls._view_page(qs, page, page_size)

    @classmethod
    def dashboard_counts(cls, business_code: str) -> dict:
        """Ticket totals per status for a business."""
        business = get_business(business_code)
        return RewardRedemption.objects.filter(business=business).aggregate(
            pending=Count("id", filter=Q(status=RedemptionStatus.PENDING)),
            delivered=Count("id", filter=Q(status=RedemptionStatus.DELIVERED)),
            expired=Count("id", filter=Q(status=RedemptionStatus.EXPIRED)),
            cancelled=Count("id", filter=Q(status=RedemptionStatus.CANCELLED)),
        )

    @classmethod
    def dashboard(
        cls,
        business_code: str,
        pending_limit: int = 20,
        deliveries_limit: int = 10,
    ) -> dict:
        """
        Redemption screen of a business.

        Returns the dashboard_counts() totals plus:
            pending_tickets: newest pending tickets as TicketView
            recent_deliveries: latest delivered tickets as TicketView,
                most recently delivered first
        """
        business = get_business(business_code)
        tickets = RewardRedemption.objects.filter(business=business).select_related(
            "client", "reward", "business"
        )
        pending = tickets.filter(status=RedemptionStatus.PENDING).order_by("-created_at", "-id")
        delivered = tickets.filter(status=RedemptionStatus.DELIVERED).order_by(
            "-delivered_at", "-id"
        )

        result = cls.dashboard_counts(business_code)
        result["pending_tickets"] = [TicketView.from_ticket(t) for t in pending[:pending_limit]]
        result["recent_deliveries"] = [
            TicketView.from_ticket(t) for t in delivered[:deliveries_limit]
        ]
        return result

    # ======================================================================
    # Expiry
    # ======================================================================

    @classmethod
    def expire_stale(cls) -> int:
        """
        Flip every pending ticket past its expiry to expired (any business).

        Conditional UPDATE, so repeated calls change nothing the second time
        and tickets delivered in the meantime are left alone.
        """
        now = timezone.now()
        count = RewardRedemption.objects.filter(
            status=RedemptionStatus.PENDING,
            expires_at__lt=now,
        ).update(status=RedemptionStatus.EXPIRED, updated_at=now)
        if count:
            logger.info("Expired %d stale tickets", count)
        return count

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _get_active_reward(cls, business, reward_uuid) -> Reward:
        try:
            return Reward.objects.get(uuid=reward_uuid, business=business, is_active=True)
        except Reward.DoesNotExist:
            raise StampmanError("REWARD_NOT_FOUND", reward=str(reward_uuid))

    @classmethod
    def _apply_filters(cls, qs, filters: dict, allow_client: bool):
        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("reward_uuid"):
            qs = qs.filter(reward__uuid=parse_uuid(filters["reward_uuid"], "REWARD_NOT_FOUND"))
        if allow_client and filters.get("client_code"):
            qs = qs.filter(client__code=filters["client_code"])
        if filters.get("date_from"):
            qs = qs.filter(created_at__gte=filters["date_from"])
        if filters.get("date_to"):
            qs = qs.filter(created_at__lte=filters["date_to"])
        return qs

    @classmethod
    def _view_page(cls, qs, page, page_size) -> PageResult:
        qs = qs.select_related("client", "reward", "business").order_by("-created_at", "-id")
        result = paginate(qs, page, page_size)
        result.items = [TicketView.from_ticket(t) for t in result.items]
        return result
