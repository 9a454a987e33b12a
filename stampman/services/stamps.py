"""Stamp service: issue, redeem, cancel and expire stamp codes."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from stampman.codes import DIGITS, NONZERO_DIGITS, create_with_unique_code
from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.gates import Gates
from stampman.models import (
    LIVE_STAMP_STATUSES,
    LoyaltyCard,
    PurchaseTier,
    Stamp,
    StampKind,
    StampRedemption,
    StampStatus,
    StampTier,
)
from stampman.services.cards import CardService
from stampman.services.lookups import (
    PageResult,
    get_business,
    get_client,
    paginate,
    parse_uuid,
)
from stampman.signals import stamp_issued, stamp_redeemed
from stampman.tiers import resolve_tier

logger = logging.getLogger(__name__)


MIN_STAMP_VALUE = 1
MAX_STAMP_VALUE = 10


@dataclass
class StampRedemptionResult:
    """Outcome of a successful stamp redemption."""

    stamp: Stamp
    card: LoyaltyCard
    points_earned: int
    redemption: StampRedemption


class StampService:
    """
    Service for stamp ledger operations.

    Uses @classmethod for extensibility (consistent with the other services).
    """

    # ======================================================================
    # Issue
    # ======================================================================

    @classmethod
    def issue_stamp(
        cls,
        business_code: str,
        value: int = 1,
        kind: str = StampKind.PURCHASE,
        purchase_tier: str = "",
        description: str = "",
        ttl: timedelta | None = None,
        created_by: str = "",
    ) -> Stamp:
        """
        Issue a new active stamp code for a business.

        Args:
            business_code: Issuing business
            value: Points granted on redemption (1-10)
            kind: "purchase" or "visit"
            purchase_tier: small/medium/large (purchase stamps only)
            description: Shown to the client
            ttl: Time to live (default STAMP_TTL_SECONDS)
            created_by: Who issued the stamp

        Returns:
            Created Stamp (status=active)

        Raises:
            StampmanError: BUSINESS_NOT_FOUND, INVALID_STAMP_VALUE,
                INVALID_STAMP_KIND, CODE_SPACE_EXHAUSTED, CODE_CONFLICT
        """
        business = get_business(business_code)
        purchase_tier = purchase_tier or ""

        if isinstance(value, bool) or not isinstance(value, int) or not (
            MIN_STAMP_VALUE <= value <= MAX_STAMP_VALUE
        ):
            raise StampmanError("INVALID_STAMP_VALUE", value=value)
        if kind not in StampKind.values:
            raise StampmanError("INVALID_STAMP_KIND", kind=kind)
        if purchase_tier and purchase_tier not in PurchaseTier.values:
            raise StampmanError("INVALID_STAMP_KIND", purchase_tier=purchase_tier)
        if purchase_tier and kind != StampKind.PURCHASE:
            raise StampmanError(
                "INVALID_STAMP_KIND",
                message="Only purchase stamps carry a purchase tier",
                kind=kind,
                purchase_tier=purchase_tier,
            )

        if ttl is None:
            ttl = timedelta(seconds=stampman_settings.STAMP_TTL_SECONDS)
        if ttl <= timedelta(0):
            raise StampmanError("INVALID_TTL", ttl_seconds=ttl.total_seconds())

        def create(code: str) -> Stamp:
            return Stamp.objects.create(
                business=business,
                code=code,
                value=value,
                kind=kind,
                purchase_tier=purchase_tier,
                description=description,
                status=StampStatus.ACTIVE,
                expires_at=timezone.now() + ttl,
                created_by=created_by,
            )

        stamp = create_with_unique_code(
            create=create,
            exists=cls._code_taken,
            length=stampman_settings.STAMP_CODE_LENGTH,
            alphabet=DIGITS,
            leading=NONZERO_DIGITS,
        )

        logger.info(
            "Stamp issued business=%s value=%d kind=%s expires_at=%s",
            business.code,
            stamp.value,
            stamp.kind,
            stamp.expires_at.isoformat(),
        )
        transaction.on_commit(lambda: stamp_issued.send(sender=Stamp, stamp=stamp))
        return stamp

    @classmethod
    def issue_for_sale(
        cls,
        business_code: str,
        amount,
        description: str = "",
        created_by: str = "",
    ) -> Stamp:
        """
        Issue a purchase stamp whose value comes from the sale amount.

        The value and purchase tier are taken from the business's active
        StampTier rows (see resolve_tier). A sale below every tier gets
        DEFAULT_STAMP_VALUE and no purchase tier.

        Raises:
            StampmanError: INVALID_AMOUNT (not a finite, non-negative number)
                plus everything issue_stamp() raises
        """
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise StampmanError("INVALID_AMOUNT", amount=str(amount))
        if not amount.is_finite() or amount < 0:
            raise StampmanError("INVALID_AMOUNT", amount=str(amount))

        business = get_business(business_code)
        tier = resolve_tier(
            StampTier.objects.filter(business=business, is_active=True),
            amount,
        )
        value = tier.stamp_value if tier else stampman_settings.DEFAULT_STAMP_VALUE
        purchase_tier = tier.purchase_tier if tier else ""

        return cls.issue_stamp(
            business_code,
            value=value,
            kind=StampKind.PURCHASE,
            purchase_tier=purchase_tier,
            description=description or f"Sale of {amount}",
            created_by=created_by,
        )

    # ======================================================================
    # Redeem
    # ======================================================================

    @classmethod
    def redeem_stamp(cls, client_code: str, code: str) -> StampRedemptionResult:
        """
        Redeem a stamp code and credit its points to the client's card.

        Stamp row and card row are locked for the whole operation, so
        concurrent redemptions of the same code (or onto the same card)
        serialize. A code that is found active but past its expiry is flipped
        to expired and that flip is committed before STAMP_EXPIRED is raised.

        Returns:
            StampRedemptionResult(stamp, card, points_earned, redemption)

        Raises:
            StampmanError: CLIENT_NOT_FOUND, STAMP_NOT_FOUND,
                STAMP_ALREADY_REDEEMED (this client used it),
                STAMP_ALREADY_USED (used by someone else or cancelled),
                STAMP_EXPIRED
        """
        client = get_client(client_code)
        expired = False
        result = None

        with transaction.atomic():
            stamp = cls._lock_by_code(code)
            now = timezone.now()

            if stamp.status == StampStatus.USED:
                if StampRedemption.objects.filter(stamp=stamp, client=client).exists():
                    raise StampmanError("STAMP_ALREADY_REDEEMED", code=code)
                raise StampmanError("STAMP_ALREADY_USED", code=code)
            if stamp.status == StampStatus.EXPIRED:
                raise StampmanError("STAMP_EXPIRED", code=code)
            if stamp.status != StampStatus.ACTIVE:
                raise StampmanError("STAMP_ALREADY_USED", code=code, status=stamp.status)

            if stamp.is_past_expiry(now):
                Gates.stamp_transition(stamp.status, StampStatus.EXPIRED)
                stamp.status = StampStatus.EXPIRED
                stamp.save(update_fields=["status", "updated_at"])
                expired = True
            else:
                card = CardService._lock_or_create(client, stamp.business_id)
                CardService._apply_credit(card, stamp.value, now)

                Gates.stamp_transition(stamp.status, StampStatus.USED)
                stamp.status = StampStatus.USED
                stamp.used_at = now
                stamp.used_by = client
                stamp.save(update_fields=["status", "used_at", "used_by", "updated_at"])

                redemption = StampRedemption.objects.create(
                    stamp=stamp,
                    client=client,
                    card=card,
                    points=stamp.value,
                )
                result = StampRedemptionResult(
                    stamp=stamp,
                    card=card,
                    points_earned=stamp.value,
                    redemption=redemption,
                )
                transaction.on_commit(
                    lambda: stamp_redeemed.send(
                        sender=Stamp,
                        stamp=stamp,
                        card=card,
                        points=stamp.value,
                    )
                )

        if expired:
            logger.info("Stamp %s expired on redemption attempt by %s", stamp.code, client.code)
            raise StampmanError(
                "STAMP_EXPIRED",
                code=code,
                expires_at=stamp.expires_at.isoformat(),
            )

        logger.info(
            "Stamp %s redeemed by %s: +%d points (card total=%d available=%d)",
            stamp.code,
            client.code,
            result.points_earned,
            result.card.total_stamps,
            result.card.available_stamps,
        )
        return result

    # ======================================================================
    # Cancel / lookup / listings
    # ======================================================================

    @classmethod
    def cancel_stamp(cls, stamp_uuid, business_code: str) -> Stamp:
        """
        Cancel an active stamp of the business.

        Raises:
            StampmanError: STAMP_NOT_FOUND (missing or owned by another
                business) or INVALID_TRANSITION (not active)
        """
        business = get_business(business_code)
        stamp_uuid = parse_uuid(stamp_uuid, "STAMP_NOT_FOUND")

        with transaction.atomic():
            try:
                stamp = Stamp.objects.select_for_update().get(uuid=stamp_uuid, business=business)
            except Stamp.DoesNotExist:
                raise StampmanError("STAMP_NOT_FOUND", stamp=str(stamp_uuid))

            Gates.stamp_transition(stamp.status, StampStatus.CANCELLED)
            stamp.status = StampStatus.CANCELLED
            stamp.save(update_fields=["status", "updated_at"])

        logger.info("Stamp %s cancelled by business=%s", stamp.code, business.code)
        return stamp

    @classmethod
    def get_stamp_by_code(cls, code: str) -> Stamp:
        """
        Get the stamp holding a code.

        The live stamp (active or used) wins; otherwise the most recent
        expired/cancelled stamp that had the code.

        Raises:
            StampmanError: STAMP_NOT_FOUND
        """
        qs = Stamp.objects.select_related("business", "used_by")
        stamp = qs.filter(code=code, status__in=LIVE_STAMP_STATUSES).first()
        if stamp is None:
            stamp = qs.filter(code=code).order_by("-created_at").first()
        if stamp is None:
            raise StampmanError("STAMP_NOT_FOUND", code=code)
        return stamp

    @classmethod
    def list_stamps_by_business(
        cls,
        business_code: str,
        filters: dict | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> PageResult:
        """
        Stamps issued by a business, newest first.

        Filters (all optional):
            status: active/used/expired/cancelled. Active stamps past their
                expiry count as expired here even before the sweeper runs.
            kind, purchase_tier: exact match
            client_code: stamps used by this client
            search: substring of the code
            date_from, date_to: created_at bounds (inclusive)
        """
        business = get_business(business_code)
        filters = filters or {}
        now = timezone.now()

        qs = Stamp.objects.filter(business=business).select_related("used_by")

        status = filters.get("status")
        if status == StampStatus.EXPIRED:
            qs = qs.filter(
                Q(status=StampStatus.EXPIRED)
                | Q(status=StampStatus.ACTIVE, expires_at__lt=now)
            )
        elif status == StampStatus.ACTIVE:
            qs = qs.filter(status=StampStatus.ACTIVE, expires_at__gte=now)
        elif status:
            qs = qs.filter(status=status)

        if filters.get("kind"):
            qs = qs.filter(kind=filters["kind"])
        if filters.get("purchase_tier"):
            qs = qs.filter(purchase_tier=filters["purchase_tier"])
        if filters.get("client_code"):
            qs = qs.filter(used_by__code=filters["client_code"])
        if filters.get("search"):
            qs = qs.filter(code__icontains=filters["search"])
        if filters.get("date_from"):
            qs = qs.filter(created_at__gte=filters["date_from"])
        if filters.get("date_to"):
            qs = qs.filter(created_at__lte=filters["date_to"])

        result = paginate(qs.order_by("-created_at", "-id"), page, page_size)
        for stamp in result.items:
            stamp.status = stamp.effective_status(now)
        return result

    @classmethod
    def redemption_history(
        cls,
        client_code: str,
        business_code: str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> PageResult:
        """Client's stamp redemptions, newest first, optionally for one business."""
        client = get_client(client_code)
        qs = StampRedemption.objects.filter(client=client).select_related(
            "stamp",
            "stamp__business",
        )
        if business_code:
            qs = qs.filter(stamp__business__code=business_code)
        return paginate(qs.order_by("-redeemed_at", "-id"), page, page_size)

    @classmethod
    def statistics(cls, business_code: str) -> dict:
        """Stamp counts per status plus the five most recent stamps."""
        business = get_business(business_code)
        counts = Stamp.objects.filter(business=business).aggregate(
            total_generated=Count("id"),
            total_used=Count("id", filter=Q(status=StampStatus.USED)),
            total_expired=Count("id", filter=Q(status=StampStatus.EXPIRED)),
            total_active=Count("id", filter=Q(status=StampStatus.ACTIVE)),
            total_cancelled=Count("id", filter=Q(status=StampStatus.CANCELLED)),
        )
        counts["recent_stamps"] = list(
            Stamp.objects.filter(business=business).order_by("-created_at", "-id")[:5]
        )
        return counts

    # ======================================================================
    # Expiry
    # ======================================================================

    @classmethod
    def expire_stale(cls) -> int:
        """
        Flip every active stamp past its expiry to expired.

        A single conditional UPDATE: rows redeemed or cancelled in the
        meantime no longer match ``status=active`` and are left alone.
        Returns the number of stamps expired.
        """
        now = timezone.now()
        count = Stamp.objects.filter(
            status=StampStatus.ACTIVE,
            expires_at__lt=now,
        ).update(status=StampStatus.EXPIRED, updated_at=now)
        if count:
            logger.info("Expired %d stale stamps", count)
        return count

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _code_taken(cls, code: str) -> bool:
        return Stamp.objects.filter(code=code, status__in=LIVE_STAMP_STATUSES).exists()

    @classmethod
    def _lock_by_code(cls, code: str) -> Stamp:
        """
        Stamp for a code with row-level lock.

        MUST be called inside transaction.atomic().
        """
        qs = Stamp.objects.select_for_update()
        stamp = qs.filter(code=code, status__in=LIVE_STAMP_STATUSES).first()
        if stamp is None:
            stamp = qs.filter(code=code).order_by("-created_at").first()
        if stamp is None:
            raise StampmanError("STAMP_NOT_FOUND", code=code)
        return stamp
