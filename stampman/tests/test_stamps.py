"""Tests for StampService."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.models import (
    LoyaltyCard,
    PurchaseTier,
    Stamp,
    StampKind,
    StampRedemption,
    StampStatus,
)
from stampman.services import StampService
from stampman.signals import stamp_issued, stamp_redeemed


pytestmark = pytest.mark.django_db


def expire(stamp):
    Stamp.objects.filter(pk=stamp.pk).update(expires_at=timezone.now() - timedelta(seconds=1))


class TestIssueStamp:
    """Tests for StampService.issue_stamp."""

    def test_defaults(self, business):
        before = timezone.now()
        stamp = StampService.issue_stamp("BIZ-001")

        assert stamp.status == StampStatus.ACTIVE
        assert stamp.value == 1
        assert stamp.kind == StampKind.PURCHASE
        assert len(stamp.code) == 6
        assert stamp.code.isdigit()
        assert stamp.expires_at >= before + timedelta(seconds=300)
        assert stamp.expires_at <= timezone.now() + timedelta(seconds=300)

    def test_custom_ttl_and_tier(self, business):
        stamp = StampService.issue_stamp(
            "BIZ-001",
            value=3,
            purchase_tier=PurchaseTier.MEDIUM,
            description="Lunch",
            ttl=timedelta(minutes=30),
            created_by="cashier-1",
        )
        assert stamp.value == 3
        assert stamp.purchase_tier == PurchaseTier.MEDIUM
        assert stamp.created_by == "cashier-1"
        assert stamp.expires_at > timezone.now() + timedelta(minutes=29)

    @pytest.mark.parametrize("value", [0, 11, -1, "5", 2.5, True])
    def test_invalid_value(self, business, value):
        with pytest.raises(StampmanError) as exc:
            StampService.issue_stamp("BIZ-001", value=value)
        assert exc.value.code == "INVALID_STAMP_VALUE"
        assert not Stamp.objects.exists()

    def test_invalid_kind(self, business):
        with pytest.raises(StampmanError) as exc:
            StampService.issue_stamp("BIZ-001", kind="gift")
        assert exc.value.code == "INVALID_STAMP_KIND"

    def test_visit_with_tier_rejected(self, business):
        with pytest.raises(StampmanError) as exc:
            StampService.issue_stamp(
                "BIZ-001",
                kind=StampKind.VISIT,
                purchase_tier=PurchaseTier.SMALL,
            )
        assert exc.value.code == "INVALID_STAMP_KIND"

    def test_non_positive_ttl_rejected(self, business):
        with pytest.raises(StampmanError) as exc:
            StampService.issue_stamp("BIZ-001", ttl=timedelta(0))
        assert exc.value.code == "INVALID_TTL"

    def test_unknown_business(self, db):
        with pytest.raises(StampmanError) as exc:
            StampService.issue_stamp("NOPE")
        assert exc.value.code == "BUSINESS_NOT_FOUND"
        assert exc.value.category == "not_found"

    def test_inactive_business(self, business):
        business.is_active = False
        business.save()
        with pytest.raises(StampmanError, match="BUSINESS_NOT_FOUND"):
            StampService.issue_stamp("BIZ-001")

    def test_live_code_never_reissued(self, business):
        first = StampService.issue_stamp("BIZ-001")
        with patch("stampman.codes.generate_code", side_effect=[first.code, "100042"]):
            second = StampService.issue_stamp("BIZ-001")
        assert second.code == "100042"

    def test_expired_code_can_be_reissued(self, business):
        first = StampService.issue_stamp("BIZ-001")
        Stamp.objects.filter(pk=first.pk).update(status=StampStatus.EXPIRED)
        with patch("stampman.codes.generate_code", return_value=first.code):
            second = StampService.issue_stamp("BIZ-001")
        assert second.code == first.code
        assert second.pk != first.pk

    def test_code_space_exhausted(self, business):
        first = StampService.issue_stamp("BIZ-001")
        with patch("stampman.codes.generate_code", return_value=first.code):
            with pytest.raises(StampmanError) as exc:
                StampService.issue_stamp("BIZ-001")
        assert exc.value.code == "CODE_SPACE_EXHAUSTED"

    def test_codes_never_start_with_zero(self, business):
        codes = [StampService.issue_stamp("BIZ-001").code for _ in range(50)]
        assert all(code[0] != "0" for code in codes)
        assert all(len(code) == 6 and code.isdigit() for code in codes)

    def test_signal_sent_on_commit(self, business, django_capture_on_commit_callbacks):
        received = []

        def receiver(sender, stamp, **kwargs):
            received.append(stamp)

        stamp_issued.connect(receiver)
        try:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                stamp = StampService.issue_stamp("BIZ-001")
        finally:
            stamp_issued.disconnect(receiver)

        assert len(callbacks) == 1
        assert received == [stamp]


class TestIssueForSale:
    def test_value_from_tier(self, business, tiers):
        stamp = StampService.issue_for_sale("BIZ-001", Decimal("75.00"))
        assert stamp.value == 2
        assert stamp.purchase_tier == PurchaseTier.MEDIUM
        assert stamp.description == "Sale of 75.00"

    def test_threshold_reaches_tier(self, business, tiers):
        stamp = StampService.issue_for_sale("BIZ-001", 100)
        assert stamp.value == 5
        assert stamp.purchase_tier == PurchaseTier.LARGE

    def test_inactive_tier_ignored(self, business, tiers):
        tiers[2].is_active = False
        tiers[2].save()
        stamp = StampService.issue_for_sale("BIZ-001", 150)
        assert stamp.value == 2

    def test_no_tiers_uses_default(self, business):
        stamp = StampService.issue_for_sale("BIZ-001", 30, description="Table 4")
        assert stamp.value == 1
        assert stamp.purchase_tier == ""
        assert stamp.description == "Table 4"

    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), "abc", -500, Decimal("-0.01")])
    def test_invalid_amount(self, business, tiers, amount):
        with pytest.raises(StampmanError) as exc:
            StampService.issue_for_sale("BIZ-001", amount)
        assert exc.value.code == "INVALID_AMOUNT"
        assert exc.value.category == "invalid"
        assert not Stamp.objects.exists()

    def test_zero_amount_gets_lowest_tier(self, business, tiers):
        stamp = StampService.issue_for_sale("BIZ-001", 0)
        assert stamp.value == 1
        assert stamp.purchase_tier == PurchaseTier.SMALL


class TestRedeemStamp:
    """Tests for StampService.redeem_stamp."""

    def test_first_redemption_creates_card(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001", value=3)

        result = StampService.redeem_stamp("CLI-001", stamp.code)

        assert result.points_earned == 3
        assert result.card.total_stamps == 3
        assert result.card.available_stamps == 3
        assert result.card.used_stamps == 0
        assert result.card.level == 1
        assert result.card.last_stamp_at is not None

        stamp.refresh_from_db()
        assert stamp.status == StampStatus.USED
        assert stamp.used_by == client_a
        assert stamp.used_at is not None
        assert StampRedemption.objects.get(stamp=stamp, client=client_a).points == 3

    def test_credits_existing_card_and_levels_up(self, business, client_a, make_card):
        card = make_card(client_a, business, available=5, used=4)
        stamp = StampService.issue_stamp("BIZ-001", value=2)

        result = StampService.redeem_stamp("CLI-001", stamp.code)

        assert result.card.pk == card.pk
        card.refresh_from_db()
        assert card.total_stamps == 11
        assert card.available_stamps == 7
        assert card.used_stamps == 4
        assert card.level == 2

    def test_same_client_twice(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001")
        StampService.redeem_stamp("CLI-001", stamp.code)

        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("CLI-001", stamp.code)

        assert exc.value.code == "STAMP_ALREADY_REDEEMED"
        card = LoyaltyCard.objects.get(client=client_a, business=business)
        assert card.total_stamps == 1

    def test_other_client_after_use(self, business, client_a, client_b):
        stamp = StampService.issue_stamp("BIZ-001")
        StampService.redeem_stamp("CLI-001", stamp.code)

        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("CLI-002", stamp.code)

        assert exc.value.code == "STAMP_ALREADY_USED"
        assert not LoyaltyCard.objects.filter(client=client_b).exists()

    def test_used_fields_stable(self, business, client_a, client_b):
        stamp = StampService.issue_stamp("BIZ-001")
        StampService.redeem_stamp("CLI-001", stamp.code)
        stamp.refresh_from_db()
        used_at = stamp.used_at

        with pytest.raises(StampmanError):
            StampService.redeem_stamp("CLI-002", stamp.code)

        stamp.refresh_from_db()
        assert stamp.used_at == used_at
        assert stamp.used_by == client_a

    def test_expired_flips_status(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001")
        expire(stamp)

        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("CLI-001", stamp.code)

        assert exc.value.code == "STAMP_EXPIRED"
        stamp.refresh_from_db()
        assert stamp.status == StampStatus.EXPIRED
        assert not LoyaltyCard.objects.filter(client=client_a).exists()

    def test_expiry_judged_after_lock_wait(self, business, client_a):
        """A code that expires while the redeemer waits on the row lock is rejected."""
        stamp = StampService.issue_stamp("BIZ-001")
        clock = [stamp.expires_at - timedelta(seconds=1)]
        lock_by_code = StampService._lock_by_code

        def slow_lock(code):
            locked = lock_by_code(code)
            clock[0] = stamp.expires_at + timedelta(seconds=1)
            return locked

        with patch.object(timezone, "now", side_effect=lambda: clock[0]):
            with patch.object(StampService, "_lock_by_code", side_effect=slow_lock):
                with pytest.raises(StampmanError) as exc:
                    StampService.redeem_stamp("CLI-001", stamp.code)

        assert exc.value.code == "STAMP_EXPIRED"
        stamp.refresh_from_db()
        assert stamp.status == StampStatus.EXPIRED

    def test_already_expired_status(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001")
        Stamp.objects.filter(pk=stamp.pk).update(status=StampStatus.EXPIRED)

        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("CLI-001", stamp.code)
        assert exc.value.code == "STAMP_EXPIRED"

    def test_cancelled(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001")
        StampService.cancel_stamp(stamp.uuid, "BIZ-001")

        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("CLI-001", stamp.code)
        assert exc.value.code == "STAMP_ALREADY_USED"

    def test_unknown_code(self, business, client_a):
        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("CLI-001", "999999")
        assert exc.value.code == "STAMP_NOT_FOUND"

    def test_unknown_client(self, business):
        stamp = StampService.issue_stamp("BIZ-001")
        with pytest.raises(StampmanError) as exc:
            StampService.redeem_stamp("NOBODY", stamp.code)
        assert exc.value.code == "CLIENT_NOT_FOUND"

    def test_live_code_wins_over_expired_one(self, business, client_a):
        old = StampService.issue_stamp("BIZ-001")
        Stamp.objects.filter(pk=old.pk).update(status=StampStatus.EXPIRED)
        with patch("stampman.codes.generate_code", return_value=old.code):
            new = StampService.issue_stamp("BIZ-001", value=4)

        result = StampService.redeem_stamp("CLI-001", old.code)

        assert result.stamp.pk == new.pk
        assert result.points_earned == 4

    def test_signal_sent_on_commit(self, business, client_a, django_capture_on_commit_callbacks):
        stamp = StampService.issue_stamp("BIZ-001", value=2)
        received = []

        def receiver(sender, stamp, card, points, **kwargs):
            received.append((stamp.code, card.available_stamps, points))

        stamp_redeemed.connect(receiver)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                StampService.redeem_stamp("CLI-001", stamp.code)
        finally:
            stamp_redeemed.disconnect(receiver)

        assert received == [(stamp.code, 2, 2)]

    def test_no_signal_on_failure(self, business, client_a, django_capture_on_commit_callbacks):
        stamp = StampService.issue_stamp("BIZ-001")
        expire(stamp)
        with django_capture_on_commit_callbacks() as callbacks:
            with pytest.raises(StampmanError):
                StampService.redeem_stamp("CLI-001", stamp.code)
        assert callbacks == []


class TestCancelStamp:
    def test_cancel_active(self, business):
        stamp = StampService.issue_stamp("BIZ-001")
        cancelled = StampService.cancel_stamp(str(stamp.uuid), "BIZ-001")
        assert cancelled.status == StampStatus.CANCELLED

    def test_cancel_used_rejected(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001")
        StampService.redeem_stamp("CLI-001", stamp.code)
        with pytest.raises(StampmanError) as exc:
            StampService.cancel_stamp(stamp.uuid, "BIZ-001")
        assert exc.value.code == "INVALID_TRANSITION"

    def test_other_business_cannot_cancel(self, business, other_business):
        stamp = StampService.issue_stamp("BIZ-001")
        with pytest.raises(StampmanError) as exc:
            StampService.cancel_stamp(stamp.uuid, "BIZ-002")
        assert exc.value.code == "STAMP_NOT_FOUND"

    def test_malformed_id(self, business):
        with pytest.raises(StampmanError) as exc:
            StampService.cancel_stamp("not-a-uuid", "BIZ-001")
        assert exc.value.code == "STAMP_NOT_FOUND"


class TestStampLookups:
    def test_get_by_code(self, business):
        stamp = StampService.issue_stamp("BIZ-001")
        assert StampService.get_stamp_by_code(stamp.code) == stamp

    def test_get_by_code_missing(self, db):
        with pytest.raises(StampmanError, match="STAMP_NOT_FOUND"):
            StampService.get_stamp_by_code("000000")

    def test_list_filters(self, business, client_a):
        used = StampService.issue_stamp("BIZ-001", value=2)
        StampService.redeem_stamp("CLI-001", used.code)
        stale = StampService.issue_stamp("BIZ-001")
        expire(stale)
        visit = StampService.issue_stamp("BIZ-001", kind=StampKind.VISIT)

        page = StampService.list_stamps_by_business("BIZ-001")
        assert page.total == 3

        active = StampService.list_stamps_by_business("BIZ-001", {"status": "active"})
        assert [s.pk for s in active.items] == [visit.pk]

        expired = StampService.list_stamps_by_business("BIZ-001", {"status": "expired"})
        assert [s.pk for s in expired.items] == [stale.pk]
        assert expired.items[0].status == StampStatus.EXPIRED

        by_client = StampService.list_stamps_by_business("BIZ-001", {"client_code": "CLI-001"})
        assert [s.pk for s in by_client.items] == [used.pk]

        visits = StampService.list_stamps_by_business("BIZ-001", {"kind": "visit"})
        assert visits.total == 1

        searched = StampService.list_stamps_by_business("BIZ-001", {"search": used.code})
        assert used.pk in [s.pk for s in searched.items]

    def test_list_pagination(self, business):
        for _ in range(5):
            StampService.issue_stamp("BIZ-001")

        page = StampService.list_stamps_by_business("BIZ-001", page=2, page_size=2)

        assert page.total == 5
        assert page.page == 2
        assert page.total_pages == 3
        assert len(page.items) == 2

    def test_empty_listing(self, business):
        page = StampService.list_stamps_by_business("BIZ-001")
        assert page.total == 0
        assert page.items == []
        assert page.total_pages == 0

    def test_redemption_history(self, business, other_business, client_a):
        for code in ("BIZ-001", "BIZ-002"):
            stamp = StampService.issue_stamp(code)
            StampService.redeem_stamp("CLI-001", stamp.code)

        assert StampService.redemption_history("CLI-001").total == 2
        only_one = StampService.redemption_history("CLI-001", business_code="BIZ-002")
        assert only_one.total == 1
        assert only_one.items[0].stamp.business == other_business

    def test_statistics(self, business, client_a):
        used = StampService.issue_stamp("BIZ-001")
        StampService.redeem_stamp("CLI-001", used.code)
        StampService.issue_stamp("BIZ-001")
        cancelled = StampService.issue_stamp("BIZ-001")
        StampService.cancel_stamp(cancelled.uuid, "BIZ-001")

        stats = StampService.statistics("BIZ-001")

        assert stats["total_generated"] == 3
        assert stats["total_used"] == 1
        assert stats["total_active"] == 1
        assert stats["total_cancelled"] == 1
        assert stats["total_expired"] == 0
        assert len(stats["recent_stamps"]) == 3


class TestExpireStaleStamps:
    def test_idempotent(self, business):
        stale = StampService.issue_stamp("BIZ-001")
        fresh = StampService.issue_stamp("BIZ-001")
        expire(stale)

        assert StampService.expire_stale() == 1
        assert StampService.expire_stale() == 0

        stale.refresh_from_db()
        fresh.refresh_from_db()
        assert stale.status == StampStatus.EXPIRED
        assert fresh.status == StampStatus.ACTIVE

    def test_used_stamps_untouched(self, business, client_a):
        stamp = StampService.issue_stamp("BIZ-001")
        StampService.redeem_stamp("CLI-001", stamp.code)
        expire(stamp)

        assert StampService.expire_stale() == 0
        stamp.refresh_from_db()
        assert stamp.status == StampStatus.USED
