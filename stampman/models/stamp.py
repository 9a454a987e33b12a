"""Stamp and StampRedemption models.

A Stamp is a short-lived numeric code issued by a business for one purchase
or visit. Redeeming it credits ``value`` points to the client's card for that
business and records a StampRedemption.

Code uniqueness:
    Only live stamps (active or used) hold their code. Once a stamp expires or
    is cancelled its code may be handed out again, so the unique index is
    partial on status.
"""

import uuid as uuid_lib

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stampman.models.tier import PurchaseTier


class StampKind(models.TextChoices):
    PURCHASE = "purchase", _("Purchase")
    VISIT = "visit", _("Visit")


class StampStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    USED = "used", _("Used")
    EXPIRED = "expired", _("Expired")
    CANCELLED = "cancelled", _("Cancelled")


LIVE_STAMP_STATUSES = (StampStatus.ACTIVE, StampStatus.USED)


class Stamp(models.Model):
    """
    Stamp code issued by a business.

    Lifecycle: active -> used | expired | cancelled. All three targets are
    terminal. ``used_at`` and ``used_by`` are written once, together with the
    ``used`` status, and never change afterwards.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.PROTECT,
        related_name="stamps",
        verbose_name=_("business"),
    )

    code = models.CharField(_("code"), max_length=12, db_index=True)
    value = models.PositiveSmallIntegerField(
        _("value"),
        default=1,
        help_text=_("Points credited on redemption (1-10)"),
    )
    kind = models.CharField(
        _("kind"),
        max_length=10,
        choices=StampKind.choices,
        default=StampKind.PURCHASE,
    )
    purchase_tier = models.CharField(
        _("purchase tier"),
        max_length=10,
        choices=PurchaseTier.choices,
        blank=True,
    )
    description = models.CharField(_("description"), max_length=500, blank=True)

    status = models.CharField(
        _("status"),
        max_length=10,
        choices=StampStatus.choices,
        default=StampStatus.ACTIVE,
    )
    expires_at = models.DateTimeField(_("expires at"))
    used_at = models.DateTimeField(_("used at"), null=True, blank=True)
    used_by = models.ForeignKey(
        "stampman.Client",
        on_delete=models.PROTECT,
        related_name="used_stamps",
        null=True,
        blank=True,
        verbose_name=_("used by"),
    )

    created_by = models.CharField(_("created by"), max_length=100, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_stamp"
        verbose_name = _("stamp")
        verbose_name_plural = _("stamps")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["code"],
                condition=models.Q(status__in=["active", "used"]),
                name="stampman_unique_live_stamp_code",
            ),
            models.CheckConstraint(
                condition=models.Q(value__gte=1, value__lte=10),
                name="stampman_stamp_value_range",
            ),
            models.CheckConstraint(
                condition=~models.Q(status="used")
                | models.Q(used_at__isnull=False, used_by__isnull=False),
                name="stampman_used_stamp_has_redeemer",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "status"], name="stampman_stamp_biz_status_idx"),
            models.Index(fields=["status", "expires_at"], name="stampman_stamp_status_exp_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.status}, {self.value}pts)"

    def is_past_expiry(self, now=None) -> bool:
        return (now or timezone.now()) > self.expires_at

    def effective_status(self, now=None) -> str:
        """Status as a reader should see it: active past expiry reads as expired."""
        if self.status == StampStatus.ACTIVE and self.is_past_expiry(now):
            return StampStatus.EXPIRED
        return self.status


class StampRedemption(models.Model):
    """
    Fact that a client redeemed a stamp.

    Append-only. The (stamp, client) unique constraint makes a second credit
    for the same pair impossible even if status checks were bypassed.
    """

    stamp = models.ForeignKey(
        Stamp,
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("stamp"),
    )
    client = models.ForeignKey(
        "stampman.Client",
        on_delete=models.PROTECT,
        related_name="stamp_redemptions",
        verbose_name=_("client"),
    )
    card = models.ForeignKey(
        "stampman.LoyaltyCard",
        on_delete=models.PROTECT,
        related_name="stamp_redemptions",
        verbose_name=_("card"),
    )
    points = models.PositiveSmallIntegerField(_("points"))
    redeemed_at = models.DateTimeField(_("redeemed at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_stamp_redemption"
        verbose_name = _("stamp redemption")
        verbose_name_plural = _("stamp redemptions")
        ordering = ["-redeemed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["stamp", "client"],
                name="stampman_unique_stamp_redemption",
            ),
        ]

    def __str__(self):
        return f"+{self.points}pts (stamp {self.stamp_id})"
