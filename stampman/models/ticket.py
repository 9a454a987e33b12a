"""RewardRedemption model: the redemption ticket."""

import uuid as uuid_lib

from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RedemptionStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    DELIVERED = "delivered", _("Delivered")
    EXPIRED = "expired", _("Expired")
    CANCELLED = "cancelled", _("Cancelled")


class RewardRedemption(models.Model):
    """
    Ticket created when a client exchanges points for a reward.

    The client shows ``code`` to the business, which then marks the ticket
    delivered. Lifecycle: pending -> delivered | expired | cancelled; all three
    are terminal (see Gates.ticket_transition).

    points_before - points_spent == points_after (check constraint).
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    reward = models.ForeignKey(
        "stampman.Reward",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("reward"),
    )
    client = models.ForeignKey(
        "stampman.Client",
        on_delete=models.PROTECT,
        related_name="reward_redemptions",
        verbose_name=_("client"),
    )
    card = models.ForeignKey(
        "stampman.LoyaltyCard",
        on_delete=models.PROTECT,
        related_name="reward_redemptions",
        verbose_name=_("card"),
    )
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.PROTECT,
        related_name="reward_redemptions",
        verbose_name=_("business"),
    )

    points_spent = models.PositiveIntegerField(_("points spent"))
    points_before = models.IntegerField(_("points before"))
    points_after = models.IntegerField(_("points after"))

    code = models.CharField(_("code"), max_length=12, unique=True)
    status = models.CharField(
        _("status"),
        max_length=10,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.PENDING,
    )
    expires_at = models.DateTimeField(_("expires at"))

    delivered_at = models.DateTimeField(_("delivered at"), null=True, blank=True)
    delivered_by = models.CharField(_("delivered by"), max_length=100, blank=True)
    notes = models.CharField(_("notes"), max_length=500, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_reward_redemption"
        verbose_name = _("reward redemption")
        verbose_name_plural = _("reward redemptions")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(points_after=F("points_before") - F("points_spent")),
                name="stampman_ticket_points_balance",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "status"], name="stampman_ticket_biz_status_idx"),
            models.Index(fields=["client", "reward"], name="stampman_ticket_client_rwd_idx"),
            models.Index(fields=["status", "expires_at"], name="stampman_ticket_status_exp_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.status})"

    def is_past_expiry(self, now=None) -> bool:
        return self.expires_at < (now or timezone.now())
