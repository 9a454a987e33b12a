"""LoyaltyCard model: per (client, business) point balance."""

import uuid as uuid_lib

from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _


class LoyaltyCard(models.Model):
    """
    Running point balance of one client at one business.

    Created on the first stamp redemption for the pair and never deleted.

    Balances:
    - total_stamps: every point ever credited (never decreases)
    - available_stamps: points that can still be exchanged
    - used_stamps: points spent on reward tickets

    total_stamps == available_stamps + used_stamps must hold after every
    mutation; the database enforces it with a check constraint.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    client = models.ForeignKey(
        "stampman.Client",
        on_delete=models.PROTECT,
        related_name="cards",
        verbose_name=_("client"),
    )
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.PROTECT,
        related_name="cards",
        verbose_name=_("business"),
    )

    total_stamps = models.IntegerField(_("total points"), default=0)
    available_stamps = models.IntegerField(_("available points"), default=0)
    used_stamps = models.IntegerField(_("used points"), default=0)
    level = models.IntegerField(_("level"), default=1)

    last_stamp_at = models.DateTimeField(_("last stamp at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_loyalty_card"
        verbose_name = _("loyalty card")
        verbose_name_plural = _("loyalty cards")
        ordering = [F("last_stamp_at").desc(nulls_last=True), "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["client", "business"],
                name="stampman_unique_card_per_business",
            ),
            models.CheckConstraint(
                condition=Q(available_stamps__gte=0) & Q(used_stamps__gte=0),
                name="stampman_card_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(total_stamps=F("available_stamps") + F("used_stamps")),
                name="stampman_card_balance",
            ),
        ]
        indexes = [
            models.Index(fields=["business"], name="stampman_card_business_idx"),
        ]

    def __str__(self):
        return f"{self.client_id}@{self.business_id}: {self.available_stamps}/{self.total_stamps}pts L{self.level}"

    @property
    def is_balanced(self) -> bool:
        return (
            self.available_stamps >= 0
            and self.used_stamps >= 0
            and self.total_stamps == self.available_stamps + self.used_stamps
        )
