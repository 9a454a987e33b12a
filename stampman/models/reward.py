"""Reward model: catalog item exchangeable for points."""

import uuid as uuid_lib

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RewardType(models.TextChoices):
    PRODUCT = "product", _("Product")
    DISCOUNT = "discount", _("Discount")
    SERVICE = "service", _("Service")
    OTHER = "other", _("Other")


class Reward(models.Model):
    """
    Reward offered by a business.

    Stock:
    - NULL: unlimited
    - N >= 0: units left; 0 means out of stock

    Rewards are never deleted, only disabled (is_active=False), because
    tickets keep pointing at them.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.PROTECT,
        related_name="rewards",
        verbose_name=_("business"),
    )

    name = models.CharField(_("name"), max_length=255)
    description = models.TextField(_("description"), blank=True)
    reward_type = models.CharField(
        _("type"),
        max_length=20,
        choices=RewardType.choices,
        default=RewardType.PRODUCT,
    )
    special_conditions = models.TextField(_("special conditions"), blank=True)

    point_cost = models.PositiveIntegerField(_("point cost"))
    stock = models.IntegerField(
        _("stock"),
        null=True,
        blank=True,
        help_text=_("Units left. Empty means unlimited."),
    )

    is_active = models.BooleanField(_("active"), default=True)
    expiration_date = models.DateTimeField(_("expiration date"), null=True, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_reward"
        verbose_name = _("reward")
        verbose_name_plural = _("rewards")
        ordering = ["point_cost", "name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(point_cost__gte=1),
                name="stampman_reward_cost_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(stock__isnull=True) | models.Q(stock__gte=0),
                name="stampman_reward_stock_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "is_active"], name="stampman_reward_biz_active_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.point_cost}pts)"

    @property
    def is_unlimited(self) -> bool:
        return self.stock is None

    @property
    def in_stock(self) -> bool:
        return self.stock is None or self.stock > 0

    def is_expired(self, now=None) -> bool:
        if self.expiration_date is None:
            return False
        return self.expiration_date < (now or timezone.now())

    def is_exchangeable(self, now=None) -> bool:
        """Active, unexpired and in stock."""
        return self.is_active and self.in_stock and not self.is_expired(now)
