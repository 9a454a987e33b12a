"""StampTier model: sale amount brackets per business."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class PurchaseTier(models.TextChoices):
    SMALL = "small", _("Small purchase")
    MEDIUM = "medium", _("Medium purchase")
    LARGE = "large", _("Large purchase")


class StampTier(models.Model):
    """
    Sale amount bracket that maps to a stamp value.

    A sale matches the active tier with the highest ``min_amount`` that does
    not exceed it (see ``stampman.tiers.resolve_tier``).
    """

    business = models.ForeignKey(
        "stampman.Business",
        on_delete=models.CASCADE,
        related_name="stamp_tiers",
        verbose_name=_("business"),
    )

    name = models.CharField(_("name"), max_length=100)
    purchase_tier = models.CharField(
        _("purchase tier"),
        max_length=10,
        choices=PurchaseTier.choices,
        blank=True,
    )
    min_amount = models.DecimalField(
        _("minimum amount"),
        max_digits=10,
        decimal_places=2,
        help_text=_("Smallest sale amount that reaches this tier"),
    )
    stamp_value = models.PositiveSmallIntegerField(
        _("stamp value"),
        help_text=_("Points granted by a stamp issued in this tier (1-10)"),
    )

    is_active = models.BooleanField(_("active"), default=True)
    sort_order = models.IntegerField(_("sort order"), default=0)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_stamp_tier"
        verbose_name = _("stamp tier")
        verbose_name_plural = _("stamp tiers")
        ordering = ["business", "min_amount", "sort_order"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stamp_value__gte=1, stamp_value__lte=10),
                name="stampman_tier_value_range",
            ),
        ]

    def __str__(self):
        return f"{self.name}: >= {self.min_amount} -> {self.stamp_value}"
