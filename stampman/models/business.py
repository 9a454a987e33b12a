"""Business model (reference record).

Registration, login and profile editing live in the host project. Stampman
only needs a stable code to resolve the caller, plus the name and logo shown
on redemption tickets.
"""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


class Business(models.Model):
    """Business that issues stamps and offers rewards."""

    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        help_text=_("Unique business code supplied by the caller (e.g. BIZ-001)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    name = models.CharField(_("name"), max_length=200)
    logo = models.CharField(_("logo"), max_length=500, blank=True)
    email = models.EmailField(_("email"), blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_business"
        verbose_name = _("business")
        verbose_name_plural = _("businesses")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"
