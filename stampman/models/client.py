"""Client model (reference record)."""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


class Client(models.Model):
    """
    Client that redeems stamps and exchanges points.

    Only what tickets display is kept here (name and email); the client
    account itself is managed outside Stampman.
    """

    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        help_text=_("Unique client code supplied by the caller (e.g. CLI-001)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    first_name = models.CharField(_("first name"), max_length=100)
    last_name = models.CharField(_("last name"), max_length=100, blank=True)
    email = models.EmailField(_("email"), blank=True, db_index=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "stampman_client"
        verbose_name = _("client")
        verbose_name_plural = _("clients")
        ordering = ["first_name", "last_name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def name(self) -> str:
        """Full name (first + last)."""
        return f"{self.first_name} {self.last_name}".strip()

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower().strip()
        super().save(*args, **kwargs)
