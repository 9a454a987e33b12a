"""Stampman admin.

Ledger rows (stamp redemptions, tickets, card balances) are read-only here:
balances only move through the services so the card invariants hold.
"""

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from stampman.models import (
    Business,
    Client,
    LoyaltyCard,
    RedemptionStatus,
    Reward,
    RewardRedemption,
    Stamp,
    StampRedemption,
    StampStatus,
    StampTier,
)

STATUS_COLORS = {
    StampStatus.ACTIVE: "#28a745",
    StampStatus.USED: "#007bff",
    StampStatus.EXPIRED: "#6c757d",
    StampStatus.CANCELLED: "#dc3545",
    RedemptionStatus.PENDING: "#ffc107",
    RedemptionStatus.DELIVERED: "#28a745",
}


def status_badge(obj):
    color = STATUS_COLORS.get(obj.status, "#6c757d")
    text_color = "#000" if obj.status == RedemptionStatus.PENDING else "#fff"
    return format_html(
        '<span style="background:{}; color:{}; padding:2px 8px; '
        'border-radius:3px; font-size:11px;">{}</span>',
        color,
        text_color,
        obj.get_status_display(),
    )


status_badge.short_description = "Status"


def client_link(client):
    if client is None:
        return "-"
    url = reverse("admin:stampman_client_change", args=[client.pk])
    return format_html('<a href="{}">{}</a>', url, client.code)


# ===========================================
# Reference records
# ===========================================


class StampTierInline(admin.TabularInline):
    model = StampTier
    extra = 0
    fields = ["name", "purchase_tier", "min_amount", "stamp_value", "is_active", "sort_order"]


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "email", "is_active", "card_count"]
    list_filter = ["is_active"]
    search_fields = ["code", "name", "email"]
    readonly_fields = ["uuid", "created_at", "updated_at"]
    inlines = [StampTierInline]

    def card_count(self, obj):
        return obj.cards.count()

    card_count.short_description = "Cards"


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "email", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["code", "first_name", "last_name", "email"]
    list_editable = ["is_active"]
    readonly_fields = ["uuid", "created_at", "updated_at"]


# ===========================================
# Stamps
# ===========================================


@admin.register(Stamp)
class StampAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "business",
        "value",
        "kind",
        "purchase_tier",
        status_badge,
        "expires_at",
        "used_by_link",
        "created_at",
    ]
    list_filter = ["status", "kind", "purchase_tier", "business"]
    search_fields = ["code", "description", "used_by__code"]
    raw_id_fields = ["business", "used_by"]
    readonly_fields = [
        "uuid",
        "code",
        "status",
        "used_at",
        "used_by",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        # Codes are only issued through StampService.issue_stamp()
        return False

    def used_by_link(self, obj):
        return client_link(obj.used_by)

    used_by_link.short_description = "Used by"


@admin.register(StampRedemption)
class StampRedemptionAdmin(admin.ModelAdmin):
    list_display = ["redeemed_at", "stamp", "client_code", "points_display"]
    search_fields = ["stamp__code", "client__code"]
    readonly_fields = ["stamp", "client", "card", "points", "redeemed_at"]
    date_hierarchy = "redeemed_at"

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def client_code(self, obj):
        return obj.client.code

    client_code.short_description = "Client"

    def points_display(self, obj):
        return format_html('<span style="color:green">+{}</span>', obj.points)

    points_display.short_description = "Points"


# ===========================================
# Cards
# ===========================================


class StampRedemptionInline(admin.TabularInline):
    model = StampRedemption
    extra = 0
    fields = ["stamp", "points", "redeemed_at"]
    readonly_fields = ["stamp", "points", "redeemed_at"]
    ordering = ["-redeemed_at"]
    max_num = 10

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LoyaltyCard)
class LoyaltyCardAdmin(admin.ModelAdmin):
    list_display = [
        "client_display",
        "business",
        "available_stamps",
        "used_stamps",
        "total_stamps",
        "level",
        "balance_badge",
        "last_stamp_at",
    ]
    list_filter = ["business", "level"]
    search_fields = ["client__code", "client__first_name", "business__code"]
    raw_id_fields = ["client", "business"]
    readonly_fields = [
        "uuid",
        "total_stamps",
        "available_stamps",
        "used_stamps",
        "level",
        "last_stamp_at",
        "created_at",
        "updated_at",
    ]
    inlines = [StampRedemptionInline]

    def has_delete_permission(self, request, obj=None):
        return False

    def client_display(self, obj):
        return client_link(obj.client)

    client_display.short_description = "Client"

    def balance_badge(self, obj):
        if obj.is_balanced:
            return format_html('<span style="color: green;">OK</span>')
        return format_html('<span style="color: red; font-weight: bold;">UNBALANCED</span>')

    balance_badge.short_description = "Ledger"


# ===========================================
# Rewards and tickets
# ===========================================


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "business",
        "reward_type",
        "point_cost",
        "stock_display",
        "is_active",
        "expiration_date",
    ]
    list_filter = ["business", "reward_type", "is_active"]
    search_fields = ["name", "description"]
    raw_id_fields = ["business"]
    readonly_fields = ["uuid", "created_at", "updated_at"]

    def has_delete_permission(self, request, obj=None):
        return False

    def stock_display(self, obj):
        if obj.stock is None:
            return "unlimited"
        if obj.stock == 0:
            return format_html('<span style="color:red">0</span>')
        return obj.stock

    stock_display.short_description = "Stock"


@admin.register(RewardRedemption)
class RewardRedemptionAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "business",
        "reward",
        "client_display",
        "points_spent",
        status_badge,
        "expires_at",
        "delivered_at",
    ]
    list_filter = ["status", "business"]
    search_fields = ["code", "client__code", "reward__name"]
    readonly_fields = [
        "uuid",
        "code",
        "reward",
        "client",
        "card",
        "business",
        "points_spent",
        "points_before",
        "points_after",
        "status",
        "expires_at",
        "delivered_at",
        "delivered_by",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def client_display(self, obj):
        return client_link(obj.client)

    client_display.short_description = "Client"
