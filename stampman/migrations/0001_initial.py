# Initial Stampman schema

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Business",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Unique business code supplied by the caller (e.g. BIZ-001)",
                        max_length=50,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("logo", models.CharField(blank=True, max_length=500, verbose_name="logo")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "business",
                "verbose_name_plural": "businesses",
                "db_table": "stampman_business",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Unique client code supplied by the caller (e.g. CLI-001)",
                        max_length=50,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("first_name", models.CharField(max_length=100, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="last name")),
                ("email", models.EmailField(blank=True, db_index=True, max_length=254, verbose_name="email")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "client",
                "verbose_name_plural": "clients",
                "db_table": "stampman_client",
                "ordering": ["first_name", "last_name"],
            },
        ),
        migrations.CreateModel(
            name="StampTier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, verbose_name="name")),
                (
                    "purchase_tier",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("small", "Small purchase"),
                            ("medium", "Medium purchase"),
                            ("large", "Large purchase"),
                        ],
                        max_length=10,
                        verbose_name="purchase tier",
                    ),
                ),
                (
                    "min_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Smallest sale amount that reaches this tier",
                        max_digits=10,
                        verbose_name="minimum amount",
                    ),
                ),
                (
                    "stamp_value",
                    models.PositiveSmallIntegerField(
                        help_text="Points granted by a stamp issued in this tier (1-10)",
                        verbose_name="stamp value",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("sort_order", models.IntegerField(default=0, verbose_name="sort order")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stamp_tiers",
                        to="stampman.business",
                        verbose_name="business",
                    ),
                ),
            ],
            options={
                "verbose_name": "stamp tier",
                "verbose_name_plural": "stamp tiers",
                "db_table": "stampman_stamp_tier",
                "ordering": ["business", "min_amount", "sort_order"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("stamp_value__gte", 1), ("stamp_value__lte", 10)),
                        name="stampman_tier_value_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Stamp",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("code", models.CharField(db_index=True, max_length=12, verbose_name="code")),
                (
                    "value",
                    models.PositiveSmallIntegerField(
                        default=1,
                        help_text="Points credited on redemption (1-10)",
                        verbose_name="value",
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[("purchase", "Purchase"), ("visit", "Visit")],
                        default="purchase",
                        max_length=10,
                        verbose_name="kind",
                    ),
                ),
                (
                    "purchase_tier",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("small", "Small purchase"),
                            ("medium", "Medium purchase"),
                            ("large", "Large purchase"),
                        ],
                        max_length=10,
                        verbose_name="purchase tier",
                    ),
                ),
                ("description", models.CharField(blank=True, max_length=500, verbose_name="description")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("used", "Used"),
                            ("expired", "Expired"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="active",
                        max_length=10,
                        verbose_name="status",
                    ),
                ),
                ("expires_at", models.DateTimeField(verbose_name="expires at")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="used at")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stamps",
                        to="stampman.business",
                        verbose_name="business",
                    ),
                ),
                (
                    "used_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="used_stamps",
                        to="stampman.client",
                        verbose_name="used by",
                    ),
                ),
            ],
            options={
                "verbose_name": "stamp",
                "verbose_name_plural": "stamps",
                "db_table": "stampman_stamp",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["business", "status"], name="stampman_stamp_biz_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="stampman_stamp_status_exp_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["active", "used"])),
                        fields=("code",),
                        name="stampman_unique_live_stamp_code",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("value__gte", 1), ("value__lte", 10)),
                        name="stampman_stamp_value_range",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "used"), _negated=True),
                            models.Q(("used_at__isnull", False), ("used_by__isnull", False)),
                            _connector="OR",
                        ),
                        name="stampman_used_stamp_has_redeemer",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyCard",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("total_stamps", models.IntegerField(default=0, verbose_name="total points")),
                ("available_stamps", models.IntegerField(default=0, verbose_name="available points")),
                ("used_stamps", models.IntegerField(default=0, verbose_name="used points")),
                ("level", models.IntegerField(default=1, verbose_name="level")),
                ("last_stamp_at", models.DateTimeField(blank=True, null=True, verbose_name="last stamp at")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cards",
                        to="stampman.business",
                        verbose_name="business",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cards",
                        to="stampman.client",
                        verbose_name="client",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty card",
                "verbose_name_plural": "loyalty cards",
                "db_table": "stampman_loyalty_card",
                "ordering": [models.F("last_stamp_at").desc(nulls_last=True), "-created_at"],
                "indexes": [
                    models.Index(fields=["business"], name="stampman_card_business_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("client", "business"),
                        name="stampman_unique_card_per_business",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("available_stamps__gte", 0), ("used_stamps__gte", 0)),
                        name="stampman_card_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "total_stamps",
                                models.F("available_stamps") + models.F("used_stamps"),
                            )
                        ),
                        name="stampman_card_balance",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StampRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("points", models.PositiveSmallIntegerField(verbose_name="points")),
                ("redeemed_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="redeemed at")),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stamp_redemptions",
                        to="stampman.loyaltycard",
                        verbose_name="card",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stamp_redemptions",
                        to="stampman.client",
                        verbose_name="client",
                    ),
                ),
                (
                    "stamp",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="stampman.stamp",
                        verbose_name="stamp",
                    ),
                ),
            ],
            options={
                "verbose_name": "stamp redemption",
                "verbose_name_plural": "stamp redemptions",
                "db_table": "stampman_stamp_redemption",
                "ordering": ["-redeemed_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("stamp", "client"),
                        name="stampman_unique_stamp_redemption",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(max_length=255, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("product", "Product"),
                            ("discount", "Discount"),
                            ("service", "Service"),
                            ("other", "Other"),
                        ],
                        default="product",
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                ("special_conditions", models.TextField(blank=True, verbose_name="special conditions")),
                ("point_cost", models.PositiveIntegerField(verbose_name="point cost")),
                (
                    "stock",
                    models.IntegerField(
                        blank=True,
                        help_text="Units left. Empty means unlimited.",
                        null=True,
                        verbose_name="stock",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("expiration_date", models.DateTimeField(blank=True, null=True, verbose_name="expiration date")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rewards",
                        to="stampman.business",
                        verbose_name="business",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward",
                "verbose_name_plural": "rewards",
                "db_table": "stampman_reward",
                "ordering": ["point_cost", "name"],
                "indexes": [
                    models.Index(fields=["business", "is_active"], name="stampman_reward_biz_active_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("point_cost__gte", 1)),
                        name="stampman_reward_cost_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("stock__isnull", True), ("stock__gte", 0), _connector="OR"),
                        name="stampman_reward_stock_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("points_spent", models.PositiveIntegerField(verbose_name="points spent")),
                ("points_before", models.IntegerField(verbose_name="points before")),
                ("points_after", models.IntegerField(verbose_name="points after")),
                ("code", models.CharField(max_length=12, unique=True, verbose_name="code")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("delivered", "Delivered"),
                            ("expired", "Expired"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=10,
                        verbose_name="status",
                    ),
                ),
                ("expires_at", models.DateTimeField(verbose_name="expires at")),
                ("delivered_at", models.DateTimeField(blank=True, null=True, verbose_name="delivered at")),
                ("delivered_by", models.CharField(blank=True, max_length=100, verbose_name="delivered by")),
                ("notes", models.CharField(blank=True, max_length=500, verbose_name="notes")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reward_redemptions",
                        to="stampman.business",
                        verbose_name="business",
                    ),
                ),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reward_redemptions",
                        to="stampman.loyaltycard",
                        verbose_name="card",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reward_redemptions",
                        to="stampman.client",
                        verbose_name="client",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="stampman.reward",
                        verbose_name="reward",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward redemption",
                "verbose_name_plural": "reward redemptions",
                "db_table": "stampman_reward_redemption",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["business", "status"], name="stampman_ticket_biz_status_idx"),
                    models.Index(fields=["client", "reward"], name="stampman_ticket_client_rwd_idx"),
                    models.Index(fields=["status", "expires_at"], name="stampman_ticket_status_exp_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("points_after", models.F("points_before") - models.F("points_spent"))
                        ),
                        name="stampman_ticket_points_balance",
                    ),
                ],
            },
        ),
    ]
