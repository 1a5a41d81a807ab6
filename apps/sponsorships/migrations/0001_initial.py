import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Claim",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sponsor_name", models.CharField(max_length=100)),
                ("sponsor_email", models.EmailField(db_index=True, max_length=255)),
                ("sponsor_phone", models.CharField(blank=True, max_length=20)),
                ("sponsor_address", models.CharField(blank=True, max_length=500)),
                (
                    "gift_preference",
                    models.CharField(
                        choices=[
                            ("shopping", "Shop for gifts"),
                            ("gift_card", "Gift card"),
                            ("cash_donation", "Cash donation"),
                        ],
                        default="shopping",
                        max_length=20,
                    ),
                ),
                ("special_message", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Awaiting confirmation"),
                            ("confirmed", "Confirmed"),
                            ("completed", "Gifts delivered"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("request_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("confirmation_date", models.DateTimeField(blank=True, null=True)),
                ("completion_date", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, help_text="Administrative notes.")),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "child",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="claims",
                        to="catalog.child",
                    ),
                ),
            ],
            options={
                "verbose_name": "Claim",
                "verbose_name_plural": "Claims",
                "ordering": ["-request_date"],
                "indexes": [
                    models.Index(fields=["status", "request_date"], name="sponsorship_claim_stale_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["pending", "confirmed"])),
                        fields=("child",),
                        name="claim_one_active_per_child",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sponsor_name", models.CharField(max_length=100)),
                ("sponsor_email", models.EmailField(db_index=True, max_length=255)),
                ("sponsor_phone", models.CharField(blank=True, max_length=20)),
                ("sponsor_address", models.CharField(blank=True, max_length=500)),
                ("token", models.CharField(editable=False, max_length=64, unique=True)),
                ("children_ids", models.JSONField(default=list)),
                ("total_children", models.PositiveSmallIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("expires_at", models.DateTimeField()),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Reservation",
                "verbose_name_plural": "Reservations",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "expires_at"], name="sponsorship_resv_sweep_idx"),
                ],
            },
        ),
    ]
