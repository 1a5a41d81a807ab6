import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Family",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("family_number", models.CharField(max_length=10, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Family",
                "verbose_name_plural": "Families",
                "ordering": ["family_number"],
            },
        ),
        migrations.CreateModel(
            name="Child",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("child_letter", models.CharField(max_length=2)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Available for sponsorship"),
                            ("pending", "Being processed by a sponsor"),
                            ("confirmed", "Sponsored"),
                            ("completed", "Gifts delivered"),
                            ("inactive", "Not available"),
                        ],
                        default="available",
                        max_length=16,
                    ),
                ),
                ("claim_id", models.PositiveBigIntegerField(blank=True, null=True)),
                ("reservation_id", models.PositiveBigIntegerField(blank=True, null=True)),
                ("reservation_expires_at", models.DateTimeField(blank=True, null=True)),
                ("status_changed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "family",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="children",
                        to="catalog.family",
                    ),
                ),
            ],
            options={
                "verbose_name": "Child",
                "verbose_name_plural": "Children",
                "ordering": ["family__family_number", "child_letter"],
                "indexes": [
                    models.Index(fields=["status"], name="catalog_chi_status_7a1c2e_idx"),
                    models.Index(fields=["claim_id"], name="catalog_chi_claim_i_4b0d93_idx"),
                    models.Index(fields=["reservation_id"], name="catalog_chi_reserva_e52f10_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("family", "child_letter"),
                        name="child_unique_letter_per_family",
                    ),
                ],
            },
        ),
    ]
