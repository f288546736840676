import datetime
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Listing",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "category",
                    models.CharField(
                        choices=[("stay", "Жильё"), ("vehicle", "Транспорт")],
                        default="stay",
                        max_length=20,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("slug", models.SlugField(blank=True, max_length=255, unique=True)),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Черновик"),
                            ("active", "Активен"),
                            ("inactive", "Неактивен"),
                            ("blocked", "Заблокирован"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("city", models.CharField(blank=True, max_length=100)),
                ("address_line", models.CharField(blank=True, max_length=255)),
                ("base_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("currency", models.CharField(default="KZT", max_length=3)),
                (
                    "max_guests",
                    models.PositiveSmallIntegerField(default=1, help_text="Для транспорта: число пассажиров."),
                ),
                ("check_in_from", models.TimeField(default=datetime.time(14, 0))),
                ("check_out_to", models.TimeField(default=datetime.time(12, 0))),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="listings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Объявление",
                "verbose_name_plural": "Объявления",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="listings_li_status_idx"),
                    models.Index(fields=["owner", "status"], name="listings_li_owner_status_idx"),
                ],
            },
        ),
    ]
