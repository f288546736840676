from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("listings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_code", models.CharField(editable=False, max_length=12, unique=True)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("guest_count", models.PositiveSmallIntegerField(default=1)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending_payment", "Ожидает оплаты"),
                            ("confirmed", "Подтверждено"),
                            ("paid", "Оплачено"),
                            ("active", "Активно"),
                            ("completed", "Завершено"),
                            ("cancelled_by_guest", "Отменено гостем"),
                            ("cancelled_by_host", "Отменено хостом"),
                            ("expired", "Истекло/не оплачено"),
                        ],
                        default="pending_payment",
                        max_length=32,
                    ),
                ),
                ("nights", models.PositiveSmallIntegerField(default=1)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("cleaning_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("service_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="KZT", max_length=3)),
                (
                    "payment_method",
                    models.CharField(choices=[("card", "Карта"), ("cash", "Наличные (ваучер)")], max_length=10),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Ожидает оплаты"),
                            ("paid", "Оплачено"),
                            ("failed", "Ошибка оплаты"),
                            ("refunded", "Возврат"),
                            ("refund_pending", "Ожидает возврата"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="Идентификатор платёжного намерения в шлюзе.",
                        max_length=128,
                    ),
                ),
                ("paid_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("check_in_scheduled_time", models.DateTimeField(blank=True, null=True)),
                ("check_in_actual_time", models.DateTimeField(blank=True, null=True)),
                ("check_in_verified", models.BooleanField(default=False)),
                ("check_in_notes", models.TextField(blank=True)),
                ("check_out_scheduled_time", models.DateTimeField(blank=True, null=True)),
                ("check_out_actual_time", models.DateTimeField(blank=True, null=True)),
                ("check_out_verified", models.BooleanField(default=False)),
                ("check_out_notes", models.TextField(blank=True)),
                ("damage_report", models.TextField(blank=True)),
                ("host_confirmed_completion_at", models.DateTimeField(blank=True, null=True)),
                ("guest_confirmed_completion_at", models.DateTimeField(blank=True, null=True)),
                ("activated_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("auto_completed", models.BooleanField(default=False)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cancelled_by",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("guest", "Гость"),
                            ("host", "Хост"),
                            ("admin", "Администратор"),
                            ("system", "Система"),
                        ],
                        max_length=20,
                    ),
                ),
                ("cancellation_reason", models.CharField(blank=True, max_length=255)),
                ("refund_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "listing",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="listings.listing",
                    ),
                ),
                (
                    "guest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "host",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="hosted_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "check_in_confirmed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "check_out_confirmed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Бронирование",
                "verbose_name_plural": "Бронирования",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["listing", "start_date", "end_date"], name="booking_listing_dates_idx"),
                    models.Index(fields=["status", "start_date"], name="booking_status_start_idx"),
                    models.Index(fields=["status", "end_date"], name="booking_status_end_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(end_date__gt=models.F("start_date")),
                        name="booking_valid_dates",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CashVoucher",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voucher_number", models.CharField(editable=False, max_length=32, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="KZT", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Ожидает оплаты"),
                            ("paid", "Оплачен"),
                            ("expired", "Истёк"),
                            ("cancelled", "Отменён"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("expires_at", models.DateTimeField()),
                ("qr_payload", models.TextField(blank=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("agency_transaction_id", models.CharField(blank=True, max_length=128)),
                (
                    "paid_at_agency",
                    models.CharField(blank=True, help_text="Пункт приёма платежа.", max_length=255),
                ),
                (
                    "confirmed_by",
                    models.CharField(
                        blank=True,
                        choices=[("webhook", "Вебхук агента"), ("admin", "Администратор"), ("system", "Система")],
                        max_length=20,
                    ),
                ),
                ("reminder_24h_sent", models.BooleanField(default=False)),
                ("reminder_6h_sent", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="voucher",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Ваучер наличной оплаты",
                "verbose_name_plural": "Ваучеры наличной оплаты",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "expires_at"], name="voucher_status_expires_idx"),
                ],
            },
        ),
    ]
