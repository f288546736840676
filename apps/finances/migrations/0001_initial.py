import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event",
                    models.CharField(
                        choices=[
                            ("intent_created", "Создано платёжное намерение"),
                            ("intent_checked", "Проверен статус платежа"),
                            ("refund_requested", "Запрошен возврат"),
                            ("voucher_paid", "Оплачен ваучер"),
                            ("gateway_error", "Ошибка шлюза"),
                        ],
                        max_length=50,
                    ),
                ),
                ("intent_id", models.CharField(blank=True, max_length=128)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("status", models.CharField(blank=True, max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_transactions",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Платёжная транзакция",
                "verbose_name_plural": "Платёжные транзакции",
                "ordering": ["-created_at"],
            },
        ),
    ]
