from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("finances", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="paymenttransaction",
            name="event",
            field=models.CharField(
                choices=[
                    ("intent_created", "Создано платёжное намерение"),
                    ("intent_checked", "Проверен статус платежа"),
                    ("refund_requested", "Запрошен возврат"),
                    ("voucher_paid", "Оплачен ваучер"),
                    ("gateway_error", "Ошибка шлюза"),
                    ("callback_received", "Получено уведомление шлюза"),
                ],
                max_length=50,
            ),
        ),
    ]
