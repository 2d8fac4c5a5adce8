from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="reconciliationcase",
            name="reason",
            field=models.CharField(
                choices=[
                    ("PaymentMismatch", "PaymentMismatch"),
                    ("PaidAfterHoldExpiry", "PaidAfterHoldExpiry"),
                    ("PaidForInactiveBooking", "PaidForInactiveBooking"),
                    ("UnmatchedCallback", "UnmatchedCallback"),
                    ("RefundFailed", "RefundFailed"),
                ],
                max_length=30,
            ),
        ),
    ]
