from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('bookings', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='booking',
            name='doctor_ref',
            field=models.CharField(blank=True, max_length=64),
        ),
        migrations.AddField(
            model_name='booking',
            name='doctor_assigned_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name='notification',
            name='type',
            field=models.CharField(choices=[('BOOKING_CREATED', 'BOOKING_CREATED'), ('BOOKING_CONFIRMED', 'BOOKING_CONFIRMED'), ('BOOKING_REJECTED', 'BOOKING_REJECTED'), ('BOOKING_CANCELLED', 'BOOKING_CANCELLED'), ('BOOKING_COMPLETED', 'BOOKING_COMPLETED'), ('PAYMENT_RECEIVED', 'PAYMENT_RECEIVED'), ('PAYMENT_FAILED', 'PAYMENT_FAILED'), ('PAYMENT_REFUNDED', 'PAYMENT_REFUNDED'), ('PAYMENT_REMINDER', 'PAYMENT_REMINDER'), ('APPOINTMENT_REMINDER', 'APPOINTMENT_REMINDER'), ('TOKEN_UPDATED', 'TOKEN_UPDATED'), ('DOCTOR_ASSIGNED', 'DOCTOR_ASSIGNED')], max_length=32),
        ),
    ]
