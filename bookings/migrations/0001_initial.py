import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='Hospital',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('registration_number', models.CharField(max_length=64, unique=True)),
                ('contact_number', models.CharField(blank=True, max_length=32)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('city', models.CharField(blank=True, max_length=128)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=16)),
                ('is_open', models.BooleanField(db_index=True, default=True)),
                ('emergency_services', models.BooleanField(default=False)),
                ('rejection_reason', models.CharField(blank=True, max_length=255)),
                ('op_booking_price', models.PositiveIntegerField(default=0, help_text='Consultation price, paid at the hospital')),
                ('max_op_bookings_per_day', models.PositiveIntegerField(default=50)),
                ('patients_per_slot', models.PositiveIntegerField(default=1)),
                ('slot_duration', models.PositiveSmallIntegerField(choices=[(15, '15 min'), (30, '30 min'), (45, '45 min'), (60, '60 min')], default=30)),
                ('fee_strategy', models.CharField(choices=[('flat_v1', 'Flat platform fee'), ('percentage_v1', 'Percentage of booking price')], default='flat_v1', max_length=32)),
                ('platform_fee', models.PositiveIntegerField(default=9, help_text='Smallest currency unit')),
                ('platform_fee_percent', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('emergency_fee', models.PositiveIntegerField(default=0, help_text='Smallest currency unit')),
                ('tax_rate', models.DecimalField(decimal_places=4, default='0.18', max_digits=5)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'indexes': [models.Index(fields=['status', 'is_open'], name='bookings_ho_status_5b1c4e_idx')],
            },
        ),
        migrations.CreateModel(
            name='HospitalTiming',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day', models.CharField(choices=[('monday', 'Monday'), ('tuesday', 'Tuesday'), ('wednesday', 'Wednesday'), ('thursday', 'Thursday'), ('friday', 'Friday'), ('saturday', 'Saturday'), ('sunday', 'Sunday')], max_length=10)),
                ('open_time', models.TimeField(blank=True, null=True)),
                ('close_time', models.TimeField(blank=True, null=True)),
                ('is_open', models.BooleanField(default=True)),
                ('hospital', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='timings', to='bookings.hospital')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('hospital', 'day'), name='uniq_hospital_timing_day')],
            },
        ),
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('role', models.CharField(choices=[('patient', 'Patient'), ('hospital', 'Hospital operator'), ('admin', 'Administrator')], default='patient', max_length=10)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
                ('hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='operators', to='bookings.hospital')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('appointment_date', models.DateTimeField()),
                ('appointment_day', models.DateField()),
                ('slot_start', models.DateTimeField()),
                ('time_slot', models.CharField(max_length=8)),
                ('token_number', models.CharField(blank=True, default='', max_length=16)),
                ('sequence', models.PositiveIntegerField(blank=True, null=True)),
                ('is_emergency', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('rejected', 'Rejected'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], db_index=True, default='pending', max_length=16)),
                ('patient_name', models.CharField(max_length=128)),
                ('patient_age', models.PositiveIntegerField(blank=True, null=True)),
                ('patient_gender', models.CharField(blank=True, choices=[('male', 'Male'), ('female', 'Female'), ('other', 'Other')], max_length=10)),
                ('patient_mobile', models.CharField(blank=True, max_length=20)),
                ('patient_address', models.CharField(blank=True, max_length=255)),
                ('health_issue', models.TextField(blank=True)),
                ('symptoms', models.TextField(blank=True)),
                ('specialization', models.CharField(blank=True, max_length=64)),
                ('doctor_name', models.CharField(blank=True, max_length=128)),
                ('rejection_reason', models.CharField(blank=True, max_length=255)),
                ('completion_notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('status_updated_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('hospital', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='bookings.hospital')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['hospital', 'appointment_day', 'status'], name='bookings_bo_hospita_2f6a1d_idx'),
                    models.Index(fields=['hospital', 'slot_start', 'status'], name='bookings_bo_hospita_8c3e07_idx'),
                    models.Index(fields=['user', 'status'], name='bookings_bo_user_id_4d9b2a_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('hospital', 'appointment_day', 'sequence'), name='uniq_booking_sequence_per_day'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('method', models.CharField(choices=[('online', 'Online'), ('cod', 'Pay at hospital')], max_length=8)),
                ('amount', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('failed', 'Failed'), ('refunded', 'Refunded')], db_index=True, default='pending', max_length=16)),
                ('order_id', models.CharField(blank=True, max_length=64)),
                ('payment_id', models.CharField(blank=True, max_length=64)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('remarks', models.CharField(blank=True, max_length=255)),
                ('fee_strategy', models.CharField(max_length=32)),
                ('platform_fee', models.PositiveIntegerField()),
                ('emergency_fee', models.PositiveIntegerField(default=0)),
                ('tax', models.PositiveIntegerField()),
                ('total', models.PositiveIntegerField()),
                ('refund_id', models.CharField(blank=True, max_length=64)),
                ('refund_amount', models.PositiveIntegerField(blank=True, null=True)),
                ('refund_status', models.CharField(blank=True, max_length=32)),
                ('refunded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='payment', to='bookings.booking')),
            ],
            options={
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(total=models.F('platform_fee') + models.F('emergency_fee') + models.F('tax')),
                        name='payment_total_is_sum_of_parts',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='DailyTokenCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day', models.DateField()),
                ('last_sequence', models.PositiveIntegerField(default=0)),
                ('hospital', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='token_counters', to='bookings.hospital')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('hospital', 'day'), name='uniq_token_counter_day')],
            },
        ),
        migrations.CreateModel(
            name='BookingTransition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(max_length=16)),
                ('to_status', models.CharField(max_length=16)),
                ('reason', models.CharField(blank=True, max_length=255)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transitions', to='bookings.booking')),
                ('operator', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='booking_transitions', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('BOOKING_CREATED', 'BOOKING_CREATED'), ('BOOKING_CONFIRMED', 'BOOKING_CONFIRMED'), ('BOOKING_REJECTED', 'BOOKING_REJECTED'), ('BOOKING_CANCELLED', 'BOOKING_CANCELLED'), ('BOOKING_COMPLETED', 'BOOKING_COMPLETED'), ('PAYMENT_RECEIVED', 'PAYMENT_RECEIVED'), ('PAYMENT_FAILED', 'PAYMENT_FAILED'), ('PAYMENT_REFUNDED', 'PAYMENT_REFUNDED'), ('PAYMENT_REMINDER', 'PAYMENT_REMINDER'), ('APPOINTMENT_REMINDER', 'APPOINTMENT_REMINDER'), ('TOKEN_UPDATED', 'TOKEN_UPDATED')], max_length=32)),
                ('title', models.CharField(max_length=128)),
                ('message', models.TextField()),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='bookings.booking')),
                ('hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='bookings.hospital')),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [models.Index(fields=['recipient', 'is_read', 'created_at'], name='bookings_no_recipie_7e21c5_idx')],
            },
        ),
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=64)),
                ('object_type', models.CharField(blank=True, max_length=64, null=True)),
                ('object_id', models.IntegerField(blank=True, null=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['action', 'created_at'], name='bookings_au_action_0c8f4e_idx'),
                    models.Index(fields=['object_type', 'object_id', 'created_at'], name='bookings_au_object__9a2d61_idx'),
                ],
            },
        ),
    ]
