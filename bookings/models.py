"""
Database models for the OP booking backend.

Hospitals are configured by administrators and read by the booking
engine.  Bookings are created by the orchestrator in
:mod:`bookings.services.booking` and change status only through
:mod:`bookings.services.lifecycle`; no other code writes ``status``,
``token_number`` or ``payment.status``.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models


WEEKDAYS = [
    ('monday', 'Monday'),
    ('tuesday', 'Tuesday'),
    ('wednesday', 'Wednesday'),
    ('thursday', 'Thursday'),
    ('friday', 'Friday'),
    ('saturday', 'Saturday'),
    ('sunday', 'Sunday'),
]


class Hospital(models.Model):
    """A hospital accepting outpatient bookings.

    Only hospitals that are ``approved`` and currently open accept new
    bookings.  Capacity comes from the weekday timings, the slot
    duration and ``patients_per_slot``; ``max_op_bookings_per_day`` is
    an additional ceiling independent of the slot arithmetic.  Fee
    settings are read by the fee strategy named in ``fee_strategy``.
    """
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    SLOT_DURATION_CHOICES = [(15, '15 min'), (30, '30 min'), (45, '45 min'), (60, '60 min')]

    FEE_FLAT_V1 = 'flat_v1'
    FEE_PERCENTAGE_V1 = 'percentage_v1'
    FEE_STRATEGY_CHOICES = [
        (FEE_FLAT_V1, 'Flat platform fee'),
        (FEE_PERCENTAGE_V1, 'Percentage of booking price'),
    ]

    name = models.CharField(max_length=255)
    registration_number = models.CharField(max_length=64, unique=True)
    contact_number = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    city = models.CharField(max_length=128, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    is_open = models.BooleanField(default=True, db_index=True)
    emergency_services = models.BooleanField(default=False)
    rejection_reason = models.CharField(max_length=255, blank=True)

    op_booking_price = models.PositiveIntegerField(default=0, help_text="Consultation price, paid at the hospital")
    max_op_bookings_per_day = models.PositiveIntegerField(default=50)
    patients_per_slot = models.PositiveIntegerField(default=1)
    slot_duration = models.PositiveSmallIntegerField(choices=SLOT_DURATION_CHOICES, default=30)

    fee_strategy = models.CharField(max_length=32, choices=FEE_STRATEGY_CHOICES, default=FEE_FLAT_V1)
    platform_fee = models.PositiveIntegerField(default=9, help_text="Smallest currency unit")
    platform_fee_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    emergency_fee = models.PositiveIntegerField(default=0, help_text="Smallest currency unit")
    tax_rate = models.DecimalField(max_digits=5, decimal_places=4, default='0.18')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['status', 'is_open'], name='bookings_ho_status_5b1c4e_idx')]

    def clean(self):
        if self.patients_per_slot < 1:
            raise ValidationError({'patients_per_slot': 'At least one patient per slot is required.'})
        if self.max_op_bookings_per_day < 1:
            raise ValidationError({'max_op_bookings_per_day': 'At least one booking per day is required.'})
        if self.pk:
            for timing in self.timings.all():
                timing.check_slot_alignment(self.slot_duration)

    def __str__(self) -> str:
        return f"{self.name} ({self.status})"


class HospitalTiming(models.Model):
    """Opening hours of a hospital for one weekday."""
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='timings')
    day = models.CharField(max_length=10, choices=WEEKDAYS)
    open_time = models.TimeField(null=True, blank=True)
    close_time = models.TimeField(null=True, blank=True)
    is_open = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['hospital', 'day'], name='uniq_hospital_timing_day'),
        ]

    def window_minutes(self) -> int:
        if not self.is_open or self.open_time is None or self.close_time is None:
            return 0
        start = self.open_time.hour * 60 + self.open_time.minute
        end = self.close_time.hour * 60 + self.close_time.minute
        return max(0, end - start)

    def check_slot_alignment(self, slot_duration: int) -> None:
        window = self.window_minutes()
        if window and window % slot_duration:
            raise ValidationError(
                f"{self.get_day_display()}: the {window}-minute window is not a multiple of "
                f"the {slot_duration}-minute slot duration."
            )

    def clean(self):
        if self.is_open:
            if self.open_time is None or self.close_time is None:
                raise ValidationError('Open days need both an opening and a closing time.')
            if self.close_time <= self.open_time:
                raise ValidationError('Closing time must be after opening time.')
            if self.hospital_id:
                self.check_slot_alignment(self.hospital.slot_duration)

    def __str__(self) -> str:
        if not self.is_open:
            return f"{self.hospital_id} {self.day}: closed"
        return f"{self.hospital_id} {self.day}: {self.open_time:%H:%M}-{self.close_time:%H:%M}"


class User(AbstractUser):
    """Custom user model with a role.

    ``patient`` users book appointments, ``hospital`` users operate the
    hospital they are bound to and ``admin`` users run the platform.
    """
    ROLE_PATIENT = 'patient'
    ROLE_HOSPITAL = 'hospital'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_HOSPITAL, 'Hospital operator'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT)
    phone = models.CharField(max_length=20, blank=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='operators'
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Booking(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_REJECTED = 'rejected'
    STATUS_CANCELLED = 'cancelled'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    NON_TERMINAL_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

    GENDER_CHOICES = [('male', 'Male'), ('female', 'Female'), ('other', 'Other')]

    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='bookings')
    hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='bookings')

    appointment_date = models.DateTimeField()
    # civil calendar day in the regional offset; tokens and capacity are per day
    appointment_day = models.DateField()
    slot_start = models.DateTimeField()
    time_slot = models.CharField(max_length=8)

    token_number = models.CharField(max_length=16, blank=True, default='')
    sequence = models.PositiveIntegerField(null=True, blank=True)
    is_emergency = models.BooleanField(default=False)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    patient_name = models.CharField(max_length=128)
    patient_age = models.PositiveIntegerField(null=True, blank=True)
    patient_gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    patient_mobile = models.CharField(max_length=20, blank=True)
    patient_address = models.CharField(max_length=255, blank=True)
    health_issue = models.TextField(blank=True)
    symptoms = models.TextField(blank=True)
    specialization = models.CharField(max_length=64, blank=True)
    doctor_name = models.CharField(max_length=128, blank=True)
    # hospital's own doctor identifier, set when an operator assigns the doctor
    doctor_ref = models.CharField(max_length=64, blank=True)
    doctor_assigned_at = models.DateTimeField(null=True, blank=True)

    rejection_reason = models.CharField(max_length=255, blank=True)
    completion_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    status_updated_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['hospital', 'appointment_day', 'status'], name='bookings_bo_hospita_2f6a1d_idx'),
            models.Index(fields=['hospital', 'slot_start', 'status'], name='bookings_bo_hospita_8c3e07_idx'),
            models.Index(fields=['user', 'status'], name='bookings_bo_user_id_4d9b2a_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['hospital', 'appointment_day', 'sequence'],
                name='uniq_booking_sequence_per_day',
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status not in self.NON_TERMINAL_STATUSES

    def __str__(self) -> str:
        return f"{self.token_number or self.pk} @ {self.hospital_id} ({self.status})"


class Payment(models.Model):
    """Payment sub-record of a booking, with the fee breakdown embedded."""
    METHOD_ONLINE = 'online'
    METHOD_COD = 'cod'
    METHOD_CHOICES = [(METHOD_ONLINE, 'Online'), (METHOD_COD, 'Pay at hospital')]

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_REFUNDED = 'refunded'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_REFUNDED, 'Refunded'),
    ]

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='payment')
    method = models.CharField(max_length=8, choices=METHOD_CHOICES)
    amount = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    order_id = models.CharField(max_length=64, blank=True)
    payment_id = models.CharField(max_length=64, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    remarks = models.CharField(max_length=255, blank=True)

    fee_strategy = models.CharField(max_length=32)
    platform_fee = models.PositiveIntegerField()
    emergency_fee = models.PositiveIntegerField(default=0)
    tax = models.PositiveIntegerField()
    total = models.PositiveIntegerField()

    refund_id = models.CharField(max_length=64, blank=True)
    refund_amount = models.PositiveIntegerField(null=True, blank=True)
    refund_status = models.CharField(max_length=32, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total=models.F('platform_fee') + models.F('emergency_fee') + models.F('tax')),
                name='payment_total_is_sum_of_parts',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.method}:{self.status} {self.amount} (booking {self.booking_id})"


class DailyTokenCounter(models.Model):
    """Last token sequence issued for a hospital on a civil day.

    The row is read with ``select_for_update`` by the orchestrator, which
    serializes token allocation and capacity admission per hospital and
    day.
    """
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='token_counters')
    day = models.DateField()
    last_sequence = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['hospital', 'day'], name='uniq_token_counter_day'),
        ]

    def __str__(self) -> str:
        return f"{self.hospital_id}@{self.day:%Y-%m-%d}: {self.last_sequence}"


class BookingTransition(models.Model):
    """Records a status transition for a booking."""
    booking = models.ForeignKey(Booking, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='booking_transitions')
    reason = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.from_status} → {self.to_status}"


class Notification(models.Model):
    TYPE_CHOICES = [(t, t) for t in (
        'BOOKING_CREATED',
        'BOOKING_CONFIRMED',
        'BOOKING_REJECTED',
        'BOOKING_CANCELLED',
        'BOOKING_COMPLETED',
        'PAYMENT_RECEIVED',
        'PAYMENT_FAILED',
        'PAYMENT_REFUNDED',
        'PAYMENT_REMINDER',
        'APPOINTMENT_REMINDER',
        'TOKEN_UPDATED',
        'DOCTOR_ASSIGNED',
    )]

    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='notifications')
    booking = models.ForeignKey(Booking, null=True, blank=True, on_delete=models.SET_NULL, related_name='notifications')
    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    title = models.CharField(max_length=128)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['recipient', 'is_read', 'created_at'], name='bookings_no_recipie_7e21c5_idx')]

    def __str__(self) -> str:
        return f"{self.type} -> {self.recipient_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='bookings_au_action_0c8f4e_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='bookings_au_object__9a2d61_idx'),
        ]
