"""
Django admin registrations for the booking models.

Status, token and payment fields are read-only here: those changes must
go through the lifecycle service or the token correction endpoint so
that transitions and audit events are recorded.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    AuditEvent,
    Booking,
    BookingTransition,
    DailyTokenCounter,
    Hospital,
    HospitalTiming,
    Notification,
    Payment,
    User,
)


class HospitalTimingInline(admin.TabularInline):
    model = HospitalTiming
    extra = 0


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'city', 'status', 'is_open', 'emergency_services', 'slot_duration',
                    'patients_per_slot', 'max_op_bookings_per_day', 'fee_strategy')
    list_filter = ('status', 'is_open', 'emergency_services', 'fee_strategy')
    search_fields = ('name', 'registration_number', 'city')
    inlines = [HospitalTimingInline]


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'role', 'hospital', 'is_staff', 'is_superuser')
    list_filter = ('role', 'hospital')
    fieldsets = BaseUserAdmin.fieldsets + (('Booking', {'fields': ('role', 'phone', 'hospital')}),)


class PaymentInline(admin.StackedInline):
    model = Payment
    extra = 0
    can_delete = False
    readonly_fields = ('method', 'amount', 'status', 'order_id', 'payment_id', 'paid_at', 'fee_strategy',
                       'platform_fee', 'emergency_fee', 'tax', 'total', 'refund_id', 'refund_amount',
                       'refund_status', 'refunded_at')


class BookingTransitionInline(admin.TabularInline):
    model = BookingTransition
    extra = 0
    can_delete = False
    readonly_fields = ('from_status', 'to_status', 'operator', 'reason', 'timestamp')


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('id', 'token_number', 'hospital', 'appointment_day', 'time_slot', 'status', 'is_emergency', 'created_at')
    list_filter = ('status', 'is_emergency', 'hospital')
    search_fields = ('token_number', 'patient_name', 'patient_mobile', 'user__username')
    date_hierarchy = 'appointment_day'
    readonly_fields = ('status', 'token_number', 'sequence', 'slot_start', 'status_updated_at', 'cancelled_at', 'completed_at')
    inlines = [PaymentInline, BookingTransitionInline]


@admin.register(DailyTokenCounter)
class DailyTokenCounterAdmin(admin.ModelAdmin):
    list_display = ('hospital', 'day', 'last_sequence')
    list_filter = ('hospital',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'type', 'title', 'is_read', 'created_at')
    list_filter = ('type', 'is_read')
    search_fields = ('recipient__username', 'title')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
