import bleach
from rest_framework import serializers

from bookings.models import Booking


class PatientDetailsSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=128)
    age = serializers.IntegerField(min_value=0, max_value=150, required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=['male', 'female', 'other'], required=False, allow_blank=True)
    mobile = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    healthIssue = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    symptoms = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Patient name is required')
        return v


class BookingCreateSerializer(serializers.Serializer):
    # date and time stay strings; their format is checked by the booking validator
    hospitalId = serializers.IntegerField(min_value=1)
    appointmentDate = serializers.CharField(max_length=10)
    timeSlot = serializers.CharField(max_length=8)
    paymentMethod = serializers.CharField(max_length=8)
    isEmergency = serializers.BooleanField(required=False, default=False)
    specialization = serializers.CharField(max_length=64, required=False, allow_blank=True)
    doctorName = serializers.CharField(max_length=128, required=False, allow_blank=True)
    patientDetails = PatientDetailsSerializer()


class VerifyPaymentSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    orderId = serializers.CharField(max_length=64)
    paymentId = serializers.CharField(max_length=64)
    signature = serializers.CharField(max_length=256)


class CancelBookingSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class BookingListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Booking.STATUS_CHOICES], required=False)
    date = serializers.RegexField(r'^\d{2}-\d{2}-\d{4}$', required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)


class UpdateStatusSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(choices=[Booking.STATUS_CONFIRMED, Booking.STATUS_REJECTED, Booking.STATUS_COMPLETED])
    rejectionReason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class CodPaymentSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    paymentStatus = serializers.CharField(max_length=16)
    remarks = serializers.CharField(max_length=255, required=False, allow_blank=True)


class AssignDoctorSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    doctorName = serializers.CharField(max_length=128)
    doctorId = serializers.CharField(max_length=64, required=False, allow_blank=True)


class TokenCorrectionSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
    tokenNumber = serializers.CharField(max_length=16)


class NotificationReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
    all = serializers.BooleanField(required=False, default=False)
