"""
URL mappings for the booking API.

Trailing slashes are omitted, as in the client's endpoint table.
"""
from django.urls import path, include

from .views import health
from .views.bookings import (
    booking_cancel,
    booking_create,
    booking_detail,
    booking_verify_payment,
    my_bookings,
)
from .views.hospital_bookings import (
    admin_correct_token,
    admin_pending_payments,
    hospital_assign_doctor,
    hospital_bookings,
    hospital_cod_payment,
    hospital_update_status,
)
from .views.hospitals import hospital_detail, hospital_list
from .views.notifications import notification_list, notification_mark_read


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Hospitals
    path('api/hospitals', hospital_list),
    path('api/hospitals/detail', hospital_detail),
    # Patient bookings
    path('api/bookings/create', booking_create, name='booking_create'),
    path('api/bookings/verify-payment', booking_verify_payment, name='booking_verify_payment'),
    path('api/bookings/cancel', booking_cancel, name='booking_cancel'),
    path('api/bookings/my', my_bookings, name='my_bookings'),
    path('api/bookings/detail', booking_detail, name='booking_detail'),
    # Hospital operators
    path('api/hospital/bookings', hospital_bookings, name='hospital_bookings'),
    path('api/hospital/bookings/update-status', hospital_update_status, name='hospital_update_status'),
    path('api/hospital/bookings/cod-payment', hospital_cod_payment, name='hospital_cod_payment'),
    path('api/hospital/bookings/assign-doctor', hospital_assign_doctor, name='hospital_assign_doctor'),
    # Administrators
    path('api/admin/bookings/token', admin_correct_token, name='admin_correct_token'),
    path('api/admin/bookings/pending-payments', admin_pending_payments, name='admin_pending_payments'),
    # Notifications
    path('api/notifications', notification_list, name='notification_list'),
    path('api/notifications/read', notification_mark_read, name='notification_mark_read'),
]
