from django.urls import path
from .views import (
    service_list_create, service_detail, booking_list_create, booking_detail, booking_recurring,
    booking_bulk_create, booking_assign_carer, booking_cancel, booking_availability,
    alert_settings_detail, process_late_bookings_view, send_carer_schedule
)

urlpatterns = [
    path('services/', service_list_create, name='service-list-create'),
    path('services/<int:pk>/', service_detail, name='service-detail'),
    path('bookings/', booking_list_create, name='booking-list-create'),
    path('bookings/recurring/', booking_recurring, name='booking-recurring'),
    path('bookings/bulk/', booking_bulk_create, name='booking-bulk-create'),
    path('bookings/availability/', booking_availability, name='booking-availability'),
    path('bookings/process-late/', process_late_bookings_view, name='booking-process-late'),
    path('bookings/send-schedule/', send_carer_schedule, name='booking-send-schedule'),
    path('bookings/alert-settings/<int:branch_id>/', alert_settings_detail, name='booking-alert-settings'),
    path('bookings/<int:pk>/', booking_detail, name='booking-detail'),
    path('bookings/<int:pk>/assign/', booking_assign_carer, name='booking-assign-carer'),
    path('bookings/<int:pk>/cancel/', booking_cancel, name='booking-cancel'),
]
