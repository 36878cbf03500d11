from django.urls import path
from .views import (
    notification_list, notification_detail, notification_mark_read,
    notification_mark_all_read, notification_unread_count, send_notification
)

urlpatterns = [
    path('notifications/', notification_list, name='notification-list'),
    path('notifications/unread-count/', notification_unread_count, name='notification-unread-count'),
    path('notifications/mark-all-read/', notification_mark_all_read, name='notification-mark-all-read'),
    path('notifications/send/', send_notification, name='notification-send'),
    path('notifications/<int:pk>/', notification_detail, name='notification-detail'),
    path('notifications/<int:pk>/read/', notification_mark_read, name='notification-mark-read'),
]
