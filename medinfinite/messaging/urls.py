from django.urls import path
from .views import thread_list_create, thread_messages, thread_mark_read, thread_archive, unread_message_count

urlpatterns = [
    path('messages/threads/', thread_list_create, name='thread-list-create'),
    path('messages/unread-count/', unread_message_count, name='message-unread-count'),
    path('messages/threads/<int:pk>/', thread_messages, name='thread-messages'),
    path('messages/threads/<int:pk>/read/', thread_mark_read, name='thread-mark-read'),
    path('messages/threads/<int:pk>/archive/', thread_archive, name='thread-archive'),
]
