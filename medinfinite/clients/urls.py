from django.urls import path
from .views import (
    client_list_create, client_detail, client_status_options, client_note_list_create
)

urlpatterns = [
    path('clients/', client_list_create, name='client-list-create'),
    path('clients/statuses/', client_status_options, name='client-status-options'),
    path('clients/<int:pk>/', client_detail, name='client-detail'),
    path('clients/<int:pk>/notes/', client_note_list_create, name='client-note-list-create'),
]
