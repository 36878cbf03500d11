from django.urls import path
from .views import (
    visit_list, visit_start, visit_detail, visit_complete, news2_create, client_news2_history,
    news2_recommendations, event_list_create, event_detail, event_export
)

urlpatterns = [
    path('visits/', visit_list, name='visit-list'),
    path('visits/start/<int:booking_id>/', visit_start, name='visit-start'),
    path('visits/<int:pk>/', visit_detail, name='visit-detail'),
    path('visits/<int:pk>/complete/', visit_complete, name='visit-complete'),
    path('news2/', news2_create, name='news2-create'),
    path('news2/client/<int:client_id>/', client_news2_history, name='news2-client-history'),
    path('news2/<int:pk>/recommendations/', news2_recommendations, name='news2-recommendations'),
    path('events/', event_list_create, name='event-list-create'),
    path('events/export/', event_export, name='event-export'),
    path('events/<int:pk>/', event_detail, name='event-detail'),
]
