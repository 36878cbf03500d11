from django.urls import path
from .views import dashboard_kpis, bookings_report, training_report, care_plan_report, news2_report

urlpatterns = [
    path('reports/dashboard-kpis/', dashboard_kpis, name='dashboard-kpis'),
    path('reports/bookings/', bookings_report, name='bookings-report'),
    path('reports/training/', training_report, name='training-report'),
    path('reports/care-plans/', care_plan_report, name='care-plan-report'),
    path('reports/news2/', news2_report, name='news2-report'),
]
