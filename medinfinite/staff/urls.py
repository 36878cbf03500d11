from django.urls import path
from .views import (
    staff_list_create, staff_detail, staff_compliance_view,
    staff_document_list_create, staff_document_detail,
    training_course_list_create, training_course_detail,
    training_record_list_create, training_record_detail,
    training_metrics, send_training_metrics_email
)

urlpatterns = [
    path('staff/', staff_list_create, name='staff-list-create'),
    path('staff/<int:pk>/', staff_detail, name='staff-detail'),
    path('staff/<int:pk>/compliance/', staff_compliance_view, name='staff-compliance'),
    path('staff/<int:pk>/documents/', staff_document_list_create, name='staff-document-list-create'),
    path('staff-documents/<int:pk>/', staff_document_detail, name='staff-document-detail'),

    path('training/courses/', training_course_list_create, name='training-course-list-create'),
    path('training/courses/<int:pk>/', training_course_detail, name='training-course-detail'),
    path('training/records/', training_record_list_create, name='training-record-list-create'),
    path('training/records/<int:pk>/', training_record_detail, name='training-record-detail'),
    path('training/metrics/', training_metrics, name='training-metrics'),
    path('training/metrics/email/', send_training_metrics_email, name='training-metrics-email'),
]
