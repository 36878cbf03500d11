from django.urls import path
from .views import (
    care_plan_list_create, care_plan_detail, care_plan_autosave, care_plan_completion,
    care_plan_change_status, care_plan_status_history, care_plan_submit, care_plan_approve,
    care_plan_reject, care_plan_client_approve, goal_list_create, goal_detail,
    activity_list_create, activity_detail, medication_list_create, medication_detail,
    medication_administer, mar_chart
)

urlpatterns = [
    path('care-plans/', care_plan_list_create, name='care-plan-list-create'),
    path('care-plans/<int:pk>/', care_plan_detail, name='care-plan-detail'),
    path('care-plans/<int:pk>/autosave/', care_plan_autosave, name='care-plan-autosave'),
    path('care-plans/<int:pk>/completion/', care_plan_completion, name='care-plan-completion'),
    path('care-plans/<int:pk>/status/', care_plan_change_status, name='care-plan-change-status'),
    path('care-plans/<int:pk>/history/', care_plan_status_history, name='care-plan-status-history'),
    path('care-plans/<int:pk>/submit/', care_plan_submit, name='care-plan-submit'),
    path('care-plans/<int:pk>/approve/', care_plan_approve, name='care-plan-approve'),
    path('care-plans/<int:pk>/reject/', care_plan_reject, name='care-plan-reject'),
    path('care-plans/<int:pk>/client-approve/', care_plan_client_approve, name='care-plan-client-approve'),
    path('care-plans/<int:pk>/goals/', goal_list_create, name='goal-list-create'),
    path('care-plans/<int:pk>/activities/', activity_list_create, name='activity-list-create'),
    path('care-plans/<int:pk>/medications/', medication_list_create, name='medication-list-create'),
    path('care-plans/<int:pk>/mar/', mar_chart, name='care-plan-mar-chart'),
    path('goals/<int:pk>/', goal_detail, name='goal-detail'),
    path('activities/<int:pk>/', activity_detail, name='activity-detail'),
    path('medications/<int:pk>/', medication_detail, name='medication-detail'),
    path('medications/<int:pk>/administrations/', medication_administer, name='medication-administer'),
]
