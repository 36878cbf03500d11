from django.urls import path
from .views import (
    organization_list_create, organization_detail,
    branch_list_create, branch_detail, branch_admin_list,
    create_branch_admin, update_organization_member
)

urlpatterns = [
    path('organizations/', organization_list_create, name='organization-list-create'),
    path('organizations/<int:pk>/', organization_detail, name='organization-detail'),
    path('branches/', branch_list_create, name='branch-list-create'),
    path('branches/<int:pk>/', branch_detail, name='branch-detail'),
    path('branches/<int:pk>/admins/', branch_admin_list, name='branch-admin-list'),

    # Privileged user administration
    path('admin-ops/branch-admins/', create_branch_admin, name='create-branch-admin'),
    path('admin-ops/members/<int:user_id>/', update_organization_member, name='update-organization-member'),
]
