from django.contrib import admin
from .models import Organization, Branch, AdminBranch


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_email', 'contact_phone', 'created_at']
    search_fields = ['name', 'contact_email']
    ordering = ['name']


class AdminBranchInline(admin.TabularInline):
    model = AdminBranch
    extra = 0
    autocomplete_fields = ['admin']


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'branch_type', 'country', 'status', 'created_at']
    list_filter = ['status', 'branch_type', 'country']
    search_fields = ['name', 'email', 'phone']
    ordering = ['name']
    inlines = [AdminBranchInline]


@admin.register(AdminBranch)
class AdminBranchAdmin(admin.ModelAdmin):
    list_display = ['admin', 'branch', 'created_at']
    list_filter = ['branch']
    search_fields = ['admin__username', 'admin__email', 'branch__name']
