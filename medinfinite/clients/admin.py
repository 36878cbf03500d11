from django.contrib import admin
from .models import Client, ClientNote


class ClientNoteInline(admin.StackedInline):
    model = ClientNote
    extra = 0
    readonly_fields = ['author', 'created_at']


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'branch', 'status', 'registered_on', 'is_child']
    list_filter = ['status', 'branch', 'is_child']
    search_fields = ['first_name', 'last_name', 'email', 'phone', 'postcode']
    ordering = ['last_name', 'first_name']
    inlines = [ClientNoteInline]
