"""
URL configuration for the medinfinite project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Med-Infinite Administration"
admin.site.site_title = "Med-Infinite Admin Portal"
admin.site.index_title = "Welcome to the Med-Infinite Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('medinfinite.core.urls')),
    path('api/v1/', include('medinfinite.branches.urls')),
    path('api/v1/', include('medinfinite.staff.urls')),
    path('api/v1/', include('medinfinite.clients.urls')),
    path('api/v1/', include('medinfinite.careplans.urls')),
    path('api/v1/', include('medinfinite.bookings.urls')),
    path('api/v1/', include('medinfinite.visits.urls')),
    path('api/v1/', include('medinfinite.messaging.urls')),
    path('api/v1/', include('medinfinite.billing.urls')),
    path('api/v1/', include('medinfinite.notifications.urls')),
    path('api/v1/', include('medinfinite.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
