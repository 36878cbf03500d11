from django.urls import path
from .views import (
    rate_list_create, rate_detail, bank_holiday_list_create, bank_holiday_detail, uninvoiced_bookings_view,
    invoice_list, invoice_generate, invoice_detail, invoice_payments, invoice_pdf
)

urlpatterns = [
    path('billing/rates/', rate_list_create, name='rate-list-create'),
    path('billing/rates/<int:pk>/', rate_detail, name='rate-detail'),
    path('billing/bank-holidays/', bank_holiday_list_create, name='bank-holiday-list-create'),
    path('billing/bank-holidays/<int:pk>/', bank_holiday_detail, name='bank-holiday-detail'),
    path('billing/clients/<int:client_id>/uninvoiced/', uninvoiced_bookings_view, name='uninvoiced-bookings'),
    path('billing/invoices/', invoice_list, name='invoice-list'),
    path('billing/invoices/generate/', invoice_generate, name='invoice-generate'),
    path('billing/invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('billing/invoices/<int:pk>/payments/', invoice_payments, name='invoice-payments'),
    path('billing/invoices/<int:pk>/pdf/', invoice_pdf, name='invoice-pdf'),
]
