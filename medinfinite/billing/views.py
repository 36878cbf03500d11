import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction, IntegrityError
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from medinfinite.bookings.models import Booking
from medinfinite.branches.access import scope_queryset, can_access_branch, can_manage_branch
from medinfinite.clients.models import Client
from medinfinite.core.utils import paginate, create_audit_log, get_decimal_setting, get_int_setting
from .calculator import calculate_visits
from .models import RateSchedule, BankHoliday, Invoice, InvoiceLineItem
from .pdf import render_invoice_pdf
from .serializers import (
    RateScheduleSerializer, BankHolidaySerializer, InvoiceSerializer, InvoiceListSerializer,
    PaymentSerializer, GenerateInvoiceSerializer
)

logger = logging.getLogger('medinfinite.billing')


def _forbidden(message='Only finance administrators of this branch can manage billing'):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


def uninvoiced_bookings(client, period_start, period_end):
    """Completed bookings in the period that are not on a live invoice"""
    invoiced = InvoiceLineItem.objects.filter(booking__isnull=False).exclude(invoice__status='void').values('booking_id')
    return (
        Booking.objects.filter(client=client, status=Booking.STATUS_COMPLETED,
                               start_time__date__gte=period_start, start_time__date__lte=period_end)
        .exclude(pk__in=invoiced)
        .select_related('visit_record', 'service')
        .order_by('start_time')
    )


def client_rates(client):
    """Client-specific rates first, then the branch-wide ones"""
    rates = RateSchedule.objects.filter(branch_id=client.branch_id, is_active=True).filter(
        Q(client=client) | Q(client__isnull=True)
    ).order_by('start_date', 'time_from', 'id')
    return sorted(rates, key=lambda rate: rate.client_id is None)


# Rate schedule views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def rate_list_create(request):
    if request.method == 'GET':
        rates = scope_queryset(RateSchedule.objects.select_related('client', 'service'), request.user)
        if request.query_params.get('client'):
            rates = rates.filter(Q(client_id=request.query_params['client']) | Q(client__isnull=True))
        if request.query_params.get('branch'):
            rates = rates.filter(branch_id=request.query_params['branch'])
        return Response(RateScheduleSerializer(rates, many=True).data)

    serializer = RateScheduleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if not can_manage_branch(request.user, serializer.validated_data['branch'].id, 'finance'):
        return _forbidden()
    rate = serializer.save()
    create_audit_log(request, 'create', 'RateSchedule', rate.id, object_name=rate.title)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def rate_detail(request, pk):
    rate = get_object_or_404(RateSchedule, pk=pk)
    if not can_access_branch(request.user, rate.branch_id):
        return Response({'error': 'You do not have access to this rate'}, status=status.HTTP_403_FORBIDDEN)
    if request.method == 'GET':
        return Response(RateScheduleSerializer(rate).data)
    if not can_manage_branch(request.user, rate.branch_id, 'finance'):
        return _forbidden()

    if request.method == 'DELETE':
        create_audit_log(request, 'delete', 'RateSchedule', rate.id, object_name=rate.title)
        rate.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = RateScheduleSerializer(rate, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(request, 'update', 'RateSchedule', rate.id, dict(request.data), object_name=rate.title)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Bank holiday views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bank_holiday_list_create(request):
    if request.method == 'GET':
        holidays = BankHoliday.objects.all()
        if request.query_params.get('year'):
            holidays = holidays.filter(date__year=request.query_params['year'])
        return Response(BankHolidaySerializer(holidays, many=True).data)

    if not request.user.is_super_admin:
        return _forbidden('Only super admins can manage bank holidays')
    serializer = BankHolidaySerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def bank_holiday_detail(request, pk):
    holiday = get_object_or_404(BankHoliday, pk=pk)
    if not request.user.is_super_admin:
        return _forbidden('Only super admins can manage bank holidays')
    if request.method == 'DELETE':
        holiday.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
    serializer = BankHolidaySerializer(holiday, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Invoice views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def uninvoiced_bookings_view(request, client_id):
    """Preview what an invoice for the period would contain"""
    client = get_object_or_404(Client, pk=client_id)
    if not can_manage_branch(request.user, client.branch_id, 'finance'):
        return _forbidden()
    start = parse_date(request.query_params.get('period_start', '') or '')
    end = parse_date(request.query_params.get('period_end', '') or '')
    if start is None or end is None or end < start:
        return Response({'error': 'A valid period_start and period_end are required'}, status=status.HTTP_400_BAD_REQUEST)

    bookings = list(uninvoiced_bookings(client, start, end))
    holidays = set(BankHoliday.objects.filter(date__range=(start, end)).values_list('date', flat=True))
    summary = calculate_visits(bookings, client_rates(client), holidays,
                               use_actual_time=request.query_params.get('use_actual_time') in ('1', 'true'),
                               vat_rate=get_decimal_setting('vat_rate', '0.20'))
    return Response({
        'bookings': [
            {
                'booking': line['booking'].id,
                'visit_date': line['visit_date'],
                'description': line['description'],
                'billing_minutes': line['billing_minutes'],
                'unit_price': line['unit_price'],
                'line_total': line['line_total'],
                'vat_amount': line['vat_amount'],
                'is_bank_holiday': line['is_bank_holiday'],
            }
            for line in summary['line_items']
        ],
        'unpriced_bookings': summary['skipped'],
        'net_amount': summary['net_amount'],
        'vat_amount': summary['vat_amount'],
        'total_amount': summary['total_amount'],
        'total_billable_minutes': summary['total_billable_minutes'],
        'total_billable_hours': summary['total_billable_hours'],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_list(request):
    if request.user.role == request.user.ROLE_CARER:
        return _forbidden('Carers cannot view invoices')
    invoices = scope_queryset(Invoice.objects.select_related('client'), request.user)
    if request.user.role == request.user.ROLE_CLIENT:
        invoices = invoices.filter(client__user=request.user)
    params = request.query_params
    if params.get('client'):
        invoices = invoices.filter(client_id=params['client'])
    if params.get('status'):
        invoices = invoices.filter(status=params['status'])
    if params.get('date_from'):
        invoices = invoices.filter(invoice_date__gte=params['date_from'])
    if params.get('date_to'):
        invoices = invoices.filter(invoice_date__lte=params['date_to'])
    if params.get('search'):
        invoices = invoices.filter(invoice_number__icontains=params['search'])
    return Response(paginate(invoices, request, InvoiceListSerializer))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_generate(request):
    """
    Generate an invoice from a client's completed bookings in a period.

    Bookings already on a live invoice are left out and bookings with no
    matching rate are reported back; the invoice and its lines are written
    in one transaction.
    """
    try:
        serializer = GenerateInvoiceSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        client = get_object_or_404(Client.objects.select_related('branch'), pk=data['client'])
        if not can_manage_branch(request.user, client.branch_id, 'finance'):
            return _forbidden()

        holidays = set(BankHoliday.objects.filter(date__range=(data['period_start'], data['period_end']))
                       .values_list('date', flat=True))
        with transaction.atomic():
            bookings = list(uninvoiced_bookings(client, data['period_start'], data['period_end']).select_for_update(of=('self',)))
            if not bookings:
                return Response({'error': 'No uninvoiced completed bookings in this period'}, status=status.HTTP_400_BAD_REQUEST)

            summary = calculate_visits(bookings, client_rates(client), holidays, data['use_actual_time'],
                                       vat_rate=get_decimal_setting('vat_rate', '0.20'))
            if not summary['line_items']:
                return Response({'error': 'No rate schedule matches the bookings in this period',
                                 'unpriced_bookings': summary['skipped']}, status=status.HTTP_400_BAD_REQUEST)

            invoice = Invoice.objects.create(
                client=client,
                branch=client.branch,
                due_date=data.get('due_date') or timezone.localdate() + timedelta(days=get_int_setting('invoice_payment_terms_days', 30)),
                period_start=data['period_start'],
                period_end=data['period_end'],
                notes=data['notes'],
                created_by=request.user,
            )
            InvoiceLineItem.objects.bulk_create([
                InvoiceLineItem(
                    invoice=invoice,
                    booking=line['booking'],
                    description=line['description'],
                    visit_date=line['visit_date'],
                    billing_minutes=line['billing_minutes'],
                    unit_price=line['unit_price'],
                    line_total=line['line_total'],
                    vat_amount=line['vat_amount'],
                )
                for line in summary['line_items']
            ])
            invoice.update_totals()
    except IntegrityError as e:
        logger.error(f"IntegrityError generating invoice: {str(e)}", exc_info=True)
        return Response({'error': 'Invoice could not be saved'}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in invoice_generate: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request, 'invoice_create', 'Invoice', invoice.id, {
        'invoice_number': invoice.invoice_number,
        'total': str(invoice.total_amount),
        'lines': len(summary['line_items']),
    }, object_name=f"Invoice {invoice.invoice_number}")
    logger.info(f"Invoice {invoice.invoice_number} generated for client {client.pk} by {request.user.username}")
    response = InvoiceSerializer(invoice).data
    response['unpriced_bookings'] = summary['skipped']
    return Response(response, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related('client', 'branch'), pk=pk)
    if not can_access_branch(request.user, invoice.branch_id):
        return Response({'error': 'You do not have access to this invoice'}, status=status.HTTP_403_FORBIDDEN)
    if request.user.role == request.user.ROLE_CLIENT and invoice.client.user_id != request.user.id:
        return Response({'error': 'You do not have access to this invoice'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(InvoiceSerializer(invoice).data)
    if not can_manage_branch(request.user, invoice.branch_id, 'finance'):
        return _forbidden()

    if request.method == 'DELETE':
        if invoice.payments.exists():
            return Response({'error': 'Invoices with payments cannot be deleted; void them instead'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'delete', 'Invoice', invoice.id, object_name=f"Invoice {invoice.invoice_number}")
        invoice.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = InvoiceSerializer(invoice, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_audit_log(request, 'update', 'Invoice', invoice.id, dict(request.data),
                         object_name=f"Invoice {invoice.invoice_number}")
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_payments(request, pk):
    """Record a payment; the invoice becomes paid once nothing is due"""
    invoice = get_object_or_404(Invoice, pk=pk)
    if not can_manage_branch(request.user, invoice.branch_id, 'finance'):
        return _forbidden()

    serializer = PaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if invoice.status == 'void':
            return Response({'error': 'Payments cannot be recorded against a void invoice'}, status=status.HTTP_400_BAD_REQUEST)
        amount = serializer.validated_data['amount']
        if amount > invoice.due_amount:
            return Response({'error': f'Payment exceeds the amount due ({invoice.due_amount})'},
                            status=status.HTTP_400_BAD_REQUEST)

        payment = serializer.save(invoice=invoice, created_by=request.user)
        old_status = invoice.status
        invoice.paid_amount += amount
        invoice.status = Invoice.STATUS_PAID if invoice.due_amount <= Decimal('0.00') else Invoice.STATUS_PARTIAL
        invoice.save(update_fields=['paid_amount', 'status', 'updated_at'])

    create_audit_log(request, 'payment_add', 'Payment', payment.id, {
        'invoice_number': invoice.invoice_number,
        'amount': str(amount),
        'payment_method': payment.payment_method,
        'invoice_status': {'old': old_status, 'new': invoice.status},
        'due_amount': str(invoice.due_amount),
    }, object_name=f"Payment for Invoice {invoice.invoice_number}")
    logger.info(f"Payment of {amount} recorded on invoice {invoice.invoice_number} by {request.user.username}")
    return Response({'payment': PaymentSerializer(payment).data, 'invoice': InvoiceSerializer(invoice).data},
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_pdf(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related('client', 'branch', 'branch__organization'), pk=pk)
    if not can_access_branch(request.user, invoice.branch_id):
        return Response({'error': 'You do not have access to this invoice'}, status=status.HTTP_403_FORBIDDEN)
    if request.user.role == request.user.ROLE_CLIENT and invoice.client.user_id != request.user.id:
        return Response({'error': 'You do not have access to this invoice'}, status=status.HTTP_403_FORBIDDEN)

    try:
        pdf = render_invoice_pdf(invoice)
    except Exception as e:
        logger.error(f"Failed to render invoice {invoice.invoice_number}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to generate invoice PDF'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{invoice.invoice_number}.pdf"'
    return response
