"""
Test suite for the billing module
Tests: Visit Pricing, Invoice Generation, Payments, Rate Schedules, Bank Holidays
"""
from datetime import datetime, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from medinfinite.billing.calculator import billing_minutes, covers_day, calculate_visit, calculate_visits
from medinfinite.billing.models import BankHoliday, Invoice
from medinfinite.bookings.models import Booking
from medinfinite.core.models import Setting, User
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.visits.models import VisitRecord


def at(day, hour, minute=0):
    return timezone.make_aware(datetime(2030, 1, day, hour, minute))


class CalculatorTests(TestCase):
    """Test visit pricing"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.client_obj = TestDataFactory.create_client(self.branch)
        self.rate = TestDataFactory.create_rate(self.branch, base_rate=Decimal('20.00'))

    def _booking(self, day=7, hour=9, minutes=60):
        return TestDataFactory.create_booking(self.client_obj, start=at(day, hour), minutes=minutes,
                                              status=Booking.STATUS_COMPLETED)

    def test_billing_minutes(self):
        self.assertEqual(billing_minutes(45), 45)
        self.assertEqual(billing_minutes(60), 60)
        self.assertEqual(billing_minutes(61), 120)
        self.assertEqual(billing_minutes(150), 180)

    def test_covers_short_and_full_day_names(self):
        monday = at(7, 9).date()
        self.rate.days_covered = ['mon']
        self.assertTrue(covers_day(self.rate, monday))
        self.rate.days_covered = ['Monday']
        self.assertTrue(covers_day(self.rate, monday))
        self.rate.days_covered = ['tuesday']
        self.assertFalse(covers_day(self.rate, monday))
        self.rate.days_covered = ['bank_holiday']
        self.assertTrue(covers_day(self.rate, monday, is_bank_holiday=True))

    def test_pro_rata_pricing(self):
        line = calculate_visit(self._booking(minutes=45), [self.rate])
        self.assertEqual(line['billing_minutes'], 45)
        self.assertEqual(line['line_total'], Decimal('15.00'))
        self.assertEqual(line['vat_amount'], Decimal('0.00'))
        self.assertFalse(line['applies_hourly_rounding'])

    def test_long_visit_rounds_up_to_hours(self):
        line = calculate_visit(self._booking(minutes=90), [self.rate])
        self.assertEqual(line['billing_minutes'], 120)
        self.assertEqual(line['line_total'], Decimal('40.00'))
        self.assertTrue(line['applies_hourly_rounding'])

    def test_flat_rate_band(self):
        self.rate.charge_type = 'flat_rate'
        self.rate.rate_30_minutes = Decimal('12.00')
        line = calculate_visit(self._booking(minutes=30), [self.rate])
        self.assertEqual(line['unit_price'], Decimal('12.00'))
        self.assertEqual(line['line_total'], Decimal('6.00'))

        line = calculate_visit(self._booking(day=8, minutes=60), [self.rate])
        self.assertEqual(line['unit_price'], Decimal('20.00'))

    def test_bank_holiday_multiplier(self):
        self.rate.bank_holiday_multiplier = Decimal('1.50')
        booking = self._booking()
        line = calculate_visit(booking, [self.rate], bank_holidays={booking.start_time.date()})
        self.assertTrue(line['is_bank_holiday'])
        self.assertEqual(line['line_total'], Decimal('30.00'))
        self.assertIn('Bank Holiday', line['description'])

    def test_vat(self):
        self.rate.is_vatable = True
        line = calculate_visit(self._booking(), [self.rate])
        self.assertEqual(line['vat_amount'], Decimal('4.00'))
        line = calculate_visit(self._booking(day=8), [self.rate], vat_rate=Decimal('0.05'))
        self.assertEqual(line['vat_amount'], Decimal('1.00'))

    def test_time_window_is_inclusive(self):
        self.rate.time_from = at(7, 9).time()
        self.rate.time_until = at(7, 10).time()
        self.assertIsNotNone(calculate_visit(self._booking(hour=9), [self.rate]))
        self.assertIsNotNone(calculate_visit(self._booking(day=8, hour=10), [self.rate]))
        self.assertIsNone(calculate_visit(self._booking(day=9, hour=11), [self.rate]))

    def test_inactive_and_expired_rates_skipped(self):
        self.rate.is_active = False
        self.assertIsNone(calculate_visit(self._booking(), [self.rate]))
        self.rate.is_active = True
        self.rate.end_date = at(1, 9).date()
        self.assertIsNone(calculate_visit(self._booking(day=8), [self.rate]))

    def test_first_matching_rate_wins(self):
        weekend = TestDataFactory.create_rate(self.branch, base_rate=Decimal('30.00'), days_covered=['saturday'])
        line = calculate_visit(self._booking(), [weekend, self.rate])
        self.assertEqual(line['rate'], self.rate)

    def test_actual_time(self):
        booking = self._booking(minutes=60)
        VisitRecord.objects.create(booking=booking, branch=self.branch, client=self.client_obj,
                                   visit_start_time=at(7, 9), visit_end_time=at(7, 9, 30),
                                   status=VisitRecord.STATUS_COMPLETED)
        booking = Booking.objects.select_related('visit_record').get(pk=booking.pk)
        planned = calculate_visit(booking, [self.rate])
        actual = calculate_visit(booking, [self.rate], use_actual_time=True)
        self.assertEqual(planned['billing_minutes'], 60)
        self.assertEqual(actual['billing_minutes'], 30)
        self.assertEqual(actual['line_total'], Decimal('10.00'))
        self.assertIn('actual', actual['description'])

    def test_summary(self):
        self.rate.days_covered = ['monday', 'tuesday']
        bookings = [self._booking(day=7), self._booking(day=8, minutes=90), self._booking(day=12)]
        summary = calculate_visits(bookings, [self.rate])
        self.assertEqual(len(summary['line_items']), 2)
        self.assertEqual(summary['skipped'], [bookings[2].pk])
        self.assertEqual(summary['net_amount'], Decimal('60.00'))
        self.assertEqual(summary['total_amount'], Decimal('60.00'))
        self.assertEqual(summary['total_billable_minutes'], 180)
        self.assertEqual(summary['total_billable_hours'], 3)


class InvoiceViewTests(TestCase):
    """Test invoice generation and payments"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch, finance=True)
        self.client_obj = TestDataFactory.create_client(self.branch)
        self.rate = TestDataFactory.create_rate(self.branch, base_rate=Decimal('20.00'))
        self.first = TestDataFactory.create_booking(self.client_obj, start=at(7, 9), status=Booking.STATUS_COMPLETED)
        self.second = TestDataFactory.create_booking(self.client_obj, start=at(8, 9), minutes=90,
                                                     status=Booking.STATUS_COMPLETED)
        TestDataFactory.create_booking(self.client_obj, start=at(9, 9), status=Booking.STATUS_CANCELLED)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _generate(self, **extra):
        payload = {'client': self.client_obj.id, 'period_start': '2030-01-01', 'period_end': '2030-01-31'}
        payload.update(extra)
        return self.client.post('/api/v1/billing/invoices/generate/', payload, format='json')

    def test_uninvoiced_preview(self):
        response = self.client.get(f'/api/v1/billing/clients/{self.client_obj.id}/uninvoiced/'
                                   '?period_start=2030-01-01&period_end=2030-01-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['bookings']), 2)
        self.assertEqual(response.data['total_amount'], Decimal('60.00'))
        self.assertEqual(response.data['total_billable_hours'], 3)

    def test_uninvoiced_requires_period(self):
        response = self.client.get(f'/api/v1/billing/clients/{self.client_obj.id}/uninvoiced/?period_start=2030-01-31'
                                   '&period_end=2030-01-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generate_invoice(self):
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['line_items']), 2)
        self.assertEqual(response.data['net_amount'], '60.00')
        self.assertEqual(response.data['total_amount'], '60.00')
        self.assertEqual(response.data['status'], 'draft')
        self.assertTrue(response.data['invoice_number'].startswith('INV-'))
        self.assertEqual(response.data['due_date'], str(timezone.localdate() + timedelta(days=30)))

    def test_invoiced_bookings_excluded(self):
        invoice_id = self._generate().data['id']
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.patch(f'/api/v1/billing/invoices/{invoice_id}/', {'status': 'void'}, format='json')
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['line_items']), 2)

    def test_vat_and_terms_settings(self):
        self.rate.is_vatable = True
        self.rate.save()
        Setting.objects.create(key='vat_rate', value='0.10')
        Setting.objects.create(key='invoice_payment_terms_days', value='14')
        response = self._generate()
        self.assertEqual(response.data['vat_amount'], '6.00')
        self.assertEqual(response.data['total_amount'], '66.00')
        self.assertEqual(response.data['due_date'], str(timezone.localdate() + timedelta(days=14)))

    def test_no_matching_rate(self):
        self.rate.days_covered = ['saturday']
        self.rate.save()
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(sorted(response.data['unpriced_bookings']), sorted([self.first.id, self.second.id]))
        self.assertFalse(Invoice.objects.exists())

    def test_partially_priced(self):
        self.rate.days_covered = ['monday']
        self.rate.save()
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['unpriced_bookings'], [self.second.id])
        self.assertEqual(response.data['total_amount'], '20.00')

    def test_client_specific_rate_preferred(self):
        TestDataFactory.create_rate(self.branch, base_rate=Decimal('30.00'), client=self.client_obj)
        response = self._generate()
        self.assertEqual(response.data['total_amount'], '90.00')

    def test_invalid_period(self):
        response = self._generate(period_start='2030-02-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_finance_permission_required(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.client.authenticate_user(admin)
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_payments(self):
        invoice_id = self._generate().data['id']
        url = f'/api/v1/billing/invoices/{invoice_id}/payments/'

        response = self.client.post(url, {'amount': '20.00', 'payment_method': 'card'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice']['status'], 'partial')
        self.assertEqual(response.data['invoice']['due_amount'], '40.00')

        response = self.client.post(url, {'amount': '50.00', 'payment_method': 'card'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'amount': '0', 'payment_method': 'card'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'amount': '40.00', 'payment_method': 'bank_transfer'}, format='json')
        self.assertEqual(response.data['invoice']['status'], 'paid')
        self.assertEqual(Invoice.objects.get(pk=invoice_id).paid_amount, Decimal('60.00'))

        response = self.client.delete(f'/api/v1/billing/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_void_invoice_rejects_payment(self):
        invoice_id = self._generate().data['id']
        self.client.patch(f'/api/v1/billing/invoices/{invoice_id}/', {'status': 'void'}, format='json')
        response = self.client.post(f'/api/v1/billing/invoices/{invoice_id}/payments/',
                                    {'amount': '10.00', 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_paid_status_not_set_directly(self):
        invoice_id = self._generate().data['id']
        response = self.client.patch(f'/api/v1/billing/invoices/{invoice_id}/', {'status': 'paid'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_client_and_period_fixed_after_generation(self):
        invoice_id = self._generate().data['id']
        foreign = TestDataFactory.create_client(TestDataFactory.create_branch())
        response = self.client.patch(f'/api/v1/billing/invoices/{invoice_id}/', {
            'client': foreign.id, 'period_start': '2030-02-01', 'period_end': '2030-02-28', 'notes': 'Checked',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice = Invoice.objects.get(pk=invoice_id)
        self.assertEqual(invoice.client_id, self.client_obj.id)
        self.assertEqual(str(invoice.period_start), '2030-01-01')
        self.assertEqual(str(invoice.period_end), '2030-01-31')
        self.assertEqual(invoice.notes, 'Checked')

    def test_delete_unpaid_invoice(self):
        invoice_id = self._generate().data['id']
        response = self.client.delete(f'/api/v1/billing/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Invoice.objects.exists())

    def test_invoice_pdf(self):
        invoice_id = self._generate().data['id']
        response = self.client.get(f'/api/v1/billing/invoices/{invoice_id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_invoice_visibility(self):
        self._generate()
        other_client = TestDataFactory.create_client(self.branch)
        TestDataFactory.create_booking(other_client, start=at(7, 11), status=Booking.STATUS_COMPLETED)
        self._generate(client=other_client.id)
        self.assertEqual(self.client.get('/api/v1/billing/invoices/').data['count'], 2)

        client_user = TestDataFactory.create_user(role=User.ROLE_CLIENT)
        self.client_obj.user = client_user
        self.client_obj.save()
        self.client.authenticate_user(client_user)
        response = self.client.get('/api/v1/billing/invoices/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['client'], self.client_obj.id)

        carer = TestDataFactory.create_staff(self.branch).user
        self.client.authenticate_user(carer)
        response = self.client.get('/api/v1/billing/invoices/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class RateAndHolidayViewTests(TestCase):
    """Test rate schedule and bank holiday management"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.super_admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def _rate_payload(self, **extra):
        payload = {
            'branch': self.branch.id,
            'title': 'Weekday daytime',
            'charge_type': 'hourly_rate',
            'base_rate': '22.50',
            'days_covered': ['Mon', 'tue', 'wednesday'],
            'time_from': '07:00',
            'time_until': '19:00',
            'start_date': '2030-01-01',
        }
        payload.update(extra)
        return payload

    def test_create_rate(self):
        response = self.client.post('/api/v1/billing/rates/', self._rate_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['days_covered'], ['mon', 'tue', 'wednesday'])

    def test_rate_validation(self):
        response = self.client.post('/api/v1/billing/rates/', self._rate_payload(days_covered=['someday']), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/billing/rates/', self._rate_payload(time_until='06:00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/billing/rates/', self._rate_payload(end_date='2029-12-31'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        foreign = TestDataFactory.create_client(TestDataFactory.create_branch())
        response = self.client.post('/api/v1/billing/rates/', self._rate_payload(client=foreign.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rate_requires_finance(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/billing/rates/', self._rate_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        rate = TestDataFactory.create_rate(self.branch)
        response = self.client.get(f'/api/v1/billing/rates/{rate.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/billing/rates/{rate.id}/', {'base_rate': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_rate_list_scoped(self):
        TestDataFactory.create_rate(self.branch)
        TestDataFactory.create_rate(TestDataFactory.create_branch())
        admin = TestDataFactory.create_branch_admin(self.branch, finance=True)
        self.client.authenticate_user(admin)
        response = self.client.get('/api/v1/billing/rates/')
        self.assertEqual(len(response.data), 1)

    def test_bank_holidays(self):
        response = self.client.post('/api/v1/billing/bank-holidays/', {'date': '2030-12-25', 'name': 'Christmas Day'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post('/api/v1/billing/bank-holidays/', {'date': '2030-12-25', 'name': 'Duplicate'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        BankHoliday.objects.create(date='2031-01-01', name="New Year's Day")
        response = self.client.get('/api/v1/billing/bank-holidays/?year=2030')
        self.assertEqual(len(response.data), 1)

        admin = TestDataFactory.create_branch_admin(self.branch, finance=True)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/billing/bank-holidays/', {'date': '2030-05-06', 'name': 'May Day'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
