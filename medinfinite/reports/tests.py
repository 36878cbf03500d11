"""
Test suite for the reports module
Tests: Report Generator, Dashboard KPIs, Bookings, Training, Care Plan and NEWS2 Reports
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from medinfinite.billing.models import Invoice
from medinfinite.bookings.models import Booking
from medinfinite.careplans.models import CarePlan
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.reports.generator import summarize, format_value, to_csv, to_pdf
from medinfinite.staff.models import TrainingRecord
from medinfinite.visits.models import News2Observation


def at(day, hour):
    return timezone.make_aware(datetime(2030, 1, day, hour))


class GeneratorTests(TestCase):
    """Test summarising and rendering rows"""

    def test_summarize(self):
        rows = [
            {'value': 1, 'group': 'a'},
            {'value': '2.5', 'group': 'b'},
            {'value': None, 'group': 'a'},
            {'value': True, 'group': ''},
        ]
        summary = summarize(rows, value_key='value', group_key='group')
        self.assertEqual(summary['count'], 4)
        self.assertEqual(summary['total'], Decimal('3.5'))
        self.assertEqual(summary['average'], Decimal('1.75'))
        self.assertEqual(summary['min'], Decimal('1'))
        self.assertEqual(summary['max'], Decimal('2.5'))
        self.assertEqual(list(summary['groups'].items()), [('a', 2), ('Unspecified', 1), ('b', 1)])

    def test_summarize_empty(self):
        summary = summarize([], value_key='value', group_key='group')
        self.assertEqual(summary['count'], 0)
        self.assertEqual(summary['average'], Decimal('0'))
        self.assertIsNone(summary['min'])
        self.assertEqual(summary['groups'], {})

    def test_summarize_accepts_generators(self):
        summary = summarize(({'n': n} for n in range(1, 5)), value_key='n')
        self.assertEqual(summary['total'], Decimal('10'))
        self.assertEqual(summary['average'], Decimal('2.50'))

    def test_format_value(self):
        self.assertEqual(format_value(None), '')
        self.assertEqual(format_value(True), 'Yes')
        self.assertEqual(format_value(False), 'No')
        self.assertEqual(format_value(date(2030, 1, 7)), '07/01/2030')
        self.assertEqual(format_value(timezone.make_aware(datetime(2030, 1, 7, 9, 30))), '07/01/2030 09:30')
        self.assertEqual(format_value(['a', 1]), 'a, 1')
        self.assertEqual(format_value(Decimal('1.50')), '1.50')

    def test_to_csv(self):
        text = to_csv([{'name': 'Jo, Smith', 'due': date(2030, 1, 7), 'extra': 'ignored'}, {'name': 'Al'}],
                      [('name', 'Name'), ('due', 'Due')])
        lines = text.splitlines()
        self.assertEqual(lines[0], 'Name,Due')
        self.assertEqual(lines[1], '"Jo, Smith",07/01/2030')
        self.assertEqual(lines[2], 'Al,')

    def test_to_pdf(self):
        columns = [('name', 'Name'), ('score', 'Score')]
        short = to_pdf('Scores', columns, [{'name': 'Jo', 'score': 3}], {'count': 1, 'groups': {'low': 1}}, 'Acme Care')
        long = to_pdf('Scores', columns, [{'name': f'Client {n}', 'score': n} for n in range(200)])
        empty = to_pdf('Scores', columns, [])
        for pdf in (short, long, empty):
            self.assertTrue(pdf.startswith(b'%PDF'))
        self.assertGreater(len(long), len(short))


class ReportTestBase(TestCase):

    def setUp(self):
        cache.clear()
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch, first_name='Ann', last_name='Carer')
        self.client_obj = TestDataFactory.create_client(self.branch, first_name='Bea', last_name='Client')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)


class ReportAccessTests(ReportTestBase):
    """Test who may see reports"""

    def test_carer_forbidden(self):
        self.client.authenticate_user(self.staff.user)
        response = self.client.get('/api/v1/reports/bookings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reports_permission_required(self):
        admin = TestDataFactory.create_branch_admin(self.branch, reports=False)
        self.client.authenticate_user(admin)
        response = self.client.get(f'/api/v1/reports/training/?branch={self.branch.id}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/reports/training/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['count'], 0)

    def test_foreign_branch(self):
        foreign = TestDataFactory.create_branch()
        response = self.client.get(f'/api/v1/reports/care-plans/?branch={foreign.id}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/reports/care-plans/?branch=abc')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_super_admin_sees_all_branches(self):
        TestDataFactory.create_care_plan(self.client_obj)
        TestDataFactory.create_care_plan(TestDataFactory.create_client(TestDataFactory.create_branch()))
        self.client.authenticate_user(TestDataFactory.create_super_admin())
        response = self.client.get('/api/v1/reports/care-plans/')
        self.assertEqual(response.data['summary']['count'], 2)


class DashboardKpiTests(ReportTestBase):
    """Test the dashboard KPI endpoint"""

    def test_kpis(self):
        today = timezone.localdate()
        start = timezone.make_aware(datetime.combine(today, time(9, 0)))
        late = TestDataFactory.create_booking(self.client_obj, self.staff, start=start)
        Booking.objects.filter(pk=late.pk).update(is_late_start=True)
        TestDataFactory.create_booking(self.client_obj, start=start + timedelta(hours=2))
        TestDataFactory.create_booking(self.client_obj, start=start + timedelta(hours=4), status=Booking.STATUS_CANCELLED)
        Invoice.objects.create(client=self.client_obj, branch=self.branch, status='sent',
                               total_amount=Decimal('100.00'), paid_amount=Decimal('40.00'))
        Invoice.objects.create(client=self.client_obj, branch=self.branch, status='paid',
                               total_amount=Decimal('50.00'), paid_amount=Decimal('50.00'))
        course = TestDataFactory.create_course(self.branch)
        TestDataFactory.create_training_record(self.staff, course, status=TrainingRecord.STATUS_COMPLETED,
                                               expiry_date=today - timedelta(days=1))
        News2Observation.objects.create(client=self.client_obj, respiratory_rate=25, oxygen_saturation=91, pulse_rate=115)

        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        kpis = response.data['kpis']
        self.assertEqual(kpis['total_clients'], 1)
        self.assertEqual(kpis['active_clients'], 1)
        self.assertEqual(kpis['active_staff'], 1)
        self.assertEqual(kpis['todays_bookings'], 2)
        self.assertEqual(kpis['late_starts_today'], 1)
        self.assertEqual(kpis['unassigned_today'], 1)
        self.assertEqual(kpis['unpaid_invoices_count'], 1)
        self.assertEqual(kpis['unpaid_invoice_total'], 60.0)
        self.assertEqual(kpis['expired_training'], 1)
        self.assertEqual(kpis['high_risk_clients'], 1)
        self.assertEqual(response.data['bookings_by_status'][Booking.STATUS_CANCELLED], 1)

    def test_kpis_are_cached(self):
        self.client.get('/api/v1/reports/dashboard-kpis/')
        News2Observation.objects.create(client=self.client_obj, respiratory_rate=25, oxygen_saturation=91, pulse_rate=115)
        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.data['kpis']['high_risk_clients'], 0)

        TestDataFactory.create_client(self.branch)
        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.data['kpis']['high_risk_clients'], 1)
        self.assertEqual(response.data['kpis']['total_clients'], 2)

    def test_scoped_to_admin_branches(self):
        TestDataFactory.create_client(TestDataFactory.create_branch())
        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.data['kpis']['total_clients'], 1)


class BookingsReportTests(ReportTestBase):
    """Test the bookings report"""

    def setUp(self):
        super().setUp()
        TestDataFactory.create_booking(self.client_obj, self.staff, start=at(7, 9))
        TestDataFactory.create_booking(self.client_obj, start=at(8, 9), minutes=90)
        TestDataFactory.create_booking(self.client_obj, self.staff, start=at(9, 9), status=Booking.STATUS_CANCELLED)
        TestDataFactory.create_booking(self.client_obj, self.staff, start=at(20, 9))
        self.url = '/api/v1/reports/bookings/?date_from=2030-01-01&date_to=2030-01-10'

    def test_report(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['count'], 3)
        self.assertEqual(response.data['summary']['total'], Decimal('3.50'))
        self.assertEqual(response.data['summary']['groups'], {'Assigned': 1, 'Cancelled': 1, 'Unassigned': 1})
        self.assertEqual(response.data['carer_hours'], [
            {'carer': 'Unassigned', 'hours': Decimal('1.50')},
            {'carer': 'Ann Carer', 'hours': Decimal('1.00')},
        ])
        self.assertEqual(response.data['results'][0]['client'], 'Bea Client')

    def test_status_filter(self):
        response = self.client.get(self.url + '&status=cancelled')
        self.assertEqual(response.data['summary']['count'], 1)

    def test_invalid_period(self):
        response = self.client.get('/api/v1/reports/bookings/?date_from=2030-02-01&date_to=2030-01-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/bookings/?date_from=01/01/2030')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_csv_export(self):
        response = self.client.get(self.url + '&export=csv')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('attachment; filename="bookings-report-', response['Content-Disposition'])
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], 'Date,Start,End,Client,Carer,Service,Status,Hours')
        self.assertEqual(lines[1], '07/01/2030,09:00,10:00,Bea Client,Ann Carer,,Assigned,1.00')
        self.assertEqual(len(lines), 4)

    def test_pdf_export(self):
        response = self.client.get(self.url + '&export=pdf&branch=' + str(self.branch.id))
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_unknown_export(self):
        response = self.client.get(self.url + '&export=xlsx')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class TrainingReportTests(ReportTestBase):
    """Test the training compliance report"""

    def setUp(self):
        super().setUp()
        today = timezone.localdate()
        TestDataFactory.create_training_record(self.staff, TestDataFactory.create_course(self.branch),
                                               status=TrainingRecord.STATUS_COMPLETED,
                                               expiry_date=today + timedelta(days=200))
        TestDataFactory.create_training_record(self.staff, TestDataFactory.create_course(self.branch),
                                               status=TrainingRecord.STATUS_COMPLETED,
                                               expiry_date=today + timedelta(days=10))
        TestDataFactory.create_training_record(self.staff, TestDataFactory.create_course(self.branch))
        inactive = TestDataFactory.create_staff(self.branch)
        inactive.status = 'inactive'
        inactive.save()
        TestDataFactory.create_training_record(inactive, TestDataFactory.create_course(self.branch))

    def test_report(self):
        response = self.client.get('/api/v1/reports/training/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['count'], 3)
        self.assertEqual(summary['groups'], {'compliant': 1, 'expiring-soon': 1, 'not-started': 1})
        self.assertEqual(summary['compliance_rate'], 67)

    def test_compliance_filter(self):
        response = self.client.get('/api/v1/reports/training/?compliance=not-started')
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['results'][0]['staff'], 'Ann Carer')

    def test_csv_export(self):
        response = self.client.get('/api/v1/reports/training/?export=csv')
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], 'Staff,Course,Category,Mandatory,Status,Completed,Expires,Compliance')
        self.assertEqual(len(lines), 4)


class CarePlanReportTests(ReportTestBase):
    """Test the care plan completion report"""

    def setUp(self):
        super().setUp()
        self.draft = TestDataFactory.create_care_plan(self.client_obj)
        CarePlan.objects.filter(pk=self.draft.pk).update(completion_percentage=20, last_step_completed=3)
        other = TestDataFactory.create_client(self.branch)
        self.active = TestDataFactory.create_care_plan(other, status='Active')
        CarePlan.objects.filter(pk=self.active.pk).update(completion_percentage=60,
                                                          review_date=timezone.localdate() - timedelta(days=1))

    def test_report(self):
        response = self.client.get('/api/v1/reports/care-plans/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['count'], 2)
        self.assertEqual(response.data['summary']['average'], Decimal('40.00'))
        self.assertEqual(response.data['summary']['overdue_reviews'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.draft.id)

    def test_status_filter(self):
        response = self.client.get('/api/v1/reports/care-plans/?status=Active')
        self.assertEqual([row['id'] for row in response.data['results']], [self.active.id])

    def test_pdf_export(self):
        response = self.client.get('/api/v1/reports/care-plans/?export=pdf')
        self.assertEqual(response['Content-Type'], 'application/pdf')


class News2ReportTests(ReportTestBase):
    """Test the NEWS2 report"""

    def setUp(self):
        super().setUp()
        now = timezone.now()
        News2Observation.objects.create(client=self.client_obj, recorded_at=now - timedelta(days=2),
                                        respiratory_rate=25, oxygen_saturation=91, pulse_rate=115)
        News2Observation.objects.create(client=self.client_obj, recorded_at=now - timedelta(hours=1),
                                        respiratory_rate=16, oxygen_saturation=97)
        self.unwell = TestDataFactory.create_client(self.branch, first_name='Cal', last_name='Client')
        News2Observation.objects.create(client=self.unwell, recorded_at=now - timedelta(hours=2),
                                        respiratory_rate=25, oxygen_saturation=91, pulse_rate=115)
        News2Observation.objects.create(client=TestDataFactory.create_client(self.branch),
                                        recorded_at=now - timedelta(days=30), respiratory_rate=25)

    def test_latest_score_per_client(self):
        response = self.client.get('/api/v1/reports/news2/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.data['results']
        self.assertEqual([row['client_id'] for row in rows], [self.unwell.id, self.client_obj.id])
        self.assertEqual(rows[1]['total_score'], 0)
        self.assertEqual(rows[1]['risk_level'], 'low')
        self.assertEqual([row['client_id'] for row in response.data['high_risk']], [self.unwell.id])
        self.assertEqual(response.data['summary']['groups'], {'high': 1, 'low': 1})

    def test_wider_period(self):
        date_from = (timezone.localdate() - timedelta(days=60)).isoformat()
        response = self.client.get(f'/api/v1/reports/news2/?date_from={date_from}')
        self.assertEqual(response.data['summary']['count'], 3)

    def test_csv_export(self):
        response = self.client.get('/api/v1/reports/news2/?export=csv')
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], 'Client,Recorded,NEWS2 Score,Risk,Recorded By')
        self.assertTrue(lines[1].startswith('Cal Client,'))
