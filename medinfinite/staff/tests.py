"""
Test suite for the staff module
Tests: Staff CRUD, Training Courses, Training Records, Compliance, Training Metrics, Document Notifications
"""
from datetime import date, timedelta
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.staff.compliance import add_months, classify_training, branch_training_metrics, staff_compliance
from medinfinite.notifications.models import Notification
from medinfinite.staff.models import Staff, StaffDocument, TrainingRecord


class ComplianceHelperTests(TestCase):
    """Test training classification and date helpers"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.staff = TestDataFactory.create_staff(self.branch)
        self.course = TestDataFactory.create_course(self.branch)
        self.today = date(2024, 6, 15)

    def test_add_months_clamps_day(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2023, 11, 30), 3), date(2024, 2, 29))
        self.assertEqual(add_months(date(2024, 3, 15), 12), date(2025, 3, 15))

    def test_classify_training(self):
        record = TrainingRecord(staff=self.staff, course=self.course, status=TrainingRecord.STATUS_COMPLETED)
        record.expiry_date = self.today + timedelta(days=90)
        self.assertEqual(classify_training(record, self.today), 'compliant')
        record.expiry_date = self.today + timedelta(days=10)
        self.assertEqual(classify_training(record, self.today), 'expiring-soon')
        record.expiry_date = self.today - timedelta(days=1)
        self.assertEqual(classify_training(record, self.today), 'expired')
        record.status = TrainingRecord.STATUS_IN_PROGRESS
        self.assertEqual(classify_training(record, self.today), 'not-started')

    def test_completion_sets_expiry_from_course(self):
        record = TestDataFactory.create_training_record(self.staff, self.course, status=TrainingRecord.STATUS_COMPLETED)
        self.assertEqual(record.progress_percentage, 100)
        self.assertEqual(record.completion_date, timezone.localdate())
        self.assertEqual(record.expiry_date, add_months(record.completion_date, 12))

    def test_staff_compliance_summary(self):
        TestDataFactory.create_training_record(self.staff, self.course, status=TrainingRecord.STATUS_COMPLETED)
        other_course = TestDataFactory.create_course(self.branch)
        TestDataFactory.create_training_record(self.staff, other_course)
        result = staff_compliance(self.staff)
        self.assertEqual(result['training_summary']['total'], 2)
        self.assertEqual(result['training_summary']['compliant'], 1)
        self.assertEqual(result['training_summary']['not_started'], 1)
        self.assertEqual(result['overall_score'], 50)

    def test_branch_training_metrics(self):
        TestDataFactory.create_training_record(self.staff, self.course, status=TrainingRecord.STATUS_COMPLETED)
        metrics = branch_training_metrics(self.branch)
        self.assertEqual(metrics['summary']['total_staff'], 1)
        self.assertEqual(metrics['summary']['overall_compliance'], 100)
        self.assertEqual(metrics['summary']['compliance_class'], 'high')
        self.assertEqual(metrics['summary']['completed_this_month'], 1)
        self.assertEqual(metrics['categories'][0]['category'], 'core')


class StaffViewTests(TestCase):
    """Test staff endpoints"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.other_branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_staff(self):
        response = self.client.post('/api/v1/staff/', {
            'branch': self.branch.id,
            'first_name': 'Jane',
            'last_name': 'Doe',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['full_name'], 'Jane Doe')

    def test_create_staff_in_foreign_branch(self):
        response = self.client.post('/api/v1/staff/', {
            'branch': self.other_branch.id,
            'first_name': 'Jane',
            'last_name': 'Doe',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_carers_permission_required(self):
        admin = TestDataFactory.create_branch_admin(self.branch, carers=False)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/staff/', {
            'branch': self.branch.id,
            'first_name': 'Jane',
            'last_name': 'Doe',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_scoped_and_searchable(self):
        TestDataFactory.create_staff(self.branch, first_name='Alice')
        TestDataFactory.create_staff(self.branch, first_name='Bob')
        TestDataFactory.create_staff(self.other_branch, first_name='Alice')
        response = self.client.get('/api/v1/staff/?search=alice')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_cannot_move_staff_to_foreign_branch(self):
        staff = TestDataFactory.create_staff(self.branch)
        response = self.client.patch(f'/api/v1/staff/{staff.id}/', {'branch': self.other_branch.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_staff(self):
        staff = TestDataFactory.create_staff(self.branch)
        response = self.client.delete(f'/api/v1/staff/{staff.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Staff.objects.filter(pk=staff.id).exists())

    def test_carer_reads_own_compliance(self):
        staff = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(staff.user)
        response = self.client.get(f'/api/v1/staff/{staff.id}/compliance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['staff_id'], staff.id)

    def test_carer_cannot_read_colleague_compliance(self):
        staff = TestDataFactory.create_staff(self.branch)
        colleague = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(staff.user)
        response = self.client.get(f'/api/v1/staff/{colleague.id}/compliance/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TrainingViewTests(TestCase):
    """Test training course, record and metrics endpoints"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.course = TestDataFactory.create_course(self.branch, title='Manual Handling')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_course(self):
        response = self.client.post('/api/v1/training/courses/', {
            'branch': self.branch.id,
            'title': 'Infection Control',
            'valid_for_months': 12,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_duplicate_course_title(self):
        response = self.client.post('/api/v1/training/courses/', {
            'branch': self.branch.id,
            'title': 'Manual Handling',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_required_score_above_max(self):
        response = self.client.post('/api/v1/training/courses/', {
            'branch': self.branch.id,
            'title': 'First Aid',
            'required_score': 90,
            'max_score': 50,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assign_training(self):
        response = self.client.post('/api/v1/training/records/', {
            'staff': self.staff.id,
            'course': self.course.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['branch'], self.branch.id)

    def test_assign_training_twice(self):
        TestDataFactory.create_training_record(self.staff, self.course)
        response = self.client.post('/api/v1/training/records/', {
            'staff': self.staff.id,
            'course': self.course.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_course_from_other_branch_rejected(self):
        foreign_course = TestDataFactory.create_course(TestDataFactory.create_branch())
        response = self.client.post('/api/v1/training/records/', {
            'staff': self.staff.id,
            'course': foreign_course.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_record_logs_status_change(self):
        record = TestDataFactory.create_training_record(self.staff, self.course)
        response = self.client.patch(f'/api/v1/training/records/{record.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['progress_percentage'], 100)
        self.assertIsNotNone(response.data['expiry_date'])

    def test_carer_sees_only_own_records(self):
        colleague = TestDataFactory.create_staff(self.branch)
        TestDataFactory.create_training_record(self.staff, self.course)
        TestDataFactory.create_training_record(colleague, self.course)
        self.client.authenticate_user(self.staff.user)
        response = self.client.get('/api/v1/training/records/')
        self.assertEqual(response.data['count'], 1)

    def test_carer_cannot_edit_own_record(self):
        record = TestDataFactory.create_training_record(self.staff, self.course)
        self.client.authenticate_user(self.staff.user)
        response = self.client.patch(f'/api/v1/training/records/{record.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_training_metrics(self):
        TestDataFactory.create_training_record(self.staff, self.course, status=TrainingRecord.STATUS_COMPLETED)
        response = self.client.get(f'/api/v1/training/metrics/?branch={self.branch.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['overall_compliance'], 100)

    def test_send_training_metrics_email(self):
        response = self.client.post('/api/v1/training/metrics/email/', {
            'branch': self.branch.id,
            'recipients': ['manager@example.com'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['manager@example.com'])


class StaffDocumentNotificationTests(TestCase):
    """Test document upload notices and the expiring documents pass"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.super_admin = TestDataFactory.create_super_admin()
        self.foreign_admin = TestDataFactory.create_branch_admin(TestDataFactory.create_branch())
        self.staff = TestDataFactory.create_staff(self.branch)
        self.today = timezone.localdate()

    def _document(self, days_left, **fields):
        values = {'staff': self.staff, 'document_type': 'DBS Certificate', 'file': 'staff_documents/dbs.pdf',
                  'expiry_date': self.today + timedelta(days=days_left)}
        values.update(fields)
        return StaffDocument.objects.create(**values)

    def _run(self, *args):
        out = StringIO()
        call_command('notify_expiring_documents', *args, stdout=out)
        return out.getvalue()

    def test_upload_notifies_branch_admins(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.staff.user)
        response = client.post(f'/api/v1/staff/{self.staff.id}/documents/', {
            'document_type': 'Right to Work', 'expiry_date': str(self.today + timedelta(days=365)),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        notifications = Notification.objects.filter(category='staff_document_uploaded')
        self.assertEqual(set(notifications.values_list('user_id', flat=True)), {self.admin.id, self.super_admin.id})
        notification = notifications.first()
        self.assertEqual(notification.type, 'staff')
        self.assertEqual(notification.data['document_id'], response.data['id'])
        self.assertIn('document', notification.message)

    def test_expiring_document_notifies_admins_and_carer(self):
        document = self._document(10)
        output = self._run()
        self.assertIn('1 expiring soon', output)
        notifications = Notification.objects.filter(category='staff_document_expiring')
        self.assertEqual(set(notifications.values_list('user_id', flat=True)),
                         {self.admin.id, self.super_admin.id, self.staff.user_id})
        notification = notifications.first()
        self.assertEqual(notification.data['document_id'], document.id)
        self.assertIn('expires in 10 days', notification.message)

    def test_expired_document(self):
        self._document(-3)
        self._run()
        notification = Notification.objects.filter(category='staff_document_expired').first()
        self.assertEqual(notification.priority, 'high')
        self.assertEqual(notification.title, 'Staff Document Expired')

    def test_valid_rejected_and_missing_documents_skipped(self):
        self._document(90)
        self._document(5, status='rejected')
        self._document(5, file='')
        self._run()
        self.assertFalse(Notification.objects.exists())

    def test_does_not_notify_twice(self):
        self._document(10)
        self._run()
        count = Notification.objects.count()
        self._run()
        self.assertEqual(Notification.objects.count(), count)

    def test_renewed_expiry_notifies_again(self):
        document = self._document(10)
        self._run()
        document.expiry_date = self.today + timedelta(days=20)
        document.save()
        self._run()
        self.assertEqual(Notification.objects.filter(user=self.admin, category='staff_document_expiring').count(), 2)

    def test_dry_run(self):
        self._document(10)
        output = self._run('--dry-run')
        self.assertIn('DRY RUN MODE', output)
        self.assertFalse(Notification.objects.exists())

    def test_send_email(self):
        self._document(10)
        self._run('--send-email')
        self.assertEqual(len(mail.outbox), 3)
        self.assertEqual(mail.outbox[0].subject, 'Staff Document Expiring Soon')
