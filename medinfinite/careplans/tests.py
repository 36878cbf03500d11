"""
Test suite for the care plans module
Tests: Wizard Completion, Auto-save, Status Sync, Approval Workflow, Goals, Medications, MAR Chart
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from medinfinite.careplans import workflow
from medinfinite.careplans.completion import completed_steps, completion_percentage, progress_percentage
from medinfinite.careplans.models import CarePlan, CarePlanStatusHistory, MedicationAdministration
from medinfinite.core.models import User
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient

SIGNATURE = {'strokes': [[[5, 5], [60, 30], [120, 10]]], 'width': 200, 'height': 60}


class CompletionTests(TestCase):
    """Test wizard step detection"""

    def test_empty_wizard(self):
        self.assertEqual(completed_steps({}), [])
        self.assertEqual(completion_percentage(None), 0)

    def test_adult_steps(self):
        data = {
            'title': 'Plan',
            'about_me': {'likes': 'Gardening'},
            'goals': [{'description': 'Walk daily'}],
            'consent': {'consent_to_personal_care': 'yes'},
            'personal_info': {'emergency_contacts': [{'name': 'Sam'}]},
        }
        self.assertEqual(completed_steps(data), [1, 2, 7, 16, 17])
        self.assertEqual(completion_percentage(data), 29)

    def test_whitespace_is_not_data(self):
        self.assertEqual(completed_steps({'title': '   ', 'about_me': {'likes': '  '}}), [])

    def test_child_steps_use_twenty_step_total(self):
        data = {'title': 'Plan', 'safeguarding': {'concerns': 'None noted'}}
        self.assertEqual(completed_steps(data, is_child=True), [1, 20])
        self.assertEqual(completion_percentage(data, is_child=True), 10)
        self.assertEqual(completed_steps(data, is_child=False), [1])

    def test_medications_count_for_two_steps(self):
        data = {'medical_info': {'medication_manager': {'medications': [{'name': 'Aspirin', 'instructions': 'With food'}]}}}
        self.assertEqual(completed_steps(data), [3, 5, 6])

    def test_goal_progress(self):
        self.assertEqual(progress_percentage('Completed'), 100)
        self.assertEqual(progress_percentage('on_hold'), 40)
        self.assertEqual(progress_percentage('In Progress', 'Currently at 5 steps for 10'), 50)
        self.assertEqual(progress_percentage('In Progress', 'Currently at 50 for 10'), 100)
        self.assertEqual(progress_percentage('In Progress'), 40)
        self.assertEqual(progress_percentage('Unknown'), 10)


class WorkflowTests(TestCase):
    """Test auto-save and status transitions"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.client_record = TestDataFactory.create_client(self.branch, status='New Enquiries')
        self.care_plan = TestDataFactory.create_care_plan(self.client_record)
        self.user = TestDataFactory.create_branch_admin(self.branch)

    def test_autosave_within_interval_is_skipped(self):
        now = timezone.now()
        saved, _ = workflow.autosave(self.care_plan, {'title': 'First'}, now=now)
        self.assertTrue(saved)
        saved, _ = workflow.autosave(self.care_plan, {'title': 'Second'}, now=now + timedelta(seconds=5))
        self.assertFalse(saved)
        self.care_plan.refresh_from_db()
        self.assertEqual(self.care_plan.title, 'First')

    def test_forced_autosave(self):
        now = timezone.now()
        workflow.autosave(self.care_plan, {'title': 'First'}, now=now)
        saved, _ = workflow.autosave(self.care_plan, {'title': 'Second'}, force=True, now=now + timedelta(seconds=5))
        self.assertTrue(saved)
        self.care_plan.refresh_from_db()
        self.assertEqual(self.care_plan.title, 'Second')

    def test_status_change_syncs_client(self):
        history = workflow.change_status(self.care_plan, 'active', self.user)
        self.assertEqual(history.from_status, 'Draft')
        self.assertEqual(history.to_status, 'Active')
        self.client_record.refresh_from_db()
        self.assertEqual(self.client_record.status, 'Active')

    def test_same_status_is_noop(self):
        self.assertIsNone(workflow.change_status(self.care_plan, 'Draft', self.user))
        self.assertFalse(CarePlanStatusHistory.objects.exists())

    def test_invalid_status(self):
        with self.assertRaises(ValueError):
            workflow.change_status(self.care_plan, 'Dormant', self.user)

    def test_reject_requires_reason(self):
        with self.assertRaises(ValueError):
            workflow.reject(self.care_plan, self.user, '  ')
        with self.assertRaises(ValueError):
            workflow.reject(self.care_plan, self.user, None)

    def test_reject_coerces_reason_to_text(self):
        workflow.reject(self.care_plan, self.user, 123)
        self.assertEqual(self.care_plan.rejection_reason, '123')
        self.assertEqual(self.care_plan.approval_status, CarePlan.APPROVAL_REJECTED)

    def test_submit_approve_flow(self):
        workflow.submit_for_approval(self.care_plan, self.user)
        self.assertEqual(self.care_plan.approval_status, CarePlan.APPROVAL_PENDING)
        self.assertEqual(self.care_plan.status, 'Under Review')
        workflow.approve(self.care_plan, self.user)
        self.assertEqual(self.care_plan.approval_status, CarePlan.APPROVAL_APPROVED)
        self.assertEqual(self.care_plan.status, 'Active')
        with self.assertRaises(ValueError):
            workflow.approve(self.care_plan, self.user)

    def test_client_approval_flow(self):
        workflow.approve(self.care_plan, self.user, require_client_approval=True)
        self.assertEqual(self.care_plan.approval_status, CarePlan.APPROVAL_PENDING_CLIENT)
        self.assertEqual(self.care_plan.status, 'Draft')
        with self.assertRaises(ValueError):
            workflow.client_approve(self.care_plan, self.user, '')
        with self.assertRaises(ValueError):
            workflow.client_approve(self.care_plan, self.user, 'signed')
        self.assertEqual(self.care_plan.approval_status, CarePlan.APPROVAL_PENDING_CLIENT)
        workflow.client_approve(self.care_plan, self.user, 'data:image/png;base64,AAAA')
        self.assertEqual(self.care_plan.status, 'Active')
        self.assertIsNotNone(self.care_plan.client_acknowledged_at)


class CarePlanViewTests(TestCase):
    """Test care plan endpoints"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client_record = TestDataFactory.create_client(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_care_plan_for_child(self):
        self.client_record.is_child = True
        self.client_record.save()
        response = self.client.post('/api/v1/care-plans/', {
            'client': self.client_record.id,
            'title': 'Support plan',
            'wizard_data': {'title': 'Support plan'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['care_plan_type'], 'child')
        self.assertTrue(response.data['display_id'].startswith('CP-'))
        self.assertEqual(response.data['completion_percentage'], 5)

    def test_create_requires_care_plan_permission(self):
        admin = TestDataFactory.create_branch_admin(self.branch, care_plans=False)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/care-plans/', {
            'client': self.client_record.id,
            'title': 'Plan',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_autosave_endpoint(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/autosave/', {
            'wizard_data': {'title': 'Draft', 'goals': [{'description': 'x'}]},
            'step': 7,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['saved'])
        self.assertEqual(response.data['last_step_completed'], 7)
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/autosave/', {
            'wizard_data': {'title': 'Draft again'},
        }, format='json')
        self.assertFalse(response.data['saved'])

    def test_completion_endpoint(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        workflow.autosave(care_plan, {'title': 'Plan'}, force=True)
        response = self.client.get(f'/api/v1/care-plans/{care_plan.id}/completion/')
        self.assertEqual(response.data['completed_steps'], [1])
        self.assertEqual(response.data['total_steps'], 17)
        self.assertEqual(len(response.data['steps']), 17)

    def test_change_status_endpoint(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/status/', {'status': 'on_hold'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['changed'])
        self.assertEqual(response.data['client_status'], 'Actively Assessing')
        response = self.client.get(f'/api/v1/care-plans/{care_plan.id}/history/')
        self.assertEqual(response.data[0]['to_status'], 'On Hold')

    def test_reject_returns_to_draft(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        self.client.post(f'/api/v1/care-plans/{care_plan.id}/submit/')
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/reject/', {'reason': 'Missing consent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'Draft')
        self.assertEqual(response.data['approval_status'], CarePlan.APPROVAL_REJECTED)

    def test_reject_with_numeric_reason(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        self.client.post(f'/api/v1/care-plans/{care_plan.id}/submit/')
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/reject/', {'reason': 42}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rejection_reason'], '42')

    def test_client_approve_rejects_invalid_signature(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        workflow.approve(care_plan, self.admin, require_client_approval=True)
        for signature in ('signed', {'strokes': [5]}):
            response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/client-approve/',
                                        {'signature': signature}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        care_plan.refresh_from_db()
        self.assertEqual(care_plan.approval_status, CarePlan.APPROVAL_PENDING_CLIENT)
        self.assertEqual(care_plan.client_signature, '')

    def test_client_user_signs_own_plan(self):
        user = TestDataFactory.create_user(role=User.ROLE_CLIENT)
        self.client_record.user = user
        self.client_record.save()
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        workflow.approve(care_plan, self.admin, require_client_approval=True)
        self.client.authenticate_user(user)
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/client-approve/', {'signature': SIGNATURE}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['client_acknowledged_at'])
        self.assertEqual(response.data['approval_status'], CarePlan.APPROVAL_APPROVED)

    def test_goal_progress_from_status(self):
        care_plan = TestDataFactory.create_care_plan(self.client_record)
        response = self.client.post(f'/api/v1/care-plans/{care_plan.id}/goals/', {
            'description': 'Walk to the shop',
            'status': 'Active',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['progress'], 60)
        response = self.client.patch(f"/api/v1/goals/{response.data['id']}/", {'status': 'Completed'}, format='json')
        self.assertEqual(response.data['progress'], 100)


class MedicationTests(TestCase):
    """Test medication administration and the MAR chart"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.client_record = TestDataFactory.create_client(self.branch)
        self.care_plan = TestDataFactory.create_care_plan(self.client_record)
        self.medication = TestDataFactory.create_medication(self.care_plan, name='Paracetamol')
        self.staff = TestDataFactory.create_staff(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff.user)

    def test_carer_records_administration(self):
        response = self.client.post(f'/api/v1/medications/{self.medication.id}/administrations/', {
            'status': 'given',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['administered_by'], self.staff.user_id)

    def test_refusal_needs_note(self):
        response = self.client.post(f'/api/v1/medications/{self.medication.id}/administrations/', {
            'status': 'refused',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_discontinued_medication(self):
        self.medication.status = 'discontinued'
        self.medication.save()
        response = self.client.post(f'/api/v1/medications/{self.medication.id}/administrations/', {
            'status': 'given',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mar_chart_flags_missing_days(self):
        today = timezone.localdate()
        MedicationAdministration.objects.create(medication=self.medication, status='given',
                                                administered_by=self.staff.user)
        response = self.client.get(f'/api/v1/care-plans/{self.care_plan.id}/mar/'
                                   f'?start_date={today - timedelta(days=2)}&end_date={today}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        days = response.data['medications'][0]['days']
        self.assertEqual(len(days), 3)
        self.assertTrue(days[0]['missing'])
        self.assertFalse(days[2]['missing'])
        self.assertEqual(days[2]['entries'][0]['status'], 'given')

    def test_mar_chart_range_limit(self):
        today = timezone.localdate()
        response = self.client.get(f'/api/v1/care-plans/{self.care_plan.id}/mar/'
                                   f'?start_date={today - timedelta(days=120)}&end_date={today}')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
