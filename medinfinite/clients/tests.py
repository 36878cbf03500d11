"""
Test suite for the clients module
Tests: Status Normalisation, Client CRUD, Scoping, Filtering, Notes
"""
from django.test import TestCase
from rest_framework import status

from medinfinite.clients.models import Client
from medinfinite.clients.statuses import normalize_status, client_status_for_care_plan
from medinfinite.core.models import User, AuditLog
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class StatusTests(TestCase):
    """Test status vocabulary helpers"""

    def test_normalize_status(self):
        self.assertEqual(normalize_status('actively_assessing'), 'Actively Assessing')
        self.assertEqual(normalize_status('NEW-ENQUIRIES'), 'New Enquiries')
        self.assertEqual(normalize_status('  active '), 'Active')
        self.assertEqual(normalize_status(None), '')

    def test_care_plan_to_client_status(self):
        self.assertEqual(client_status_for_care_plan('active'), 'Active')
        self.assertEqual(client_status_for_care_plan('Archived'), 'Former')
        self.assertEqual(client_status_for_care_plan('under_review'), 'Actively Assessing')
        self.assertIsNone(client_status_for_care_plan('unknown'))


class ClientViewTests(TestCase):
    """Test client endpoints"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.other_branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_client_normalizes_status(self):
        response = self.client.post('/api/v1/clients/', {
            'branch': self.branch.id,
            'first_name': 'Mary',
            'last_name': 'Smith',
            'status': 'actively_assessing',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'Actively Assessing')

    def test_invalid_status_rejected(self):
        response = self.client.post('/api/v1/clients/', {
            'branch': self.branch.id,
            'first_name': 'Mary',
            'last_name': 'Smith',
            'status': 'sleeping',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_in_foreign_branch(self):
        response = self.client.post('/api/v1/clients/', {
            'branch': self.other_branch.id,
            'first_name': 'Mary',
            'last_name': 'Smith',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters_by_status_list(self):
        TestDataFactory.create_client(self.branch, status='Active')
        TestDataFactory.create_client(self.branch, status='New Enquiries')
        TestDataFactory.create_client(self.branch, status='Former')
        TestDataFactory.create_client(self.other_branch, status='Active')
        response = self.client.get('/api/v1/clients/?status=active,new_enquiries')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_list_ignores_unknown_ordering(self):
        TestDataFactory.create_client(self.branch)
        response = self.client.get('/api/v1/clients/?ordering=password')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_status_change_audited(self):
        client = TestDataFactory.create_client(self.branch, status='New Enquiries')
        response = self.client.patch(f'/api/v1/clients/{client.id}/', {'status': 'active'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='status_change', model_name='Client').exists())

    def test_client_user_sees_only_self(self):
        user = TestDataFactory.create_user(role=User.ROLE_CLIENT)
        own = TestDataFactory.create_client(self.branch, user=user)
        other = TestDataFactory.create_client(self.branch)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])
        response = self.client.get(f'/api/v1/clients/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_carer_cannot_modify_client(self):
        staff = TestDataFactory.create_staff(self.branch)
        client = TestDataFactory.create_client(self.branch)
        self.client.authenticate_user(staff.user)
        response = self.client.patch(f'/api/v1/clients/{client.id}/', {'phone': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_move_client_to_foreign_branch(self):
        client = TestDataFactory.create_client(self.branch)
        response = self.client.patch(f'/api/v1/clients/{client.id}/', {'branch': self.other_branch.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        client.refresh_from_db()
        self.assertEqual(client.branch_id, self.branch.id)

    def test_admin_of_both_branches_can_move_client(self):
        TestDataFactory.link_admin(self.admin, self.other_branch)
        client = TestDataFactory.create_client(self.branch)
        response = self.client.patch(f'/api/v1/clients/{client.id}/', {'branch': self.other_branch.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        client.refresh_from_db()
        self.assertEqual(client.branch_id, self.other_branch.id)

    def test_delete_client(self):
        client = TestDataFactory.create_client(self.branch)
        response = self.client.delete(f'/api/v1/clients/{client.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Client.objects.filter(pk=client.id).exists())

    def test_status_options(self):
        response = self.client.get('/api/v1/clients/statuses/')
        self.assertIn('Active', response.data['client_statuses'])
        self.assertIn('Draft', response.data['care_plan_statuses'])

    def test_notes(self):
        client = TestDataFactory.create_client(self.branch)
        response = self.client.post(f'/api/v1/clients/{client.id}/notes/', {
            'title': 'Visit',
            'content': 'Doing well',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['author'], self.admin.id)
        response = self.client.get(f'/api/v1/clients/{client.id}/notes/')
        self.assertEqual(len(response.data), 1)
