"""
Test suite for the core module
Tests: Login, Current User, User Management, Settings, Audit Logs, Global Search
"""
from io import StringIO
from decimal import Decimal

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from medinfinite.core.models import User, Setting, AuditLog
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.core.utils import get_decimal_setting, get_int_setting, create_audit_log


class AuthTests(TestCase):
    """Test login and the current user endpoint"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch, finance=True)
        self.client = AuthenticatedAPIClient()

    def test_login_returns_role_claim(self):
        """Access tokens carry the username and role"""
        response = APIClient().post('/api/v1/auth/login/', {
            'username': self.admin.username,
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], User.ROLE_BRANCH_ADMIN)
        self.assertEqual(token['username'], self.admin.username)

    def test_login_wrong_password(self):
        response = APIClient().post('/api/v1/auth/login/', {
            'username': self.admin.username,
            'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_for_deleted_user(self):
        """Refreshing a token of a deleted user is rejected"""
        user = TestDataFactory.create_user()
        login = APIClient().post('/api/v1/auth/login/', {
            'username': user.username,
            'password': 'testpass123',
        }, format='json')
        user.delete()
        response = APIClient().post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_for_branch_admin(self):
        """Branch admins see their linked branches and capability flags"""
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['branch_ids'], [self.branch.id])
        self.assertTrue(response.data['is_admin'])
        self.assertFalse(response.data['can_manage_branches'])
        self.assertTrue(response.data['can_manage_billing'])
        self.assertTrue(response.data['can_view_reports'])

    def test_me_for_super_admin_lists_every_branch(self):
        other = TestDataFactory.create_branch()
        self.client.authenticate_user(TestDataFactory.create_super_admin())
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(set(response.data['branch_ids']), {self.branch.id, other.id})
        self.assertTrue(response.data['can_manage_branches'])

    def test_me_for_carer(self):
        staff = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(staff.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['branch_ids'], [self.branch.id])
        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['can_manage_billing'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserManagementTests(TestCase):
    """Test user list, create and update"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _payload(self, role):
        return {
            'username': f'new_{TestDataFactory.random_string(6)}',
            'email': f'{TestDataFactory.random_string(6)}@test.com',
            'password': 'Str0ng-passw0rd!',
            'password_confirm': 'Str0ng-passw0rd!',
            'role': role,
        }

    def test_branch_admin_creates_carer(self):
        response = self.client.post('/api/v1/users/', self._payload(User.ROLE_CARER), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], User.ROLE_CARER)
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='create').exists())

    def test_branch_admin_cannot_create_super_admin(self):
        response = self.client.post('/api/v1/users/', self._payload(User.ROLE_SUPER_ADMIN), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_super_admin_creates_branch_admin(self):
        self.client.authenticate_user(TestDataFactory.create_super_admin())
        response = self.client.post('/api/v1/users/', self._payload(User.ROLE_BRANCH_ADMIN), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_password_mismatch(self):
        payload = self._payload(User.ROLE_CARER)
        payload['password_confirm'] = 'different'
        response = self.client.post('/api/v1/users/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_email_rejected(self):
        payload = self._payload(User.ROLE_CARER)
        payload['email'] = self.admin.email
        response = self.client.post('/api/v1/users/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_carer_cannot_list_users(self):
        staff = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(staff.user)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_list_scoped_to_branch(self):
        """Branch admins only see people of their own branches"""
        own_carer = TestDataFactory.create_staff(self.branch)
        foreign_carer = TestDataFactory.create_staff(TestDataFactory.create_branch())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = {user['id'] for user in response.data['results']}
        self.assertIn(own_carer.user_id, ids)
        self.assertNotIn(foreign_carer.user_id, ids)

    def test_delete_deactivates_user(self):
        carer = TestDataFactory.create_staff(self.branch)
        response = self.client.delete(f'/api/v1/users/{carer.user_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        carer.user.refresh_from_db()
        self.assertFalse(carer.user.is_active)

    def test_cannot_promote_carer_to_super_admin(self):
        carer = TestDataFactory.create_staff(self.branch)
        response = self.client.patch(f'/api/v1/users/{carer.user_id}/', {'role': User.ROLE_SUPER_ADMIN}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SettingTests(TestCase):
    """Test settings endpoints and helpers"""

    def setUp(self):
        self.user = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_and_update_setting(self):
        response = self.client.post('/api/v1/settings/', {'key': 'vat_rate', 'value': '0.05'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting_id = response.data['id']
        response = self.client.patch(f'/api/v1/settings/{setting_id}/', {'value': '0.10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(get_decimal_setting('vat_rate', '0.20'), Decimal('0.10'))

    def test_branch_admin_cannot_change_settings(self):
        setting = Setting.objects.create(key='vat_rate', value='0.20')
        self.client.authenticate_user(TestDataFactory.create_branch_admin(TestDataFactory.create_branch()))
        response = self.client.patch(f'/api/v1/settings/{setting.id}/', {'value': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_setting_helpers_fall_back_to_default(self):
        Setting.objects.create(key='expiring_soon_days', value='soon')
        self.assertEqual(get_int_setting('expiring_soon_days', 30), 30)
        self.assertEqual(get_decimal_setting('missing', '0.20'), Decimal('0.20'))

    def test_seed_settings_command(self):
        out = StringIO()
        call_command('seed_settings', stdout=out)
        self.assertEqual(get_decimal_setting('vat_rate', '0'), Decimal('0.20'))
        self.assertEqual(get_int_setting('invoice_payment_terms_days', 0), 30)
        self.assertIn('3 created', out.getvalue())

    def test_seed_settings_dry_run(self):
        call_command('seed_settings', '--dry-run', stdout=StringIO())
        self.assertFalse(Setting.objects.exists())


class AuditLogTests(TestCase):
    """Test audit log listing"""

    def setUp(self):
        self.user = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_filter_by_action(self):
        create_audit_log(user=self.user, action='create', model_name='Client', object_id=1)
        create_audit_log(user=self.user, action='delete', model_name='Client', object_id=1)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['action'], 'delete')

    def test_missing_fields_skip_audit_log(self):
        self.assertIsNone(create_audit_log(user=self.user, action='create'))

    def test_non_super_admin_sees_own_entries(self):
        carer = TestDataFactory.create_user()
        create_audit_log(user=self.user, action='create', model_name='Client', object_id=1)
        own = create_audit_log(user=carer, action='update', model_name='Client', object_id=1)
        self.client.authenticate_user(carer)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual([entry['id'] for entry in response.data['results']], [own.id])


class GlobalSearchTests(TestCase):
    """Test the scoped global search"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_search_is_branch_scoped(self):
        TestDataFactory.create_client(self.branch, last_name='Findable')
        TestDataFactory.create_client(TestDataFactory.create_branch(), last_name='Findable')
        response = self.client.get('/api/v1/search/?q=Findable')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['clients']), 1)

    def test_empty_query(self):
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.data['clients'], [])
