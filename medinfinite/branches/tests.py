"""
Test suite for the branches module
Tests: Branch Scoping, Branch CRUD, Organizations, Branch Admin Creation, Member Updates
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from medinfinite.branches.access import (
    get_branch_ids_for_user, can_access_branch, can_manage_branch, branch_admin_users
)
from medinfinite.branches.models import AdminBranch, Branch
from medinfinite.core.models import User, AuditLog
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class BranchAccessTests(TestCase):
    """Test the branch visibility rules for each role"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.other_branch = TestDataFactory.create_branch()

    def test_super_admin_sees_everything(self):
        user = TestDataFactory.create_super_admin()
        self.assertIsNone(get_branch_ids_for_user(user))
        self.assertTrue(can_access_branch(user, self.other_branch.id))
        self.assertTrue(can_manage_branch(user, self.other_branch.id, 'finance'))

    def test_branch_admin_sees_linked_branches(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.assertEqual(get_branch_ids_for_user(admin), [self.branch.id])
        self.assertTrue(can_access_branch(admin, self.branch.id))
        self.assertFalse(can_access_branch(admin, self.other_branch.id))

    def test_permission_flags_on_link(self):
        """Finance is off by default; other areas are on"""
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.assertTrue(can_manage_branch(admin, self.branch.id))
        self.assertTrue(can_manage_branch(admin, self.branch.id, 'bookings'))
        self.assertFalse(can_manage_branch(admin, self.branch.id, 'finance'))

    def test_carer_sees_staff_branch(self):
        staff = TestDataFactory.create_staff(self.branch)
        self.assertEqual(get_branch_ids_for_user(staff.user), [self.branch.id])
        self.assertFalse(can_manage_branch(staff.user, self.branch.id))

    def test_client_sees_profile_branch(self):
        user = TestDataFactory.create_user(role=User.ROLE_CLIENT)
        TestDataFactory.create_client(self.other_branch, user=user)
        self.assertEqual(get_branch_ids_for_user(user), [self.other_branch.id])

    def test_branch_admin_users_include_super_admins(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        super_admin = TestDataFactory.create_super_admin()
        outsider = TestDataFactory.create_branch_admin(self.other_branch)
        users = set(branch_admin_users(self.branch.id))
        self.assertIn(admin, users)
        self.assertIn(super_admin, users)
        self.assertNotIn(outsider, users)


class BranchViewTests(TestCase):
    """Test branch list, create, update and delete"""

    def setUp(self):
        cache.clear()
        self.branch = TestDataFactory.create_branch()
        self.other_branch = TestDataFactory.create_branch()
        self.super_admin = TestDataFactory.create_super_admin()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client = AuthenticatedAPIClient()

    def test_list_branches_scoped(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/branches/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([branch['id'] for branch in response.data], [self.branch.id])

    def test_list_refreshes_after_new_branch(self):
        """A cached list is dropped when a branch is saved"""
        self.client.authenticate_user(self.super_admin)
        first = self.client.get('/api/v1/branches/')
        TestDataFactory.create_branch()
        second = self.client.get('/api/v1/branches/')
        self.assertEqual(len(second.data), len(first.data) + 1)

    def test_create_branch_requires_super_admin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/branches/', {'name': 'North'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_super_admin_creates_branch(self):
        organization = TestDataFactory.create_organization()
        self.client.authenticate_user(self.super_admin)
        response = self.client.post('/api/v1/branches/', {
            'name': 'North',
            'organization': organization.id,
            'currency': 'EUR',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['organization_name'], organization.name)
        self.assertTrue(AuditLog.objects.filter(model_name='Branch', action='create').exists())

    def test_duplicate_branch_name_in_organization(self):
        organization = TestDataFactory.create_organization()
        TestDataFactory.create_branch(name='North', organization=organization)
        self.client.authenticate_user(self.super_admin)
        response = self.client.post('/api/v1/branches/', {
            'name': 'North',
            'organization': organization.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_branch_admin_updates_own_branch(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/branches/{self.branch.id}/', {'phone': '0999'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.branch.refresh_from_db()
        self.assertEqual(self.branch.phone, '0999')

    def test_branch_admin_cannot_see_other_branch(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/branches/{self.other_branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_super_admin_deletes(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/branches/{self.branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.super_admin)
        response = self.client.delete(f'/api/v1/branches/{self.branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Branch.objects.filter(pk=self.branch.id).exists())

    def test_branch_admin_list(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/branches/{self.branch.id}/admins/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['admin'], self.admin.id)

    def test_organization_create_requires_super_admin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/organizations/', {'name': 'Care Co'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.super_admin)
        response = self.client.post('/api/v1/organizations/', {'name': 'Care Co'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)


class BranchAdminOperationTests(TestCase):
    """Test creating branch admins and updating organisation members"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.other_branch = TestDataFactory.create_branch()
        self.super_admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_create_branch_admin(self):
        response = self.client.post('/api/v1/admin-ops/branch-admins/', {
            'email': 'New.Admin@Example.com',
            'branch_ids': [self.branch.id],
            'permissions': {'finance': True},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['created'])
        user = User.objects.get(email='new.admin@example.com')
        self.assertEqual(user.role, User.ROLE_BRANCH_ADMIN)
        link = AdminBranch.objects.get(admin=user, branch=self.branch)
        self.assertTrue(link.permissions['finance'])
        self.assertTrue(link.permissions['bookings'])

    def test_create_branch_admin_is_idempotent(self):
        payload = {'email': 'repeat@example.com', 'branch_ids': [self.branch.id]}
        self.client.post('/api/v1/admin-ops/branch-admins/', payload, format='json')
        response = self.client.post('/api/v1/admin-ops/branch-admins/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['created'])
        self.assertEqual(User.objects.filter(email='repeat@example.com').count(), 1)
        self.assertEqual(AdminBranch.objects.filter(admin__email='repeat@example.com').count(), 1)

    def test_branch_admin_limited_to_own_branches(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/admin-ops/branch-admins/', {
            'email': 'other@example.com',
            'branch_ids': [self.other_branch.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_carer_cannot_create_branch_admin(self):
        staff = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(staff.user)
        response = self.client.post('/api/v1/admin-ops/branch-admins/', {
            'email': 'x@example.com',
            'branch_ids': [self.branch.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_permission_key(self):
        response = self.client.post('/api/v1/admin-ops/branch-admins/', {
            'email': 'x@example.com',
            'branch_ids': [self.branch.id],
            'permissions': {'launch_rockets': True},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_member_branches_and_permissions(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        response = self.client.patch(f'/api/v1/admin-ops/members/{admin.id}/', {
            'branch_ids': [self.other_branch.id],
            'permissions': {'reports': False},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        links = AdminBranch.objects.filter(admin=admin)
        self.assertEqual([link.branch_id for link in links], [self.other_branch.id])
        self.assertFalse(links[0].permissions['reports'])
        self.assertTrue(AuditLog.objects.filter(action='member_update', object_id=str(admin.id)).exists())

    def test_branch_admin_cannot_touch_super_admin(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.client.authenticate_user(admin)
        response = self.client.patch(f'/api/v1/admin-ops/members/{self.super_admin.id}/', {
            'is_active': False,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
