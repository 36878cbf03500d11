"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from medinfinite.branches.models import Organization, Branch, AdminBranch, default_admin_permissions
from medinfinite.staff.models import Staff, TrainingCourse, TrainingRecord
from medinfinite.clients.models import Client
from medinfinite.careplans.models import CarePlan, Medication
from medinfinite.bookings.models import Service, Booking
from medinfinite.billing.models import RateSchedule
from decimal import Decimal
from datetime import time, timedelta
from django.utils import timezone
import random
import string

User = get_user_model()

ALL_DAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.ROLE_CARER,
                    is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_super_admin(**kwargs):
        return TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN, **kwargs)

    @staticmethod
    def create_organization(name=None):
        """Create a test organisation"""
        if not name:
            name = f'Org_{TestDataFactory.random_string(6)}'
        return Organization.objects.create(name=name, contact_email=f'{name.lower()}@test.com')

    @staticmethod
    def create_branch(name=None, organization=None, currency='GBP'):
        """Create a test branch"""
        if not name:
            name = f'Branch_{TestDataFactory.random_string(6)}'
        return Branch.objects.create(
            name=name,
            organization=organization,
            currency=currency,
            address=f'1 Test Street\n{name}',
            phone='01234567890'
        )

    @staticmethod
    def link_admin(user, branch, **permissions):
        """Link an administrator to a branch, overriding individual permissions"""
        granted = default_admin_permissions()
        granted.update(permissions)
        return AdminBranch.objects.create(admin=user, branch=branch, permissions=granted)

    @staticmethod
    def create_branch_admin(branch, **permissions):
        """Create a branch admin user linked to ``branch``"""
        user = TestDataFactory.create_user(role=User.ROLE_BRANCH_ADMIN)
        TestDataFactory.link_admin(user, branch, **permissions)
        return user

    @staticmethod
    def create_staff(branch, user=None, first_name=None, last_name=None, with_user=True):
        """Create a test carer, with a login unless ``with_user`` is False"""
        if user is None and with_user:
            user = TestDataFactory.create_user(role=User.ROLE_CARER)
        return Staff.objects.create(
            branch=branch,
            user=user,
            first_name=first_name or f'Carer{TestDataFactory.random_string(4)}',
            last_name=last_name or 'Test',
            email=user.email if user else '',
        )

    @staticmethod
    def create_client(branch, first_name=None, last_name=None, status='Active', user=None):
        """Create a test client"""
        return Client.objects.create(
            branch=branch,
            user=user,
            first_name=first_name or f'Client{TestDataFactory.random_string(4)}',
            last_name=last_name or 'Test',
            status=status,
            address='2 Care Road',
            postcode='AB1 2CD'
        )

    @staticmethod
    def create_service(title=None, double_handed=False):
        """Create a test service"""
        if not title:
            title = f'Service_{TestDataFactory.random_string(6)}'
        return Service.objects.create(title=title, double_handed=double_handed)

    @staticmethod
    def create_booking(client, staff=None, start=None, minutes=60, status=None, service=None):
        """Create a test booking; it starts tomorrow at 09:00 unless ``start`` is given"""
        if start is None:
            tomorrow = timezone.localdate() + timedelta(days=1)
            start = timezone.make_aware(timezone.datetime.combine(tomorrow, time(9, 0)))
        if status is None:
            status = Booking.STATUS_ASSIGNED if staff else Booking.STATUS_UNASSIGNED
        return Booking.objects.create(
            branch=client.branch,
            client=client,
            staff=staff,
            service=service,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            status=status
        )

    @staticmethod
    def create_care_plan(client, title=None, status='Draft', user=None):
        """Create a test care plan"""
        return CarePlan.objects.create(
            client=client,
            title=title or f'Plan_{TestDataFactory.random_string(6)}',
            status=status,
            created_by=user
        )

    @staticmethod
    def create_medication(care_plan, name=None, status='active'):
        """Create a test medication"""
        return Medication.objects.create(
            care_plan=care_plan,
            name=name or f'Med_{TestDataFactory.random_string(4)}',
            dosage='10mg',
            frequency='Twice daily',
            status=status
        )

    @staticmethod
    def create_course(branch, title=None, is_mandatory=True, valid_for_months=12):
        """Create a test training course"""
        return TrainingCourse.objects.create(
            branch=branch,
            title=title or f'Course_{TestDataFactory.random_string(6)}',
            is_mandatory=is_mandatory,
            valid_for_months=valid_for_months
        )

    @staticmethod
    def create_training_record(staff, course, status=TrainingRecord.STATUS_NOT_STARTED, expiry_date=None):
        """Create a test training record"""
        return TrainingRecord.objects.create(
            staff=staff,
            course=course,
            branch=staff.branch,
            status=status,
            expiry_date=expiry_date
        )

    @staticmethod
    def create_rate(branch, base_rate=None, client=None, charge_type='rate_per_minutes_pro_rata',
                    days_covered=None, time_from=time(0, 0), time_until=time(23, 59), **extra):
        """Create a test rate schedule covering every weekday and time by default"""
        if base_rate is None:
            base_rate = Decimal('20.00')
        return RateSchedule.objects.create(
            branch=branch,
            client=client,
            title=f'Rate_{TestDataFactory.random_string(6)}',
            charge_type=charge_type,
            base_rate=base_rate,
            days_covered=days_covered if days_covered is not None else list(ALL_DAYS),
            time_from=time_from,
            time_until=time_until,
            start_date=timezone.localdate() - timedelta(days=365),
            **extra
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
