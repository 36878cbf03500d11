"""
Test suite for the bookings module
Tests: Overlap Validation, Recurrence, Late/Missed Alerts, Booking CRUD, Assign/Cancel, Schedules
"""
from datetime import date, datetime, time, timedelta
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from medinfinite.bookings.alerts import process_late_bookings, punctuality_score
from medinfinite.bookings.models import Booking, BookingAlertSettings
from medinfinite.bookings.recurrence import dates_for_weekday, generate_recurring_bookings, selected_weekdays
from medinfinite.bookings.validation import BookingConflictError, validate_booking_slot
from medinfinite.core.models import User
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.notifications.models import Notification


def at(day, hour, minute=0):
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


class OverlapValidationTests(TestCase):
    """Test carer double-booking detection"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.client_record = TestDataFactory.create_client(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.day = timezone.localdate() + timedelta(days=2)
        self.booking = TestDataFactory.create_booking(self.client_record, self.staff, start=at(self.day, 9))

    def test_overlap_raises(self):
        with self.assertRaises(BookingConflictError) as ctx:
            validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 9, 30), at(self.day, 10, 30))
        self.assertEqual(ctx.exception.conflicts[0]['id'], self.booking.id)
        self.assertEqual(ctx.exception.conflicts[0]['start_time'], '09:00')

    def test_back_to_back_allowed(self):
        validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 10), at(self.day, 11))
        validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 8), at(self.day, 9))

    def test_cancelled_booking_never_conflicts(self):
        self.booking.status = Booking.STATUS_CANCELLED
        self.booking.save()
        validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 9), at(self.day, 10))

    def test_editing_booking_excludes_itself(self):
        validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 9, 15), at(self.day, 10, 15),
                              exclude_id=self.booking.id)

    def test_suggests_free_carers(self):
        free = TestDataFactory.create_staff(self.branch)
        with self.assertRaises(BookingConflictError) as ctx:
            validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 9), at(self.day, 10), suggest_carers=True)
        self.assertEqual([carer['id'] for carer in ctx.exception.available_carers], [free.id])

    def test_end_before_start(self):
        with self.assertRaises(ValueError):
            validate_booking_slot(self.branch.id, self.staff.id, at(self.day, 10), at(self.day, 9))


class RecurrenceTests(TestCase):
    """Test recurring booking expansion"""

    def test_selected_weekdays(self):
        self.assertEqual(selected_weekdays({'mon': True, 'tue': False, 'Friday': True}), [0, 4])
        self.assertEqual(selected_weekdays(['Tuesday', 6, 'sun']), [1, 6])
        self.assertEqual(selected_weekdays(None), [])

    def test_dates_for_weekday(self):
        mondays = dates_for_weekday(date(2024, 1, 1), date(2024, 1, 31), 0)
        self.assertEqual([day.day for day in mondays], [1, 8, 15, 22, 29])
        fortnightly = dates_for_weekday(date(2024, 1, 1), date(2024, 1, 31), 0, every_weeks=2)
        self.assertEqual([day.day for day in fortnightly], [1, 15, 29])

    def test_generate_for_two_weekdays(self):
        result = generate_recurring_bookings(date(2024, 1, 1), date(2024, 1, 31), [
            {'start_time': '09:00', 'end_time': '10:00', 'days': ['mon', 'wed']},
        ])
        self.assertTrue(result['success'])
        self.assertEqual(result['summary']['total_bookings'], 10)
        self.assertEqual(result['summary']['selected_days'], [0, 2])
        starts = [payload['start_time'] for payload in result['bookings']]
        self.assertEqual(starts, sorted(starts))

    def test_invalid_schedule_times(self):
        result = generate_recurring_bookings(date(2024, 1, 1), date(2024, 1, 7), [
            {'start_time': '25:00', 'end_time': '10:00', 'days': ['mon']},
            {'start_time': '11:00', 'end_time': '10:00', 'days': ['mon']},
        ])
        self.assertFalse(result['success'])
        self.assertEqual(result['errors'], [
            'Schedule 1: Invalid time format',
            'Schedule 2: End time must be after start time',
        ])

    def test_no_days_defaults_to_every_day(self):
        result = generate_recurring_bookings(date(2024, 1, 1), date(2024, 1, 7), [
            {'start_time': '09:00', 'end_time': '10:00'},
        ])
        self.assertEqual(result['summary']['total_bookings'], 7)
        self.assertEqual(len(result['warnings']), 1)


class LateBookingAlertTests(TestCase):
    """Test late start and missed booking processing"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.super_admin = TestDataFactory.create_super_admin()
        self.client_record = TestDataFactory.create_client(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.now = timezone.now()

    def test_punctuality_score(self):
        self.assertEqual(punctuality_score(10, 1), 90)
        self.assertEqual(punctuality_score(3, 1), 67)
        self.assertEqual(punctuality_score(0, 0), 100)
        self.assertEqual(punctuality_score(1, 3), 0)

    def test_late_and_missed_alerts_raised_once(self):
        booking = TestDataFactory.create_booking(self.client_record, self.staff, start=self.now - timedelta(minutes=10))
        result = process_late_bookings(self.now)
        self.assertEqual(result['late_alerts'], 1)
        self.assertEqual(result['missed_alerts'], 1)
        self.assertEqual(Notification.objects.filter(category='late_start').count(), 2)
        self.assertEqual(Notification.objects.filter(category='missed_booking', priority='critical').count(), 2)

        booking.refresh_from_db()
        self.assertTrue(booking.is_late_start)
        self.assertTrue(booking.is_missed)
        self.assertEqual(booking.late_start_minutes, 10)
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.missed_booking_count, 1)
        self.assertEqual(self.staff.punctuality_score, 0)

        result = process_late_bookings(self.now + timedelta(minutes=5))
        self.assertEqual(result['processed'], 0)
        self.assertEqual(Notification.objects.count(), 4)

    def test_branch_thresholds(self):
        BookingAlertSettings.objects.create(branch=self.branch, first_alert_delay_minutes=5,
                                            missed_booking_threshold_minutes=30)
        TestDataFactory.create_booking(self.client_record, self.staff, start=self.now - timedelta(minutes=10))
        result = process_late_bookings(self.now)
        self.assertEqual(result['late_alerts'], 1)
        self.assertEqual(result['missed_alerts'], 0)

    def test_unassigned_and_cancelled_are_ignored(self):
        TestDataFactory.create_booking(self.client_record, start=self.now - timedelta(minutes=10))
        TestDataFactory.create_booking(self.client_record, self.staff, start=self.now - timedelta(minutes=10),
                                       status=Booking.STATUS_CANCELLED)
        result = process_late_bookings(self.now)
        self.assertEqual(result['processed'], 0)

    def test_disabled_alerts(self):
        BookingAlertSettings.objects.create(branch=self.branch, enable_late_start_alerts=False,
                                            enable_missed_booking_alerts=False)
        TestDataFactory.create_booking(self.client_record, self.staff, start=self.now - timedelta(minutes=10))
        result = process_late_bookings(self.now)
        self.assertEqual(result['processed'], 1)
        self.assertFalse(Notification.objects.exists())

    def test_command_dry_run(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=timezone.now() - timedelta(minutes=10))
        out = StringIO()
        call_command('process_late_bookings', '--dry-run', stdout=out)
        self.assertIn('1 late start alert(s)', out.getvalue())
        self.assertFalse(Notification.objects.exists())


class BookingViewTests(TestCase):
    """Test booking endpoints"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client_record = TestDataFactory.create_client(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.day = timezone.localdate() + timedelta(days=3)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _payload(self, start_hour, end_hour, staff=None):
        return {
            'client': self.client_record.id,
            'staff': staff.id if staff else None,
            'start_time': at(self.day, start_hour).isoformat(),
            'end_time': at(self.day, end_hour).isoformat(),
        }

    def test_create_booking(self):
        response = self.client.post('/api/v1/bookings/', self._payload(9, 10, self.staff), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Booking.STATUS_ASSIGNED)
        self.assertEqual(response.data['branch'], self.branch.id)
        self.assertEqual(response.data['duration_minutes'], 60)

    def test_create_unassigned_booking(self):
        response = self.client.post('/api/v1/bookings/', self._payload(9, 10), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Booking.STATUS_UNASSIGNED)

    def test_overlap_returns_conflict(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=at(self.day, 9))
        free = TestDataFactory.create_staff(self.branch)
        payload = self._payload(9, 11, self.staff)
        payload['suggest_carers'] = True
        response = self.client.post('/api/v1/bookings/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(len(response.data['conflicting_bookings']), 1)
        self.assertEqual([carer['id'] for carer in response.data['available_carers']], [free.id])

    def test_end_before_start(self):
        response = self.client.post('/api/v1/bookings/', self._payload(10, 9, self.staff), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_carer_cannot_create_booking(self):
        self.client.authenticate_user(self.staff.user)
        response = self.client.post('/api/v1/bookings/', self._payload(9, 10), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_bookings_permission_required(self):
        self.client.authenticate_user(TestDataFactory.create_branch_admin(self.branch, bookings=False))
        response = self.client.post('/api/v1/bookings/', self._payload(9, 10), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=at(self.day, 9))
        TestDataFactory.create_booking(self.client_record, start=at(self.day, 12))
        TestDataFactory.create_booking(TestDataFactory.create_client(TestDataFactory.create_branch()),
                                       start=at(self.day, 9))
        response = self.client.get('/api/v1/bookings/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/bookings/?unassigned=true')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/bookings/?status=assigned,confirmed')
        self.assertEqual(response.data['count'], 1)

    def test_client_user_sees_own_bookings(self):
        user = TestDataFactory.create_user(role=User.ROLE_CLIENT)
        own_client = TestDataFactory.create_client(self.branch, user=user)
        TestDataFactory.create_booking(own_client, start=at(self.day, 9))
        TestDataFactory.create_booking(self.client_record, start=at(self.day, 9))
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/bookings/')
        self.assertEqual(response.data['count'], 1)

    def test_update_conflict(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=at(self.day, 9))
        other = TestDataFactory.create_booking(self.client_record, start=at(self.day, 9))
        response = self.client.patch(f'/api/v1/bookings/{other.id}/', {'staff': self.staff.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_cannot_move_booking_to_foreign_client(self):
        booking = TestDataFactory.create_booking(self.client_record, start=at(self.day, 9))
        foreign = TestDataFactory.create_client(TestDataFactory.create_branch())
        response = self.client.patch(f'/api/v1/bookings/{booking.id}/', {'client': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('client', response.data)
        booking.refresh_from_db()
        self.assertEqual(booking.client_id, self.client_record.id)

    def test_cannot_cancel_through_update(self):
        booking = TestDataFactory.create_booking(self.client_record, self.staff)
        response = self.client.patch(f'/api/v1/bookings/{booking.id}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_booking(self):
        booking = TestDataFactory.create_booking(self.client_record, self.staff)
        response = self.client.post(f'/api/v1/bookings/{booking.id}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/bookings/{booking.id}/cancel/', {'reason': 'Client in hospital'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Booking.STATUS_CANCELLED)
        self.assertIsNotNone(response.data['cancelled_at'])
        response = self.client.post(f'/api/v1/bookings/{booking.id}/cancel/', {'reason': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assign_and_unassign_carer(self):
        booking = TestDataFactory.create_booking(self.client_record)
        response = self.client.post(f'/api/v1/bookings/{booking.id}/assign/', {'staff': self.staff.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Booking.STATUS_ASSIGNED)
        response = self.client.post(f'/api/v1/bookings/{booking.id}/assign/', {'staff': None}, format='json')
        self.assertEqual(response.data['status'], Booking.STATUS_UNASSIGNED)

    def test_assign_carer_from_other_branch(self):
        booking = TestDataFactory.create_booking(self.client_record)
        foreign = TestDataFactory.create_staff(TestDataFactory.create_branch())
        response = self.client.post(f'/api/v1/bookings/{booking.id}/assign/', {'staff': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_create_is_atomic(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=at(self.day, 14))
        response = self.client.post('/api/v1/bookings/bulk/', {'bookings': [
            self._payload(9, 10, self.staff),
            self._payload(14, 15, self.staff),
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Booking.objects.count(), 1)

    def test_availability(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=at(self.day, 9))
        free = TestDataFactory.create_staff(self.branch)
        response = self.client.get('/api/v1/bookings/availability/', {
            'branch': self.branch.id,
            'staff': self.staff.id,
            'start_time': at(self.day, 9, 30).isoformat(),
            'end_time': at(self.day, 10, 30).isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_valid'])
        self.assertEqual([carer['id'] for carer in response.data['available_carers']], [free.id])


class RecurringBookingViewTests(TestCase):
    """Test recurring booking preview and creation"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.client_record = TestDataFactory.create_client(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        # 2030-01-07 is a Monday
        self.payload = {
            'client': self.client_record.id,
            'staff': self.staff.id,
            'from_date': '2030-01-07',
            'until_date': '2030-01-20',
            'schedules': [{'start_time': '09:00', 'end_time': '10:00', 'days': ['mon', 'fri']}],
        }

    def test_preview(self):
        response = self.client.post('/api/v1/bookings/recurring/', {**self.payload, 'preview': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_bookings'], 4)
        self.assertEqual(response.data['dates'], ['2030-01-07', '2030-01-11', '2030-01-14', '2030-01-18'])
        self.assertEqual(Booking.objects.count(), 0)

    def test_create(self):
        response = self.client.post('/api/v1/bookings/recurring/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 4)
        self.assertEqual(Booking.objects.filter(staff=self.staff, status=Booking.STATUS_ASSIGNED).count(), 4)

    def test_conflict_creates_nothing(self):
        TestDataFactory.create_booking(self.client_record, self.staff, start=at(date(2030, 1, 14), 9, 30))
        response = self.client.post('/api/v1/bookings/recurring/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Booking.objects.count(), 1)

    def test_range_longer_than_a_year(self):
        response = self.client.post('/api/v1/bookings/recurring/', {**self.payload, 'until_date': '2031-06-01'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_carer_from_other_branch(self):
        foreign = TestDataFactory.create_staff(TestDataFactory.create_branch())
        response = self.client.post('/api/v1/bookings/recurring/', {**self.payload, 'staff': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class BookingSupportViewTests(TestCase):
    """Test services, alert settings and carer schedule emails"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.super_admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_only_super_admin_manages_services(self):
        response = self.client.post('/api/v1/services/', {'title': 'Personal Care'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.super_admin)
        response = self.client.post('/api/v1/services/', {'title': 'Personal Care'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_service_in_use_is_deactivated(self):
        service = TestDataFactory.create_service()
        TestDataFactory.create_booking(TestDataFactory.create_client(self.branch), service=service)
        self.client.authenticate_user(self.super_admin)
        response = self.client.delete(f'/api/v1/services/{service.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        service.refresh_from_db()
        self.assertFalse(service.is_active)

    def test_alert_settings_default_then_saved(self):
        response = self.client.get(f'/api/v1/bookings/alert-settings/{self.branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['missed_booking_threshold_minutes'], 3)
        response = self.client.put(f'/api/v1/bookings/alert-settings/{self.branch.id}/', {
            'first_alert_delay_minutes': 5,
            'missed_booking_threshold_minutes': 15,
            'enable_late_start_alerts': True,
            'enable_missed_booking_alerts': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(BookingAlertSettings.for_branch(self.branch.id).missed_booking_threshold_minutes, 15)

    def test_process_late_requires_super_admin(self):
        response = self.client.post('/api/v1/bookings/process-late/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.super_admin)
        response = self.client.post('/api/v1/bookings/process-late/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])

    def test_send_carer_schedule(self):
        staff = TestDataFactory.create_staff(self.branch)
        TestDataFactory.create_booking(TestDataFactory.create_client(self.branch), staff)
        tomorrow = timezone.localdate() + timedelta(days=1)
        response = self.client.post('/api/v1/bookings/send-schedule/', {
            'staff': staff.id,
            'start_date': tomorrow.isoformat(),
            'end_date': (tomorrow + timedelta(days=6)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['bookings'], 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [staff.email])
        self.assertTrue(mail.outbox[0].subject.startswith('Your Booking Schedule'))
