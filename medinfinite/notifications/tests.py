"""
Test suite for the notifications module
Tests: Notification Listing, Read State, Expiry, Sending, Email Rendering
"""
from datetime import timedelta

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.notifications.emails import render_notification_email, send_html_email
from medinfinite.notifications.models import Notification
from medinfinite.notifications.services import notify_users, notify_branch_admins, send_notification_email


class NotifyServiceTests(TestCase):
    """Test the helpers other apps call"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.user = TestDataFactory.create_user()

    def test_notify_users(self):
        other = TestDataFactory.create_user()
        created = notify_users([self.user, other], 'Rota published', 'Next week is out', type='booking',
                               category='rota', data={'week': 12})
        self.assertEqual(len(created), 2)
        notification = Notification.objects.get(user=self.user)
        self.assertEqual(notification.category, 'rota')
        self.assertEqual(notification.data, {'week': 12})
        self.assertFalse(notification.is_read)
        self.assertEqual(len(mail.outbox), 0)

    def test_no_users(self):
        self.assertEqual(notify_users([], 'Nobody', 'Nothing'), [])

    def test_notify_branch_admins(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        super_admin = TestDataFactory.create_super_admin()
        TestDataFactory.create_branch_admin(TestDataFactory.create_branch())
        notify_branch_admins(self.branch, 'Heads up', 'Something happened')
        recipients = set(Notification.objects.values_list('user_id', flat=True))
        self.assertEqual(recipients, {admin.id, super_admin.id})
        self.assertTrue(all(n.branch_id == self.branch.id for n in Notification.objects.all()))

    def test_send_email(self):
        notify_users([self.user], 'Missed visit', 'The 09:00 visit was missed', type='booking',
                     priority='urgent', send_email=True)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Missed Booking Alert')
        self.assertEqual(mail.outbox[0].to, [self.user.email])
        self.assertIsNotNone(Notification.objects.get(user=self.user).email_sent_at)

    def test_email_failure_keeps_notification(self):
        self.user.email = ''
        self.user.save()
        created = notify_users([self.user], 'Hello', 'World', send_email=True)
        self.assertEqual(len(created), 1)
        self.assertEqual(len(mail.outbox), 0)
        self.assertIsNone(Notification.objects.get(user=self.user).email_sent_at)

    def test_send_notification_email_requires_address(self):
        self.user.email = ''
        self.user.save()
        notification = Notification.objects.create(user=self.user, title='Hi', message='There')
        with self.assertRaises(ValueError):
            send_notification_email(notification)


class EmailRenderingTests(TestCase):
    """Test notification email content"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def _render(self, **fields):
        values = {'user': self.user, 'title': 'Title', 'message': 'Message', 'type': 'system', 'priority': 'medium'}
        values.update(fields)
        return render_notification_email(Notification(**values), 'Sam')

    @override_settings(SITE_URL='https://care.example.com/')
    def test_rule_by_type_and_keyword(self):
        subject, html = self._render(type='booking', message='Booking for Jo is unassigned')
        self.assertEqual(subject, 'Unassigned Bookings Require Staff Allocation')
        self.assertIn('https://care.example.com/bookings', html)
        self.assertIn('Assign Staff', html)

        subject, _ = self._render(type='booking', message='Times changed')
        self.assertEqual(subject, 'Booking Update')

    def test_priority_badge(self):
        _, html = self._render(priority='critical')
        self.assertIn('#991b1b', html)
        self.assertIn('critical Priority', html)

    def test_content_is_escaped(self):
        subject, html = self._render(title='<b>Alert</b>', message='<script>x</script>')
        self.assertEqual(subject, 'System Alert')
        self.assertNotIn('<script>', html)
        self.assertIn('&lt;b&gt;Alert&lt;/b&gt;', html)
        self.assertIn('Hi Sam,', html)

    def test_send_html_email(self):
        sent = send_html_email('Report', '<p>Attached</p>', ['a@test.com', ''],
                               attachments=[('report.csv', 'a,b\n', 'text/csv')])
        self.assertEqual(sent, 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['a@test.com'])
        self.assertEqual(message.body, 'Attached')
        self.assertEqual(message.alternatives[0][1], 'text/html')
        self.assertEqual(message.attachments[0][0], 'report.csv')

    def test_send_html_email_requires_recipient(self):
        with self.assertRaises(ValueError):
            send_html_email('Report', '<p>x</p>', [''])


class NotificationViewTests(TestCase):
    """Test notification endpoints"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.user = TestDataFactory.create_staff(self.branch).user
        self.other = TestDataFactory.create_user()
        self.first = Notification.objects.create(user=self.user, title='One', message='First', type='booking',
                                                 priority='high')
        self.second = Notification.objects.create(user=self.user, title='Two', message='Second')
        Notification.objects.create(user=self.user, title='Old', message='Expired',
                                    expires_at=timezone.now() - timedelta(hours=1))
        self.foreign = Notification.objects.create(user=self.other, title='Theirs', message='Not mine')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list(self):
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual({n['title'] for n in response.data['results']}, {'One', 'Two'})

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_filters(self):
        self.assertEqual(self.client.get('/api/v1/notifications/?type=booking').data['count'], 1)
        self.assertEqual(self.client.get('/api/v1/notifications/?priority=medium').data['count'], 1)
        self.first.read_at = timezone.now()
        self.first.save()
        response = self.client.get('/api/v1/notifications/?unread=true')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.second.id)

    def test_mark_read(self):
        self.assertEqual(self.client.get('/api/v1/notifications/unread-count/').data['unread'], 2)
        response = self.client.post(f'/api/v1/notifications/{self.first.id}/read/')
        self.assertTrue(response.data['is_read'])
        self.assertEqual(self.client.get('/api/v1/notifications/unread-count/').data['unread'], 1)

    def test_mark_all_read(self):
        response = self.client.post('/api/v1/notifications/mark-all-read/')
        self.assertEqual(response.data['updated'], 3)
        self.assertEqual(self.client.get('/api/v1/notifications/unread-count/').data['unread'], 0)
        self.assertIsNone(Notification.objects.get(pk=self.foreign.pk).read_at)

    def test_other_users_notifications_hidden(self):
        response = self.client.get(f'/api/v1/notifications/{self.foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.delete(f'/api/v1/notifications/{self.foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete(self):
        response = self.client.delete(f'/api/v1/notifications/{self.first.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.filter(pk=self.first.pk).exists())

    def test_send_requires_admin(self):
        response = self.client.post('/api/v1/notifications/send/', {
            'user_ids': [self.other.id], 'title': 'Hi', 'message': 'There',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_send(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/notifications/send/', {
            'user_ids': [self.user.id, self.other.id],
            'title': 'Training day',
            'message': 'Moving and handling refresher on Friday',
            'type': 'training',
            'branch': self.branch.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 2)
        self.assertEqual(len(mail.outbox), 2)
        self.assertEqual(mail.outbox[0].subject, 'Training Alert')

    def test_send_validation(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/notifications/send/', {
            'user_ids': [], 'title': 'Hi', 'message': 'There',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.other.is_active = False
        self.other.save()
        response = self.client.post('/api/v1/notifications/send/', {
            'user_ids': [self.other.id], 'title': 'Hi', 'message': 'There', 'send_email': False,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        foreign_branch = TestDataFactory.create_branch()
        response = self.client.post('/api/v1/notifications/send/', {
            'user_ids': [self.user.id], 'title': 'Hi', 'message': 'There', 'branch': foreign_branch.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
