"""
Test suite for the messaging module
Tests: Thread Creation, Participants, Unread Counts, Admin-only Content, Archiving
"""
from django.test import TestCase
from rest_framework import status

from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.messaging.models import MessageThread, Message
from medinfinite.notifications.models import Notification


class MessagingTests(TestCase):
    """Test threads and messages"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.carer = TestDataFactory.create_staff(self.branch).user
        self.outsider = TestDataFactory.create_staff(self.branch).user
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _start_thread(self, **extra):
        payload = {
            'subject': 'Rota change',
            'branch': self.branch.id,
            'participants': [self.carer.id],
            'content': 'Can you cover Friday?',
        }
        payload.update(extra)
        return self.client.post('/api/v1/messages/threads/', payload, format='json')

    def _unread(self, user):
        self.client.authenticate_user(user)
        return self.client.get('/api/v1/messages/unread-count/').data['unread_count']

    def test_start_thread(self):
        response = self._start_thread()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual({p['user'] for p in response.data['participants']}, {self.admin.id, self.carer.id})
        self.assertEqual(response.data['last_message']['content'], 'Can you cover Friday?')
        self.assertEqual(response.data['unread_count'], 0)
        self.assertTrue(Notification.objects.filter(user=self.carer, category='new_message').exists())
        self.assertFalse(Notification.objects.filter(user=self.admin).exists())

    def test_participants_required(self):
        response = self._start_thread(participants=[])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unread_counts_and_mark_read(self):
        thread_id = self._start_thread().data['id']
        self.assertEqual(self._unread(self.carer), 1)
        self.client.post(f'/api/v1/messages/threads/{thread_id}/read/')
        self.assertEqual(self._unread(self.carer), 0)
        self.assertEqual(self._unread(self.admin), 0)

    def test_reply_marks_sender_read(self):
        thread_id = self._start_thread().data['id']
        self.client.authenticate_user(self.carer)
        response = self.client.post(f'/api/v1/messages/threads/{thread_id}/', {'content': 'Yes'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sender'], self.carer.id)
        self.assertEqual(self._unread(self.carer), 0)
        self.assertEqual(self._unread(self.admin), 1)

    def test_empty_message(self):
        thread_id = self._start_thread().data['id']
        response = self.client.post(f'/api/v1/messages/threads/{thread_id}/', {'content': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_participant(self):
        thread_id = self._start_thread().data['id']
        self.client.authenticate_user(self.outsider)
        response = self.client.get(f'/api/v1/messages/threads/{thread_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/messages/threads/')
        self.assertEqual(response.data['count'], 0)

    def test_admin_eyes_only_messages(self):
        thread_id = self._start_thread().data['id']
        self.client.post(f'/api/v1/messages/threads/{thread_id}/read/')
        self.client.authenticate_user(self.carer)
        self.client.post(f'/api/v1/messages/threads/{thread_id}/read/')

        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/messages/threads/{thread_id}/', {
            'content': 'Check their DBS first',
            'admin_eyes_only': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(Notification.objects.filter(user=self.carer, data__message_id=response.data['id']).exists())

        self.assertEqual(self._unread(self.carer), 0)
        response = self.client.get(f'/api/v1/messages/threads/{thread_id}/')
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/messages/threads/{thread_id}/')
        self.assertEqual(response.data['count'], 2)

    def test_carer_cannot_post_admin_only(self):
        thread_id = self._start_thread().data['id']
        self.client.authenticate_user(self.carer)
        response = self.client.post(f'/api/v1/messages/threads/{thread_id}/', {
            'content': 'Secret',
            'admin_eyes_only': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_only_thread(self):
        thread_id = self._start_thread(admin_only=True).data['id']
        self.client.authenticate_user(self.carer)
        response = self.client.get(f'/api/v1/messages/threads/{thread_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self._start_thread(admin_only=True, participants=[self.admin.id])
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_foreign_branch(self):
        self.client.authenticate_user(self.carer)
        response = self._start_thread(branch=TestDataFactory.create_branch().id, participants=[self.admin.id])
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_archive(self):
        thread_id = self._start_thread().data['id']
        response = self.client.post(f'/api/v1/messages/threads/{thread_id}/archive/', {}, format='json')
        self.assertTrue(response.data['is_archived'])
        self.assertEqual(self.client.get('/api/v1/messages/threads/').data['count'], 0)
        self.assertEqual(self.client.get('/api/v1/messages/threads/?archived=true').data['count'], 1)
        response = self.client.post(f'/api/v1/messages/threads/{thread_id}/', {'content': 'Hello'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.client.post(f'/api/v1/messages/threads/{thread_id}/archive/', {'archived': False}, format='json')
        self.assertFalse(MessageThread.objects.get(pk=thread_id).is_archived)
        self.assertEqual(Message.objects.filter(thread_id=thread_id).count(), 1)
