"""
Test suite for the visits module
Tests: NEWS2 Scoring, AI Recommendations, Signatures, Body Maps, Visit Start/Complete, Event Logs
"""
import base64
import io
import shutil
import tempfile
from unittest import mock

from django.test import TestCase, override_settings
from PIL import Image
from rest_framework import status

from medinfinite.bookings.models import Booking
from medinfinite.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from medinfinite.notifications.models import Notification
from medinfinite.visits.ai import fallback_recommendations, generate_recommendations
from medinfinite.visits.body_map import render_body_map, validate_points
from medinfinite.visits.models import News2Observation, VisitRecord, EventLog
from medinfinite.visits.news2 import analyze_trend, calculate_news2, temperature_score
from medinfinite.visits.signature import MAX_CANVAS_SIZE, SaveDebouncer, SignaturePad, signature_from_payload

MEDIA_ROOT = tempfile.mkdtemp()
PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
STROKES = {'strokes': [[[10, 10], [50, 40], [90, 20]]], 'width': 200, 'height': 80}


class News2ScoringTests(TestCase):
    """Test NEWS2 parameter bands and risk levels"""

    def test_normal_observations(self):
        result = calculate_news2(respiratory_rate=16, oxygen_saturation=97, systolic_bp=120,
                                 pulse_rate=70, consciousness_level='A', temperature=37.0)
        self.assertEqual(result['total_score'], 0)
        self.assertEqual(result['risk_level'], 'low')

    def test_single_parameter_of_three_is_medium(self):
        result = calculate_news2(respiratory_rate=8, oxygen_saturation=97, systolic_bp=120, pulse_rate=70)
        self.assertEqual(result['respiratory_rate_score'], 3)
        self.assertEqual(result['total_score'], 3)
        self.assertEqual(result['risk_level'], 'medium')

    def test_high_risk(self):
        result = calculate_news2(respiratory_rate=25, oxygen_saturation=91, systolic_bp=120, pulse_rate=115)
        self.assertEqual(result['total_score'], 8)
        self.assertEqual(result['risk_level'], 'high')

    def test_supplemental_oxygen_and_consciousness(self):
        result = calculate_news2(supplemental_oxygen=True, consciousness_level='v')
        self.assertEqual(result['supplemental_oxygen_score'], 2)
        self.assertEqual(result['consciousness_level_score'], 3)
        self.assertEqual(result['total_score'], 5)

    def test_temperature_bands(self):
        self.assertEqual(temperature_score(35.0), 3)
        self.assertEqual(temperature_score('35.5'), 1)
        self.assertEqual(temperature_score(38.0), 0)
        self.assertEqual(temperature_score(38.1), 1)
        self.assertEqual(temperature_score(39.1), 2)

    def test_trend(self):
        self.assertEqual(analyze_trend(8, [5]), 'Deteriorating (score increased)')
        self.assertEqual(analyze_trend(2, [5]), 'Improving (score decreased)')
        self.assertEqual(analyze_trend(5, [4, 0]), 'Stable')
        self.assertEqual(analyze_trend(5, []), 'No previous data')

    def test_model_scores_on_save(self):
        client = TestDataFactory.create_client(TestDataFactory.create_branch())
        observation = News2Observation.objects.create(client=client, respiratory_rate=22, temperature='38.5')
        self.assertEqual(observation.respiratory_rate_score, 2)
        self.assertEqual(observation.temperature_score, 1)
        self.assertEqual(observation.total_score, 3)


class RecommendationTests(TestCase):
    """Test Gemini recommendations and the static fallback"""

    def setUp(self):
        self.client_record = TestDataFactory.create_client(TestDataFactory.create_branch())
        self.observation = News2Observation.objects.create(client=self.client_record, respiratory_rate=25,
                                                           oxygen_saturation=91, pulse_rate=115)

    def test_fallback_by_score(self):
        self.assertEqual(fallback_recommendations(8)['model_used'], 'fallback-high-risk')
        self.assertEqual(fallback_recommendations(5)['model_used'], 'fallback-medium-risk')
        self.assertEqual(fallback_recommendations(1)['model_used'], 'fallback-low-risk')

    @override_settings(GEMINI_API_KEY='')
    def test_missing_key_uses_fallback(self):
        result = generate_recommendations(self.observation)
        self.assertEqual(result['model_used'], 'fallback-high-risk')
        self.assertTrue(result['immediate_actions'])

    @override_settings(GEMINI_API_KEY='test-key', GEMINI_MODEL='gemini-test')
    @mock.patch('medinfinite.visits.ai.requests.post')
    def test_function_call_response(self, post):
        post.return_value.status_code = 200
        post.return_value.json.return_value = {'candidates': [{'content': {'parts': [{'functionCall': {
            'name': 'provide_news2_recommendations',
            'args': {'immediate_actions': ['Call GP'], 'clinical_reasoning': 'Raised score'},
        }}]}}]}
        result = generate_recommendations(self.observation)
        self.assertEqual(result['immediate_actions'], ['Call GP'])
        self.assertEqual(result['model_used'], 'gemini-test')
        self.assertEqual(post.call_args.kwargs['headers']['x-goog-api-key'], 'test-key')

    @override_settings(GEMINI_API_KEY='test-key')
    @mock.patch('medinfinite.visits.ai.requests.post')
    def test_api_error_uses_fallback(self, post):
        post.return_value.status_code = 500
        result = generate_recommendations(self.observation)
        self.assertEqual(result['model_used'], 'fallback-high-risk')


class SignatureTests(TestCase):
    """Test stroke capture, PNG export and save debouncing"""

    def test_strokes_render_png(self):
        pad = SignaturePad(100, 50)
        pad.begin_stroke(5, 5)
        pad.add_point(500, 20)
        pad.end_stroke()
        self.assertEqual(pad.strokes[0][1], (99, 20))
        self.assertTrue(pad.to_png().startswith(PNG_SIGNATURE))

    def test_empty_signature(self):
        with self.assertRaises(ValueError):
            SignaturePad().to_png()
        with self.assertRaises(ValueError):
            signature_from_payload({'strokes': []})
        with self.assertRaises(ValueError):
            signature_from_payload('')

    def test_payload_forms(self):
        data_url = signature_from_payload(STROKES)
        self.assertTrue(data_url.startswith('data:image/png;base64,'))
        self.assertEqual(signature_from_payload(data_url), data_url)
        with self.assertRaises(ValueError):
            signature_from_payload('data:image/png;base64,not base64!')

    def test_malformed_strokes(self):
        for strokes in ([5], 'abc', [[[1, 2, 3]]], [[['x', 'y']]], [[None]]):
            with self.assertRaises(ValueError):
                signature_from_payload({'strokes': strokes})
        with self.assertRaises(ValueError):
            signature_from_payload({'strokes': STROKES['strokes'], 'width': 'wide'})

    def test_canvas_size_clamped(self):
        pad = SignaturePad(10 ** 9, -5)
        self.assertEqual((pad.width, pad.height), (MAX_CANVAS_SIZE, 1))
        data_url = signature_from_payload({'strokes': STROKES['strokes'], 'width': 10 ** 9, 'height': 10 ** 9})
        image = Image.open(io.BytesIO(base64.b64decode(data_url.split(';base64,', 1)[1])))
        self.assertEqual(image.size, (MAX_CANVAS_SIZE, MAX_CANVAS_SIZE))

    def test_debouncer(self):
        clock = mock.Mock(side_effect=[0.0, 10.0, 10.0, 45.0])
        save = mock.Mock()
        debouncer = SaveDebouncer(save, interval=30, clock=clock)
        self.assertTrue(debouncer.request_save())
        self.assertFalse(debouncer.request_save())
        self.assertTrue(debouncer.request_save(force=True))
        self.assertTrue(debouncer.request_save())
        self.assertEqual(save.call_count, 3)


class BodyMapTests(TestCase):
    """Test body map point validation and rendering"""

    def test_validate_points(self):
        points = validate_points([{'x': '10.126', 'y': 20}, {'x': 50, 'y': 50, 'side': 'back', 'letter': 'Z'}])
        self.assertEqual(points[0]['x'], 10.13)
        self.assertEqual(points[0]['letter'], 'A')
        self.assertEqual(points[0]['side'], 'front')
        self.assertEqual(points[1]['letter'], 'Z')
        self.assertEqual(validate_points([{'x': 1, 'y': 1, 'color': 'navy'}])[0]['color'], 'navy')
        self.assertEqual(validate_points(None), [])

    def test_invalid_points(self):
        for points in ('a string', [{'x': 10}], [{'x': 150, 'y': 10}], [{'x': 1, 'y': 1, 'side': 'top'}],
                       [{'x': 1, 'y': 1, 'color': 'notacolor'}], [{'x': 1, 'y': 1, 'color': 42}]):
            with self.assertRaises(ValueError):
                validate_points(points)

    def test_render(self):
        png = render_body_map([{'x': 50, 'y': 30}], side='front', width=150, height=300)
        self.assertTrue(png.startswith(PNG_SIGNATURE))
        with self.assertRaises(ValueError):
            render_body_map([], side='left')


class VisitViewTests(TestCase):
    """Test starting, updating and completing visits"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.staff = TestDataFactory.create_staff(self.branch)
        self.client_record = TestDataFactory.create_client(self.branch)
        self.booking = TestDataFactory.create_booking(self.client_record, self.staff)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff.user)

    def _start(self, tasks=None):
        return self.client.post(f'/api/v1/visits/start/{self.booking.id}/', {'tasks': tasks or []}, format='json')

    def test_start_visit(self):
        response = self._start([{'name': 'Medication', 'required': True}, {'name': 'Tidy kitchen'}])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], VisitRecord.STATUS_IN_PROGRESS)
        self.assertEqual(response.data['completion_percentage'], 0)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.STATUS_IN_PROGRESS)

    def test_start_twice_returns_running_visit(self):
        first = self._start()
        second = self._start()
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data['id'], first.data['id'])
        self.assertEqual(VisitRecord.objects.count(), 1)

    def test_other_carer_cannot_start(self):
        other = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(other.user)
        self.assertEqual(self._start().status_code, status.HTTP_403_FORBIDDEN)

    def test_unassigned_booking_cannot_start(self):
        admin = TestDataFactory.create_branch_admin(self.branch)
        booking = TestDataFactory.create_booking(self.client_record)
        self.client.authenticate_user(admin)
        response = self.client.post(f'/api/v1/visits/start/{booking.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_tasks_recalculates_completion(self):
        visit_id = self._start([{'name': 'Medication'}, {'name': 'Lunch'}]).data['id']
        response = self.client.patch(f'/api/v1/visits/{visit_id}/', {'tasks': [
            {'name': 'Medication', 'completed': True},
            {'name': 'Lunch'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['completion_percentage'], 50)

    def test_complete_requires_required_tasks(self):
        visit_id = self._start([{'name': 'Medication', 'required': True}]).data['id']
        response = self.client.post(f'/api/v1/visits/{visit_id}/complete/', {'client_signature': STROKES}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['outstanding_tasks'], ['Medication'])

    def test_complete_requires_signature(self):
        visit_id = self._start().data['id']
        response = self.client.post(f'/api/v1/visits/{visit_id}/complete/', {'client_signature': {'strokes': []}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_with_malformed_signature(self):
        visit_id = self._start().data['id']
        response = self.client.post(f'/api/v1/visits/{visit_id}/complete/', {'client_signature': {'strokes': [5]}},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Signature strokes are malformed')
        self.assertEqual(VisitRecord.objects.get(pk=visit_id).status, VisitRecord.STATUS_IN_PROGRESS)

    def test_complete_visit(self):
        visit_id = self._start().data['id']
        response = self.client.post(f'/api/v1/visits/{visit_id}/complete/', {
            'client_signature': STROKES,
            'visit_summary': 'All well',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], VisitRecord.STATUS_COMPLETED)
        self.assertEqual(response.data['completion_percentage'], 100)
        self.assertTrue(response.data['has_client_signature'])
        self.assertIsNotNone(response.data['actual_duration_minutes'])
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.STATUS_COMPLETED)
        visit = VisitRecord.objects.get(pk=visit_id)
        encoded = visit.client_signature.split(';base64,', 1)[1]
        self.assertTrue(base64.b64decode(encoded).startswith(PNG_SIGNATURE))

    def test_carer_lists_own_visits(self):
        self._start()
        other = TestDataFactory.create_staff(self.branch)
        self.client.authenticate_user(other.user)
        response = self.client.get('/api/v1/visits/')
        self.assertEqual(response.data['count'], 0)


class News2ViewTests(TestCase):
    """Test NEWS2 recording, history and recommendations"""

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.client_record = TestDataFactory.create_client(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff.user)

    def test_record_observation(self):
        response = self.client.post('/api/v1/news2/', {
            'client': self.client_record.id,
            'respiratory_rate': 16,
            'oxygen_saturation': 97,
            'pulse_rate': 70,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['risk_level'], 'low')
        self.assertEqual(response.data['recorded_by'], self.staff.user_id)
        self.assertFalse(Notification.objects.exists())

    def test_high_score_alerts_admins(self):
        response = self.client.post('/api/v1/news2/', {
            'client': self.client_record.id,
            'respiratory_rate': 25,
            'oxygen_saturation': 91,
            'pulse_rate': 115,
        }, format='json')
        self.assertEqual(response.data['risk_level'], 'high')
        alert = Notification.objects.get(category='news2_high_risk')
        self.assertEqual(alert.user, self.admin)
        self.assertEqual(alert.priority, 'critical')

    def test_requires_a_reading(self):
        response = self.client.post('/api/v1/news2/', {'client': self.client_record.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_saturation_above_hundred(self):
        response = self.client.post('/api/v1/news2/', {'client': self.client_record.id, 'oxygen_saturation': 101}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_foreign_client(self):
        foreign = TestDataFactory.create_client(TestDataFactory.create_branch())
        response = self.client.post('/api/v1/news2/', {'client': foreign.id, 'pulse_rate': 70}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_history(self):
        News2Observation.objects.create(client=self.client_record, pulse_rate=70)
        News2Observation.objects.create(client=self.client_record, pulse_rate=120)
        response = self.client.get(f'/api/v1/news2/client/{self.client_record.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    @override_settings(GEMINI_API_KEY='')
    def test_recommendations_are_cached(self):
        observation = News2Observation.objects.create(client=self.client_record, pulse_rate=70)
        response = self.client.post(f'/api/v1/news2/{observation.id}/recommendations/', {}, format='json')
        self.assertFalse(response.data['cached'])
        self.assertEqual(response.data['recommendations']['model_used'], 'fallback-low-risk')
        response = self.client.post(f'/api/v1/news2/{observation.id}/recommendations/', {}, format='json')
        self.assertTrue(response.data['cached'])


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class EventLogViewTests(TestCase):
    """Test event logging, body map images and exports"""

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        self.branch = TestDataFactory.create_branch()
        self.admin = TestDataFactory.create_branch_admin(self.branch)
        self.staff = TestDataFactory.create_staff(self.branch)
        self.client_record = TestDataFactory.create_client(self.branch)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff.user)

    def _create(self, **extra):
        payload = {'client': self.client_record.id, 'title': 'Fall in bathroom', 'event_type': 'accident'}
        payload.update(extra)
        return self.client.post('/api/v1/events/', payload, format='json')

    def test_create_event_with_body_map(self):
        response = self._create(body_map_points=[{'x': 40, 'y': 60}, {'x': 55, 'y': 20, 'side': 'back'}])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        event = EventLog.objects.get(pk=response.data['id'])
        self.assertEqual(event.branch, self.branch)
        self.assertTrue(event.body_map_front_image)
        self.assertTrue(event.body_map_back_image)
        self.assertEqual(event.reporter, self.staff.user.display_name)

    def test_invalid_body_map(self):
        response = self._create(body_map_points=[{'x': 400, 'y': 60}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_color_on_update_keeps_points(self):
        points = [{'x': 40, 'y': 60}]
        event_id = self._create(body_map_points=points).data['id']
        response = self.client.patch(f'/api/v1/events/{event_id}/', {
            'body_map_points': [{'x': 10, 'y': 10, 'color': 'notacolor'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        event = EventLog.objects.get(pk=event_id)
        self.assertEqual(len(event.body_map_points), 1)
        self.assertEqual(event.body_map_points[0]['x'], 40)
        self.assertTrue(event.body_map_front_image)

    def test_high_severity_notifies_admins(self):
        self._create(severity='high')
        self.assertTrue(Notification.objects.filter(user=self.admin, category='event_log').exists())

    def test_carer_cannot_delete(self):
        event_id = self._create().data['id']
        response = self.client.delete(f'/api/v1/events/{event_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/events/{event_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_client_of_event_is_fixed(self):
        event_id = self._create().data['id']
        other = TestDataFactory.create_client(self.branch)
        response = self.client.patch(f'/api/v1/events/{event_id}/', {'client': other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_by_severity(self):
        self._create(severity='low')
        self._create(severity='critical')
        response = self.client.get('/api/v1/events/?severity=critical')
        self.assertEqual(response.data['count'], 1)

    def test_export_csv(self):
        self._create()
        response = self.client.get('/api/v1/events/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0].split(',')[:3], ['Title', 'Client', 'Type'])
        self.assertEqual(len(lines), 2)

    def test_export_pdf(self):
        self._create()
        response = self.client.get('/api/v1/events/export/?export=pdf')
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_export_unknown_format(self):
        response = self.client.get('/api/v1/events/export/?export=xlsx')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
