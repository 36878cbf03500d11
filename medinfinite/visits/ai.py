"""
NEWS2 clinical recommendations from the Gemini API.

Any failure (no key, HTTP error, unexpected payload) falls back to static
recommendations chosen by the observation's score.
"""
import logging
from datetime import date
from typing import Any, Dict, List

import requests
from django.conf import settings
from django.utils import timezone

from .news2 import analyze_trend

logger = logging.getLogger('medinfinite.visits')

GEMINI_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'
FUNCTION_NAME = 'provide_news2_recommendations'

RECOMMENDATION_SCHEMA = {
    'type': 'object',
    'properties': {
        'immediate_actions': {'type': 'array', 'items': {'type': 'string'},
                              'description': 'List of urgent actions required (empty if none)'},
        'monitoring_plan': {
            'type': 'object',
            'properties': {
                'frequency': {'type': 'string', 'description': 'How often to monitor'},
                'focus_areas': {'type': 'array', 'items': {'type': 'string'}},
            },
            'required': ['frequency', 'focus_areas'],
        },
        'care_suggestions': {'type': 'array', 'items': {'type': 'string'}},
        'escalation_criteria': {'type': 'array', 'items': {'type': 'string'}},
        'positive_observations': {'type': 'array', 'items': {'type': 'string'}},
        'clinical_reasoning': {'type': 'string', 'description': 'Brief explanation (2-3 sentences)'},
    },
    'required': ['immediate_actions', 'monitoring_plan', 'care_suggestions', 'escalation_criteria',
                 'positive_observations', 'clinical_reasoning'],
}


class RecommendationError(Exception):
    pass


def fallback_recommendations(total_score: int) -> Dict[str, Any]:
    now = timezone.now().isoformat()
    if total_score >= 7:
        return {
            'immediate_actions': [
                'URGENT: Immediate clinical review required',
                'Notify senior staff and follow escalation protocol',
                'Monitor continuously until condition stabilizes',
            ],
            'monitoring_plan': {
                'frequency': 'Continuous or every 1-2 hours',
                'focus_areas': ['All vital signs requiring close attention', 'Level of consciousness',
                                'Signs of clinical deterioration'],
            },
            'care_suggestions': ['Ensure patient comfort and safety', 'Maintain clear communication with clinical team',
                                 'Document all observations and changes'],
            'escalation_criteria': ['Any further deterioration in vital signs', 'Decreased consciousness level',
                                    'Patient or family concerns'],
            'positive_observations': ['Observation recorded promptly', 'Care team alerted to high risk status'],
            'clinical_reasoning': 'High NEWS2 score requires urgent clinical attention. Close monitoring and '
                                  'immediate intervention protocols should be followed.',
            'generated_at': now,
            'model_used': 'fallback-high-risk',
        }
    if total_score >= 5:
        return {
            'immediate_actions': [],
            'monitoring_plan': {
                'frequency': 'Every 4-6 hours or as directed',
                'focus_areas': ['Vital signs showing elevated scores', 'Overall trend in observations',
                                'Patient comfort and wellbeing'],
            },
            'care_suggestions': ['Increase monitoring frequency as recommended', 'Document any changes in condition',
                                 'Consider clinical assessment if score increases', 'Ensure patient hydration and comfort'],
            'escalation_criteria': ['NEWS2 score increases to 7 or above', 'Any single parameter score of 3',
                                    'Rapid deterioration in any vital sign', 'Patient reports significant discomfort'],
            'positive_observations': ['Patient being monitored appropriately', 'Care team aware of medium risk status'],
            'clinical_reasoning': 'Medium risk requires increased vigilance. Monitor trends and be prepared to '
                                  'escalate if condition changes.',
            'generated_at': now,
            'model_used': 'fallback-medium-risk',
        }
    return {
        'immediate_actions': [],
        'monitoring_plan': {
            'frequency': 'As per routine care plan (e.g., daily or 12-hourly)',
            'focus_areas': ['Routine vital signs monitoring', 'General wellbeing', 'Any patient concerns'],
        },
        'care_suggestions': ['Continue routine monitoring as planned', 'Encourage healthy lifestyle habits',
                             'Maintain open communication with patient', 'Document observations regularly'],
        'escalation_criteria': ['Any significant change in vital signs', 'Patient reports new symptoms or concerns',
                                'NEWS2 score increases to 5 or above'],
        'positive_observations': ['Vital signs within expected ranges', 'Patient appears stable',
                                  'Good baseline for comparison'],
        'clinical_reasoning': 'Low risk indicates stable condition. Continue routine care and monitoring as per care plan.',
        'generated_at': now,
        'model_used': 'fallback-low-risk',
    }


def _age(date_of_birth):
    if not date_of_birth:
        return 'Unknown'
    today = date.today()
    return today.year - date_of_birth.year - ((today.month, today.day) < (date_of_birth.month, date_of_birth.day))


def build_prompt(observation, previous: List[Dict[str, Any]]) -> str:
    client = observation.client

    def value(field):
        reading = getattr(observation, field)
        return 'N/A' if reading is None else reading

    lines = [
        'You are a clinical AI assistant analyzing NEWS2 vital signs observations to provide actionable recommendations.',
        '',
        'PATIENT CONTEXT:',
        f'- Age: {_age(client.date_of_birth)} years',
        f'- Mobility: {client.mobility_status or "Not recorded"}',
        f'- Risk Category: {observation.risk_level}',
        '',
        f'CURRENT OBSERVATION ({timezone.localtime(observation.recorded_at):%d/%m/%Y %H:%M}):',
        f'- NEWS2 Score: {observation.total_score} ({observation.risk_level.upper()} RISK)',
        f'- Respiratory Rate: {value("respiratory_rate")}/min (score: {observation.respiratory_rate_score})',
        f'- Oxygen Saturation: {value("oxygen_saturation")}% (score: {observation.oxygen_saturation_score})',
        f'- Systolic Blood Pressure: {value("systolic_bp")} mmHg (score: {observation.systolic_bp_score})',
        f'- Pulse Rate: {value("pulse_rate")} bpm (score: {observation.pulse_rate_score})',
        f'- Temperature: {value("temperature")} C (score: {observation.temperature_score})',
        f'- Consciousness: {observation.consciousness_level} (score: {observation.consciousness_level_score})',
        f'- Supplemental Oxygen: {"Yes" if observation.supplemental_oxygen else "No"} '
        f'(score: {observation.supplemental_oxygen_score})',
    ]
    if observation.clinical_notes:
        lines.append(f'- Clinical Notes: {observation.clinical_notes}')
    if previous:
        scores = [item['total_score'] for item in previous]
        lines += [
            '',
            'RECENT TREND:',
            '- Previous scores: ' + ', '.join(f"{item['total_score']} ({item['risk_level']})" for item in previous),
            f'- Trend: {analyze_trend(observation.total_score, scores)}',
        ]
    lines += [
        '',
        'Provide evidence-based recommendations that are clear and actionable, appropriate for the risk level '
        'and focused on patient safety. Low risk (0-4): wellness and routine monitoring. Medium risk (5-6): '
        'increased monitoring and when to escalate. High risk (7+): urgent actions and immediate escalation. '
        'Use plain language suitable for care teams.',
    ]
    return '\n'.join(lines)


def request_recommendations(prompt: str) -> Dict[str, Any]:
    """Call Gemini with forced function calling and return the structured arguments"""
    api_key = getattr(settings, 'GEMINI_API_KEY', '')
    if not api_key:
        raise RecommendationError('GEMINI_API_KEY not configured')

    model = getattr(settings, 'GEMINI_MODEL', 'gemini-1.5-flash')
    payload = {
        'contents': [{'parts': [{'text': prompt}]}],
        'generationConfig': {'temperature': 0.3, 'topK': 40, 'topP': 0.95, 'maxOutputTokens': 2048},
        'tools': [{'functionDeclarations': [{
            'name': FUNCTION_NAME,
            'description': 'Provide structured clinical recommendations based on NEWS2 assessment',
            'parameters': RECOMMENDATION_SCHEMA,
        }]}],
        'toolConfig': {'functionCallingConfig': {'mode': 'ANY', 'allowedFunctionNames': [FUNCTION_NAME]}},
    }
    try:
        response = requests.post(
            GEMINI_URL.format(model=model),
            json=payload,
            headers={'Content-Type': 'application/json', 'x-goog-api-key': api_key},
            timeout=getattr(settings, 'GEMINI_TIMEOUT', 20),
        )
    except requests.exceptions.RequestException as e:
        raise RecommendationError(f'Gemini request failed: {str(e)}') from e

    if response.status_code != 200:
        raise RecommendationError(f'Gemini API error: {response.status_code}')

    try:
        call = response.json()['candidates'][0]['content']['parts'][0]['functionCall']
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise RecommendationError('No function call in Gemini response') from e
    if call.get('name') != FUNCTION_NAME or not isinstance(call.get('args'), dict):
        raise RecommendationError('Unexpected function call in Gemini response')

    return {**call['args'], 'generated_at': timezone.now().isoformat(), 'model_used': model}


def generate_recommendations(observation, include_history=True) -> Dict[str, Any]:
    """Recommendations for an observation, falling back to static guidance on any failure"""
    previous = []
    if include_history:
        previous = list(
            observation.client.news2_observations
            .exclude(pk=observation.pk)
            .filter(recorded_at__lte=observation.recorded_at)
            .order_by('-recorded_at')
            .values('total_score', 'risk_level', 'recorded_at')[:3]
        )
    try:
        recommendations = request_recommendations(build_prompt(observation, previous))
        logger.info(f"AI recommendations generated for NEWS2 observation {observation.pk}")
        return recommendations
    except RecommendationError as e:
        logger.warning(f"Using fallback recommendations for observation {observation.pk}: {str(e)}")
        return fallback_recommendations(observation.total_score)
