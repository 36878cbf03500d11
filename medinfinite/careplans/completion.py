"""
Care plan wizard completion.

The wizard stores its form state as one JSON document. A step counts as
completed once its section holds meaningful data. Adults have 17 countable
steps, children 20; the final review step only completes on submission.
"""
import re

ADULT_STEPS = 17
CHILD_STEPS = 20

STEP_NAMES = {
    1: 'Basic Information',
    2: 'About Me',
    3: 'Diagnosis',
    4: 'NEWS2 Health Monitoring',
    5: 'Medication Schedule',
    6: 'Medication',
    7: 'Goals',
    8: 'Activities',
    9: 'Personal Care',
    10: 'Dietary',
    11: 'Risk Assessments',
    12: 'Equipment',
    13: 'Service Plans',
    14: 'Service Actions',
    15: 'Documents',
    16: 'Consent',
    17: 'Key Contacts',
    18: 'Behaviour Support',
    19: 'Education & Development',
    20: 'Safeguarding & Risks',
    21: 'Review',
}

ABOUT_ME_FIELDS = (
    'likes', 'dislikes', 'hobbies', 'background', 'preferences', 'daily_routine',
    'communication_preferences', 'cultural_needs', 'spiritual_needs', 'social_preferences',
    'important_people', 'life_history', 'occupation', 'interests',
)
MEDICAL_FIELDS = ('allergies', 'current_medications', 'medical_history', 'service_band')
CONSENT_FIELDS = (
    'discuss_health_and_risks', 'medication_support_consent', 'care_plan_importance_understood',
    'share_info_with_professionals', 'regular_reviews_understood', 'may_need_capacity_assessment',
    'consent_to_care_and_support', 'consent_to_personal_care', 'consent_to_medication_administration',
    'consent_to_healthcare_professionals', 'consent_to_emergency_services', 'consent_to_data_sharing',
    'consent_to_care_plan_changes',
)
CONSENT_TEXT_FIELDS = ('typed_full_name', 'extra_information', 'capacity_notes', 'best_interest_notes')
RISK_SECTIONS = (
    'risk_equipment_dietary', 'risk_medication', 'risk_dietary_food',
    'risk_warning_instructions', 'risk_choking', 'risk_pressure_damage',
)
CHILD_EDUCATION_FIELDS = ('education_placement', 'daily_learning_goals', 'independence_skills')


def round_half_up(value):
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def is_non_empty_string(value):
    return isinstance(value, str) and bool(value.strip())


def has_any_value(obj):
    """True when a dict holds at least one meaningful value at any depth"""
    if not isinstance(obj, dict):
        return False
    for value in obj.values():
        if isinstance(value, str):
            if value.strip():
                return True
        elif isinstance(value, bool):
            if value:
                return True
        elif isinstance(value, list):
            if any(is_non_empty_string(item) if isinstance(item, str) else bool(item) for item in value):
                return True
        elif isinstance(value, dict):
            if has_any_value(value):
                return True
        elif value is not None:
            return True
    return False


def non_empty_list(value):
    return isinstance(value, list) and len(value) > 0


def _medications(data):
    medical = data.get('medical_info') or {}
    manager = medical.get('medication_manager') or {} if isinstance(medical, dict) else {}
    return manager.get('medications') if isinstance(manager, dict) else None


def has_about_me(about_me):
    if not isinstance(about_me, dict):
        return False
    return any(is_non_empty_string(about_me.get(field)) for field in ABOUT_ME_FIELDS) or has_any_value(about_me)


def has_medical_info(data):
    medical = data.get('medical_info')
    if not isinstance(medical, dict):
        return False
    if non_empty_list(medical.get('physical_health_conditions')) or non_empty_list(medical.get('mental_health_conditions')):
        return True
    if non_empty_list(_medications(data)):
        return True
    return any(is_non_empty_string(medical.get(field)) for field in MEDICAL_FIELDS)


def has_news2_monitoring(data):
    medical = data.get('medical_info')
    return isinstance(medical, dict) and has_any_value(medical.get('news2_monitoring'))


def has_medication_administration(data):
    if has_any_value(data.get('admin_medication')):
        return True
    medications = _medications(data)
    if non_empty_list(medications):
        return any(
            isinstance(med, dict) and (med.get('administration_route') or med.get('instructions') or med.get('special_instructions'))
            for med in medications
        )
    return False


def has_risk_assessments(data):
    if non_empty_list(data.get('risk_assessments')):
        return True
    for section in RISK_SECTIONS:
        risk = data.get(section)
        if not isinstance(risk, dict):
            continue
        for value in risk.values():
            if (isinstance(value, bool) and value) or is_non_empty_string(value) or non_empty_list(value):
                return True
    return False


def has_equipment(equipment):
    if non_empty_list(equipment):
        return True
    if not isinstance(equipment, dict):
        return False
    return (
        non_empty_list(equipment.get('equipment_blocks')) or
        has_any_value(equipment.get('moving_handling')) or
        has_any_value(equipment.get('environment_checks')) or
        has_any_value(equipment.get('home_repairs'))
    )


def has_consent(consent):
    if not isinstance(consent, dict):
        return False
    if any(consent.get(field) in ('yes', 'no') for field in CONSENT_FIELDS):
        return True
    if consent.get('has_capacity') is True or consent.get('lacks_capacity') is True:
        return True
    return any(is_non_empty_string(consent.get(field)) for field in CONSENT_TEXT_FIELDS)


def has_key_contacts(data):
    personal = data.get('personal_info') or {}
    if isinstance(personal, dict) and non_empty_list(personal.get('emergency_contacts')):
        return True
    return non_empty_list(data.get('key_contacts'))


def completed_steps(data, is_child=False):
    """Return the ids of the completed wizard steps"""
    if not isinstance(data, dict):
        return []

    checks = [
        (1, lambda: is_non_empty_string(data.get('title'))),
        (2, lambda: has_about_me(data.get('about_me'))),
        (3, lambda: has_medical_info(data)),
        (4, lambda: has_news2_monitoring(data)),
        (5, lambda: non_empty_list(_medications(data))),
        (6, lambda: has_medication_administration(data)),
        (7, lambda: non_empty_list(data.get('goals'))),
        (8, lambda: non_empty_list(data.get('activities'))),
        (9, lambda: has_any_value(data.get('personal_care'))),
        (10, lambda: has_any_value(data.get('dietary'))),
        (11, lambda: has_risk_assessments(data)),
        (12, lambda: has_equipment(data.get('equipment'))),
        (13, lambda: non_empty_list(data.get('service_plans'))),
        (14, lambda: non_empty_list(data.get('service_actions'))),
        (15, lambda: non_empty_list(data.get('documents'))),
        (16, lambda: has_consent(data.get('consent'))),
        (17, lambda: has_key_contacts(data)),
    ]
    if is_child:
        child_info = data.get('child_info') or {}
        checks += [
            (18, lambda: has_any_value(data.get('behavior_support'))),
            (19, lambda: isinstance(child_info, dict) and any(is_non_empty_string(child_info.get(f)) for f in CHILD_EDUCATION_FIELDS)),
            (20, lambda: has_any_value(data.get('safeguarding'))),
        ]
    return [step for step, check in checks if check()]


def completion_percentage(data, is_child=False):
    if not isinstance(data, dict):
        return 0
    total = CHILD_STEPS if is_child else ADULT_STEPS
    return round_half_up(len(completed_steps(data, is_child)) / total * 100)


def progress_percentage(status, notes=''):
    """Rough progress for a goal or plan from its status and free-text notes"""
    normalized = (status or '').strip().lower().replace('_', ' ').replace('-', ' ')
    fixed = {
        'completed': 100,
        'archived': 100,
        'achieved': 100,
        'active': 60,
        'on hold': 40,
        'under review': 25,
        'draft': 10,
    }
    if normalized in fixed:
        return fixed[normalized]
    if normalized == 'in progress':
        current = re.search(r'Currently at (\d+)', notes or '')
        if current:
            target = re.search(r'for (\d+)', notes)
            target_value = max(int(target.group(1)), 1) if target else 15
            return max(0, min(100, round_half_up(int(current.group(1)) / target_value * 100)))
        return 40
    return 10
