"""
Client and care plan status vocabularies and the mapping between them.
"""
import re

CLIENT_STATUSES = [
    'Active',
    'Inactive',
    'New Enquiries',
    'Actively Assessing',
    'Closed Enquiries',
    'Former',
    'Archived',
]

CARE_PLAN_STATUSES = [
    'Draft',
    'Under Review',
    'Active',
    'On Hold',
    'Completed',
    'Archived',
]

# Client status implied by a care plan status
CARE_PLAN_TO_CLIENT_STATUS = {
    'Draft': 'New Enquiries',
    'Under Review': 'Actively Assessing',
    'Active': 'Active',
    'On Hold': 'Actively Assessing',
    'Completed': 'Active',
    'Archived': 'Former',
}


def normalize_status(value):
    """'actively_assessing' / 'ACTIVELY-ASSESSING' -> 'Actively Assessing'"""
    if not value:
        return ''
    words = re.sub(r'[_-]+', ' ', str(value).strip().lower()).split()
    return ' '.join(word.capitalize() for word in words)


def client_status_for_care_plan(care_plan_status):
    return CARE_PLAN_TO_CLIENT_STATUS.get(normalize_status(care_plan_status))
