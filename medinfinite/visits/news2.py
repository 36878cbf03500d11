"""
NEWS2 (National Early Warning Score 2) scoring, Royal College of Physicians bands.
"""
from decimal import Decimal

RISK_LOW = 'low'
RISK_MEDIUM = 'medium'
RISK_HIGH = 'high'


def respiratory_rate_score(rate):
    if rate is None:
        return 0
    if rate <= 8:
        return 3
    if rate <= 11:
        return 1
    if rate <= 20:
        return 0
    if rate <= 24:
        return 2
    return 3


def oxygen_saturation_score(saturation):
    if saturation is None:
        return 0
    if saturation <= 91:
        return 3
    if saturation <= 93:
        return 2
    if saturation <= 95:
        return 1
    return 0


def supplemental_oxygen_score(on_oxygen):
    return 2 if on_oxygen else 0


def systolic_bp_score(systolic):
    if systolic is None:
        return 0
    if systolic <= 90:
        return 3
    if systolic <= 100:
        return 2
    if systolic <= 110:
        return 1
    if systolic <= 219:
        return 0
    return 3


def pulse_rate_score(pulse):
    if pulse is None:
        return 0
    if pulse <= 40:
        return 3
    if pulse <= 50:
        return 1
    if pulse <= 90:
        return 0
    if pulse <= 110:
        return 1
    if pulse <= 130:
        return 2
    return 3


def consciousness_score(level):
    """A (alert) scores 0; C, V, P or U score 3"""
    if not level:
        return 0
    return 0 if str(level).strip().upper() == 'A' else 3


def temperature_score(temperature):
    if temperature is None:
        return 0
    temperature = Decimal(str(temperature))
    if temperature <= Decimal('35.0'):
        return 3
    if temperature <= Decimal('36.0'):
        return 1
    if temperature <= Decimal('38.0'):
        return 0
    if temperature <= Decimal('39.0'):
        return 1
    return 2


def calculate_news2(respiratory_rate=None, oxygen_saturation=None, supplemental_oxygen=False,
                    systolic_bp=None, pulse_rate=None, consciousness_level='A', temperature=None):
    """
    Score a set of observations.

    Returns a dict with one ``<parameter>_score`` per parameter, the
    ``total_score`` and the ``risk_level``: high at 7 or more, medium at 5
    or more or when any single parameter scores 3, low otherwise.
    """
    scores = {
        'respiratory_rate_score': respiratory_rate_score(respiratory_rate),
        'oxygen_saturation_score': oxygen_saturation_score(oxygen_saturation),
        'supplemental_oxygen_score': supplemental_oxygen_score(supplemental_oxygen),
        'systolic_bp_score': systolic_bp_score(systolic_bp),
        'pulse_rate_score': pulse_rate_score(pulse_rate),
        'consciousness_level_score': consciousness_score(consciousness_level),
        'temperature_score': temperature_score(temperature),
    }
    total = sum(scores.values())

    if total >= 7:
        risk = RISK_HIGH
    elif total >= 5 or any(score == 3 for score in scores.values()):
        risk = RISK_MEDIUM
    else:
        risk = RISK_LOW

    return {**scores, 'total_score': total, 'risk_level': risk}


def analyze_trend(current_score, previous_scores):
    """Compare with the most recent previous score"""
    if not previous_scores:
        return 'No previous data'
    diff = current_score - previous_scores[0]
    if diff > 2:
        return 'Deteriorating (score increased)'
    if diff < -2:
        return 'Improving (score decreased)'
    return 'Stable'
