"""Subscription plans, per-child pricing and feature gating."""
from datetime import datetime

TRIAL_DAYS = 30
ANNUAL_DISCOUNT = 0.17

PLAN_PRICING = {
    'starter': {'per_child': 1.50, 'minimum': 29, 'annual_discount': ANNUAL_DISCOUNT},
    'professional': {'per_child': 2.50, 'minimum': 49, 'annual_discount': ANNUAL_DISCOUNT},
    'enterprise': {'per_child': 3.50, 'minimum': 99, 'annual_discount': ANNUAL_DISCOUNT},
}

_STARTER_FEATURES = [
    'children', 'families', 'staff', 'classrooms', 'attendance', 'billing',
    'daily_activities', 'notifications', 'settings',
]
_PROFESSIONAL_FEATURES = _STARTER_FEATURES + [
    'communication', 'reports', 'incidents', 'immunizations', 'documents',
    'food_program', 'learning', 'dcf_ratios', 'programs', 'admissions',
]
_ENTERPRISE_FEATURES = _PROFESSIONAL_FEATURES + [
    'accounting', 'multi_location', 'api_access', 'custom_branding', 'compliance',
]

PLAN_FEATURES = {
    'starter': _STARTER_FEATURES,
    'professional': _PROFESSIONAL_FEATURES,
    'enterprise': _ENTERPRISE_FEATURES,
}

PLAN_NAMES = {
    'trial': 'Free Trial',
    'starter': 'Starter',
    'professional': 'Professional',
    'enterprise': 'Enterprise',
}


def _pricing(plan):
    try:
        return PLAN_PRICING[plan]
    except KeyError:
        raise ValueError(f"Unknown plan: {plan}")


def monthly_price(plan, children):
    """Monthly charge: children x per-child rate, never below the plan minimum."""
    if children < 0:
        raise ValueError("Children count cannot be negative")
    pricing = _pricing(plan)
    return max(children * pricing['per_child'], pricing['minimum'])


def annual_price(plan, children):
    monthly = monthly_price(plan, children)
    full_year = monthly * 12
    annual = round(full_year * (1 - _pricing(plan)['annual_discount']))
    return {
        'annual': annual,
        'monthly_equivalent': round(annual / 12, 2),
        'savings': round(full_year - annual, 2),
    }


def has_feature(plan, feature):
    """Trial organizations get the professional feature set."""
    effective_plan = 'professional' if plan in (None, 'trial') else plan
    return feature in PLAN_FEATURES.get(effective_plan, [])


def trial_days_remaining(trial_start, today=None):
    today = today or datetime.utcnow()
    elapsed = (today - trial_start).days
    return max(0, TRIAL_DAYS - elapsed)
