"""DCF compliance: monthly fire drills and staff training requirements."""
from datetime import date

DRILL_TYPES = ('fire', 'tornado', 'lockdown', 'evacuation')

CERTIFICATION_TYPES = {
    '45_hour_dcf': {'name': '45-Hour DCF Training', 'required_hours': 45},
    '40_hour_initial': {'name': '40-Hour Initial Training', 'required_hours': 40},
    'annual_in_service': {'name': 'Annual In-Service Training', 'required_hours': 10},
    'cpr_first_aid': {'name': 'CPR / First Aid', 'required_hours': 8},
    'child_abuse_prevention': {'name': 'Child Abuse Prevention', 'required_hours': 1},
    'safe_sleep': {'name': 'Safe Sleep', 'required_hours': 1},
    'cda': {'name': 'CDA Credential', 'required_hours': None},
    'background_screening': {'name': 'Level 2 Background Screening', 'required_hours': None},
}

REQUIRED_HOURS = {
    key: value['required_hours'] for key, value in CERTIFICATION_TYPES.items()
    if value['required_hours'] is not None
}

ANNUAL_IN_SERVICE_HOURS = 10
STAFF_ROLES = ('owner', 'director', 'lead_teacher', 'teacher', 'assistant')


def _month_key(day):
    return f"{day.year}-{day.month:02d}"


def fire_drill_status(drill_dates, today=None):
    """Monthly fire drill compliance for the current calendar year."""
    today = today or date.today()
    this_year = [d for d in drill_dates if d.year == today.year and d <= today]
    drill_months = {_month_key(d) for d in this_year}

    months_missed = []
    for month in range(1, today.month + 1):
        key = f"{today.year}-{month:02d}"
        if key not in drill_months:
            months_missed.append(key)

    past = [d for d in drill_dates if d <= today]
    return {
        'is_compliant': not months_missed,
        'last_drill_date': max(past) if past else None,
        'drills_this_month': sum(1 for d in this_year if d.month == today.month),
        'drills_this_year': len(this_year),
        'months_missed': months_missed,
    }


def annual_drill_coverage(drill_dates, year):
    per_month = {month: 0 for month in range(1, 13)}
    for drill_date in drill_dates:
        if drill_date.year == year:
            per_month[drill_date.month] += 1
    covered = sum(1 for count in per_month.values() if count > 0)
    return {
        'year': year,
        'drills_per_month': per_month,
        'months_covered': covered,
        'months_required': 12,
        'total_drills': sum(per_month.values()),
        'is_complete': covered == 12,
    }


def fiscal_year(today=None):
    """Florida fiscal year label, July through June."""
    today = today or date.today()
    if today.month >= 7:
        return f"{today.year}-{today.year + 1}"
    return f"{today.year - 1}-{today.year}"


def staff_compliance(profile, today=None):
    """Score one staff profile against DCF training requirements.

    Starts at 100 and deducts per missing or expiring requirement.
    """
    today = today or date.today()
    missing = []
    expiring = []
    score = 100

    is_director = profile.role in ('director', 'owner') or bool(profile.is_director)
    if is_director and not profile.has_45_hours_training:
        missing.append('45-Hour DCF Training (Required for Directors)')
        score -= 30

    if not profile.has_40_hours_initial and profile.hire_date:
        days_since_hire = (today - profile.hire_date).days
        if days_since_hire > 365:
            missing.append('40-Hour Initial Training (OVERDUE)')
            score -= 25
        elif days_since_hire > 270:
            expiring.append('40-Hour Initial Training (Due within 90 days)')
            score -= 10

    if not profile.background_check_clear:
        missing.append('Background Check')
        score -= 20

    if profile.has_cda_credential and profile.cda_expiration_date:
        days_until_expiration = (profile.cda_expiration_date - today).days
        if days_until_expiration < 0:
            missing.append('CDA Credential (EXPIRED)')
            score -= 15
        elif days_until_expiration < 30:
            expiring.append('CDA Credential (Expires within 30 days)')
            score -= 5

    # in-service hours are only flagged in the last quarter of the fiscal year
    hours = profile.annual_training_hours_completed or 0
    behind = profile.annual_training_fiscal_year != fiscal_year(today) or hours < ANNUAL_IN_SERVICE_HOURS
    if behind and 4 <= today.month <= 6:
        expiring.append(f"Annual In-Service ({hours:g}/{ANNUAL_IN_SERVICE_HOURS} hours)")
        score -= 5

    return {
        'is_compliant': not missing,
        'missing_requirements': missing,
        'expiring_soon': expiring,
        'compliance_score': max(0, score),
    }


def organization_compliance_stats(results, certifications, today=None):
    today = today or date.today()
    total_staff = len(results)
    compliant = sum(1 for r in results if r['is_compliant'])
    return {
        'total_staff': total_staff,
        'compliant_count': compliant,
        'compliance_rate': round(compliant / total_staff * 100) if total_staff else 0,
        'expiring_soon': sum(1 for r in results if r['expiring_soon']),
        'missing_training': sum(1 for r in results if r['missing_requirements']),
        'expired_certs': sum(1 for c in certifications
                             if c.expiration_date and c.expiration_date < today),
    }


def certification_flags(cert_type, today=None):
    """Profile fields set when a certification of `cert_type` is recorded."""
    today = today or date.today()
    if cert_type == '45_hour_dcf':
        return {'has_45_hours_training': True, 'training_45_hours_completion_date': today}
    if cert_type == '40_hour_initial':
        return {'has_40_hours_initial': True, 'initial_training_completion_date': today}
    if cert_type == 'cda':
        return {'has_cda_credential': True}
    if cert_type == 'background_screening':
        return {'background_check_clear': True, 'background_check_date': today}
    return {}


def add_in_service_hours(current_hours, current_fiscal_year, hours, today=None):
    """New (hours, fiscal_year) after logging in-service hours; resets each fiscal year."""
    if hours is None or hours <= 0:
        raise ValueError("In-service hours must be greater than zero")
    year = fiscal_year(today)
    base = (current_hours or 0) if current_fiscal_year == year else 0
    return base + hours, year
