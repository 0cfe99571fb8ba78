"""Monthly income across tuition, CACFP and School Readiness programs."""
import cacfp

WEEKS_PER_MONTH = 4.33
SR_WEEKS_PER_MONTH = 4
DEFAULT_WEEKLY_TUITION = 200

SR_BILLING_RATES = {
    'after_school': {'hourly': 5.50, 'daily': 27.50, 'weekly': 137.50},
    'full_time': {'hourly': 7.00, 'daily': 56.00, 'weekly': 280.00},
    'before_after': {'hourly': 6.00, 'daily': 36.00, 'weekly': 180.00},
}

_HOLIDAY_PERIODS = (
    ('Christmas Break', 'christmas_break_start', 'christmas_break_end'),
    ('Spring Break', 'spring_break_start', 'spring_break_end'),
    ('Summer', 'summer_start', 'summer_end'),
)


def holiday_period(school_calendar, day):
    """Name of the school holiday containing `day`, or None."""
    if school_calendar is None:
        return None
    for name, start_attr, end_attr in _HOLIDAY_PERIODS:
        start = getattr(school_calendar, start_attr)
        end = getattr(school_calendar, end_attr)
        if start and end and start <= day <= end:
            return name
    return None


def sr_child_billing(enrollment, week_start, school_calendar=None):
    """Weekly School Readiness billing for one enrollment.

    After-school children attend full days during school holidays and are
    billed at the full-time weekly rate for those weeks.
    """
    schedule_type = enrollment.rate_type or 'after_school'
    rates = SR_BILLING_RATES.get(schedule_type, SR_BILLING_RATES['after_school'])
    full_time_weekly = SR_BILLING_RATES['full_time']['weekly']

    holiday = holiday_period(school_calendar, week_start)
    if holiday and schedule_type == 'after_school':
        weekly_billing = full_time_weekly
    else:
        weekly_billing = rates['weekly']

    copay = enrollment.copay_amount or 0
    child = enrollment.child
    return {
        'child_id': enrollment.child_id,
        'child_name': child.full_name if child else 'Unknown',
        'enrollment_id': enrollment.id,
        'case_number': enrollment.case_number,
        'schedule_type': schedule_type,
        'regular_rate': rates['weekly'],
        'full_time_weekly_rate': full_time_weekly,
        'current_period_type': 'holiday' if holiday else 'regular',
        'holiday_name': holiday,
        'current_weekly_billing': weekly_billing,
        'month_to_date_billing': weekly_billing * SR_WEEKS_PER_MONTH,
        'copay_amount': copay,
        'net_reimbursement': round(weekly_billing - copay, 2),
    }


def sr_monthly_income(enrollments, year, month, school_calendar=None):
    month_start, _ = cacfp.month_bounds(year, month)
    details = []
    regular_billing = 0.0
    holiday_billing = 0.0
    for enrollment in enrollments:
        billing = sr_child_billing(enrollment, month_start, school_calendar)
        monthly_amount = billing['current_weekly_billing'] * SR_WEEKS_PER_MONTH
        if billing['current_period_type'] == 'holiday':
            holiday_billing += monthly_amount
        else:
            regular_billing += monthly_amount
        details.append(billing)

    return {
        'total': round(regular_billing + holiday_billing, 2),
        'children_count': len(details),
        'regular_billing': round(regular_billing, 2),
        'holiday_billing': round(holiday_billing, 2),
        'details': details,
    }


def fixed_tuition_income(children):
    by_program = {}
    total = 0.0
    for child in children:
        monthly = (child.weekly_rate or DEFAULT_WEEKLY_TUITION) * WEEKS_PER_MONTH
        program = child.program_type or 'private'
        entry = by_program.setdefault(program, {'program': program, 'amount': 0.0, 'count': 0})
        entry['amount'] = round(entry['amount'] + monthly, 2)
        entry['count'] += 1
        total += monthly
    return {
        'total': round(total, 2),
        'children_count': len(children),
        'by_program': list(by_program.values()),
    }


def monthly_income_breakdown(year, month, children, meal_records, enrollments,
                             school_calendar=None, tier='tier1'):
    tuition = fixed_tuition_income(children)
    food = cacfp.monthly_report(year, month, meal_records, tier)
    school_readiness = sr_monthly_income(enrollments, year, month, school_calendar)

    by_meal = [
        {'meal': meal, 'count': food[f'total_{meal}'], 'amount': food[f'reimbursement_{meal}']}
        for meal in cacfp.MEAL_TYPES
    ]
    return {
        'month': f"{year}-{month:02d}",
        'fixed_tuition': tuition,
        'cacfp': {'total': food['total_reimbursement'], 'by_meal': by_meal},
        'school_readiness': {k: v for k, v in school_readiness.items() if k != 'details'},
        'grand_total': round(tuition['total'] + food['total_reimbursement'] + school_readiness['total'], 2),
    }
