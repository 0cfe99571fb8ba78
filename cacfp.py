"""CACFP meal reimbursement calculations."""
import calendar
from datetime import date

MEAL_TYPES = ('breakfast', 'am_snack', 'lunch', 'pm_snack', 'supper')

MEAL_LABELS = {
    'breakfast': 'Breakfast',
    'am_snack': 'AM Snack',
    'lunch': 'Lunch',
    'pm_snack': 'PM Snack',
    'supper': 'Supper',
}

# USDA per-meal reimbursement rates by day care home tier
CACFP_REIMBURSEMENT_RATES = {
    'tier1': {
        'breakfast': 2.04,
        'am_snack': 1.07,
        'lunch': 4.32,
        'pm_snack': 1.07,
        'supper': 4.32,
    },
    'tier2': {
        'breakfast': 0.36,
        'am_snack': 0.09,
        'lunch': 0.37,
        'pm_snack': 0.09,
        'supper': 0.37,
    },
}


def tier_rates(tier):
    try:
        return CACFP_REIMBURSEMENT_RATES[tier]
    except KeyError:
        raise ValueError(f"Unknown CACFP tier: {tier}")


def calculate_reimbursement(meal_counts, tier='tier1'):
    """Multiply meal counts by the tier rates.

    Returns the per-meal amounts keyed by meal type plus
    'total_reimbursement'. Missing meal types count as zero.
    """
    rates = tier_rates(tier)
    result = {}
    total = 0.0
    for meal in MEAL_TYPES:
        count = meal_counts.get(meal) or 0
        if count < 0:
            raise ValueError(f"Meal count for {meal} cannot be negative")
        amount = round(count * rates[meal], 2)
        result[meal] = amount
        total += amount
    result['total_reimbursement'] = round(total, 2)
    return result


REPORT_YEAR_RANGE = (2000, 2100)


def valid_report_year(year):
    return year is not None and REPORT_YEAR_RANGE[0] <= year <= REPORT_YEAR_RANGE[1]


def month_bounds(year, month):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def daily_counts(records):
    """Group served meal records into per-date counts, ordered by date."""
    by_date = {}
    for record in records:
        if not getattr(record, 'served', True):
            continue
        day = by_date.get(record.meal_date)
        if day is None:
            day = {'date': record.meal_date, 'total_meals': 0}
            for meal in MEAL_TYPES:
                day[f'{meal}_count'] = 0
            by_date[record.meal_date] = day
        key = f'{record.meal_type}_count'
        if key in day:
            day[key] += 1
        day['total_meals'] += 1
    return [by_date[d] for d in sorted(by_date)]


def monthly_report(year, month, records, tier='tier1'):
    start, end = month_bounds(year, month)
    days = daily_counts(r for r in records if start <= r.meal_date <= end)

    totals = {meal: sum(d[f'{meal}_count'] for d in days) for meal in MEAL_TYPES}
    reimbursement = calculate_reimbursement(totals, tier)

    days_open = len(days)
    if days_open:
        average_daily_attendance = round(totals['lunch'] / days_open)
    else:
        average_daily_attendance = 0

    report = {
        'month': f"{year}-{month:02d}",
        'year': year,
        'tier': tier,
        'days_open': days_open,
        'daily_counts': days,
        'total_reimbursement': reimbursement['total_reimbursement'],
        'average_daily_attendance': average_daily_attendance,
    }
    for meal in MEAL_TYPES:
        report[f'total_{meal}'] = totals[meal]
        report[f'reimbursement_{meal}'] = reimbursement[meal]
    return report
