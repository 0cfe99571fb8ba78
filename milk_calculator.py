"""Milk requirement forecasting for the food program.

Quantities follow CACFP fluid milk minimums per age bracket. Formula for
infants is provided by parents, so it is forecast but never costed.
"""
from datetime import date, timedelta

OZ_PER_GALLON = 128

MILK_REQUIREMENTS = {
    'infant_0_5': {'oz_per_meal': 4, 'milk_type': 'formula',
                   'notes': 'Breast milk or iron-fortified formula only'},
    'infant_6_11': {'oz_per_meal': 6, 'milk_type': 'formula',
                    'notes': 'Breast milk or iron-fortified formula only'},
    'toddler_1': {'oz_per_meal': 4, 'milk_type': 'whole',
                  'notes': 'Whole milk required'},
    'preschool_2_5': {'oz_per_meal': 6, 'milk_type': '2%',
                      'notes': 'Low-fat (1%) or fat-free preferred'},
    'school_age': {'oz_per_meal': 8, 'milk_type': 'skim',
                   'notes': 'Low-fat (1%) or fat-free required'},
}

AGE_GROUP_ORDER = ['infant_0_5', 'infant_6_11', 'toddler_1', 'preschool_2_5', 'school_age']

AGE_GROUP_LABELS = {
    'infant_0_5': 'Infant (0-5 months)',
    'infant_6_11': 'Infant (6-11 months)',
    'toddler_1': '1 Year',
    'preschool_2_5': 'Preschool (2-5 years)',
    'school_age': 'School Age (6+ years)',
}

MEALS_REQUIRING_MILK = ('breakfast', 'lunch', 'dinner', 'supper')
SNACKS_WITH_MILK = ('am_snack', 'pm_snack')

MILK_PRICES = {
    'whole': 4.50,
    '2%': 4.25,
    'skim': 4.00,
    'lactose_free': 6.50,
    'formula': 0.0,
}

_ALLERGY_KEYWORDS = ('milk', 'leche', 'dairy', 'lactose')
# Daily counts treat a listed lactose allergy as intolerance, not exclusion
_DAILY_ALLERGY_KEYWORDS = ('milk', 'leche', 'dairy')
_LACTOSE_KEYWORDS = ('lactose', 'lactosa')


def age_in_months(date_of_birth, today=None):
    today = today or date.today()
    months = (today.year - date_of_birth.year) * 12 + (today.month - date_of_birth.month)
    return max(0, months)


def age_group(months):
    if months < 6:
        return 'infant_0_5'
    if months < 12:
        return 'infant_6_11'
    if months < 24:
        return 'toddler_1'
    if months < 72:
        return 'preschool_2_5'
    return 'school_age'


def oz_to_gallons(oz):
    return round(oz / OZ_PER_GALLON, 2)


def has_milk_allergy(allergies, keywords=_ALLERGY_KEYWORDS):
    for allergy in allergies or []:
        lowered = str(allergy).lower()
        if any(keyword in lowered for keyword in keywords):
            return True
    return False


def is_lactose_intolerant(restrictions):
    lowered = (restrictions or '').lower()
    return any(keyword in lowered for keyword in _LACTOSE_KEYWORDS)


def child_requirement(child, today=None, daily_meals=3, operating_days=5):
    """Milk needed by one child; allergic children need none."""
    months = age_in_months(child.date_of_birth, today)
    group = age_group(months)
    requirement = MILK_REQUIREMENTS[group]

    allergic = has_milk_allergy(child.allergies)
    milk_type = requirement['milk_type']
    alternative = None
    if allergic:
        alternative = 'Dairy-free alternative required'
    elif is_lactose_intolerant(child.dietary_restrictions):
        milk_type = 'lactose_free'
        alternative = 'Lactose-free milk'

    daily_oz = requirement['oz_per_meal'] * daily_meals
    return {
        'child_id': child.id,
        'child_name': f"{child.first_name} {child.last_name}",
        'age_months': months,
        'age_group': group,
        'milk_type': milk_type,
        'oz_per_meal': requirement['oz_per_meal'],
        'daily_meals': daily_meals,
        'daily_oz_needed': 0 if allergic else daily_oz,
        'weekly_oz_needed': 0 if allergic else daily_oz * operating_days,
        'notes': requirement['notes'],
        'has_milk_allergy': allergic,
        'alternative': alternative,
    }


def daily_milk(children, meals_planned=('breakfast', 'lunch', 'pm_snack'), today=None):
    """Total milk for one day of planned meals, grouped by milk type."""
    milk_meals = sum(1 for meal in meals_planned if meal in MEALS_REQUIRING_MILK)
    milk_snacks = sum(1 for meal in meals_planned if meal in SNACKS_WITH_MILK) * 0.5

    by_type = {}
    allergic_count = 0
    total_children = 0
    for child in children:
        total_children += 1
        if has_milk_allergy(child.allergies, _DAILY_ALLERGY_KEYWORDS):
            allergic_count += 1
            continue
        requirement = MILK_REQUIREMENTS[age_group(age_in_months(child.date_of_birth, today))]
        milk_type = requirement['milk_type']
        if (is_lactose_intolerant(child.dietary_restrictions)
                or has_milk_allergy(child.allergies, _LACTOSE_KEYWORDS)):
            milk_type = 'lactose_free'

        entry = by_type.setdefault(milk_type, {'children_count': 0, 'total_oz': 0.0})
        entry['children_count'] += 1
        entry['total_oz'] += requirement['oz_per_meal'] * (milk_meals + milk_snacks)

    results = []
    for milk_type, entry in by_type.items():
        results.append({
            'milk_type': milk_type,
            'children_count': entry['children_count'],
            'oz_per_child': entry['total_oz'] / entry['children_count'],
            'total_oz': entry['total_oz'],
            'gallons': oz_to_gallons(entry['total_oz']),
        })
    total_oz = sum(r['total_oz'] for r in results)

    return {
        'date': today or date.today(),
        'total_children': total_children,
        'children_with_milk_allergy': allergic_count,
        'by_milk_type': results,
        'total_oz': total_oz,
        'total_gallons': oz_to_gallons(total_oz),
        'meals_planned': list(meals_planned),
    }


def weekly_forecast(requirements, week_start):
    """Monday to Friday forecast from per-child requirements."""
    week_end = week_start + timedelta(days=4)
    by_type = {}
    notes = []
    children_count = 0

    for child in requirements:
        if child['has_milk_allergy']:
            notes.append(f"{child['child_name']}: milk allergy - alternative required")
            continue
        children_count += 1
        by_type[child['milk_type']] = by_type.get(child['milk_type'], 0) + child['weekly_oz_needed']

    groups = [r['age_group'] for r in requirements]
    infants = groups.count('infant_0_5') + groups.count('infant_6_11')
    if infants:
        notes.append(f"{infants} infants: formula provided by parents")
    if groups.count('toddler_1'):
        notes.append(f"{groups.count('toddler_1')} one-year-olds: whole milk required")
    if groups.count('preschool_2_5'):
        notes.append(f"{groups.count('preschool_2_5')} preschoolers (2-5): low-fat milk")
    if groups.count('school_age'):
        notes.append(f"{groups.count('school_age')} school age (6+): skim milk")

    results = []
    for milk_type, total_oz in by_type.items():
        if milk_type == 'formula':
            continue
        gallons = oz_to_gallons(total_oz)
        results.append({
            'milk_type': milk_type,
            'total_oz': total_oz,
            'gallons': gallons,
            'estimated_cost': round(gallons * MILK_PRICES.get(milk_type, MILK_PRICES['2%']), 2),
        })

    return {
        'week_start': week_start,
        'week_end': week_end,
        'operating_days': 5,
        'children_count': children_count,
        'by_milk_type': results,
        'total_gallons': round(sum(r['gallons'] for r in results), 2),
        'estimated_total_cost': round(sum(r['estimated_cost'] for r in results), 2),
        'notes': notes,
    }


def requirements_by_age_group(requirements):
    groups = {}
    for child in requirements:
        if child['has_milk_allergy']:
            continue
        groups.setdefault(child['age_group'], []).append(child)

    summary = []
    for group in AGE_GROUP_ORDER:
        if group not in groups:
            continue
        children = groups[group]
        requirement = MILK_REQUIREMENTS[group]
        summary.append({
            'age_group': group,
            'age_group_label': AGE_GROUP_LABELS[group],
            'children_count': len(children),
            'milk_type': requirement['milk_type'],
            'oz_per_meal': requirement['oz_per_meal'],
            'total_daily_oz': sum(c['daily_oz_needed'] for c in children),
            'notes': requirement['notes'],
        })
    return summary


def inventory_status(forecast, available_gallons=None):
    """Compare a weekly forecast against gallons on hand per milk type."""
    available_gallons = available_gallons or {}
    by_type = []
    for entry in forecast['by_milk_type']:
        if entry['milk_type'] == 'formula':
            continue
        available = available_gallons.get(entry['milk_type'], 0)
        by_type.append({
            'milk_type': entry['milk_type'],
            'needed_gallons': entry['gallons'],
            'available_gallons': available,
            'shortage': round(max(0, entry['gallons'] - available), 2),
        })

    total_shortage = round(sum(t['shortage'] for t in by_type), 2)
    if total_shortage == 0:
        recommendation = 'Inventory is sufficient for the week'
    elif total_shortage < 2:
        recommendation = 'Consider buying additional milk soon'
    else:
        recommendation = f'Buy {total_shortage:.1f} gallons of milk before the week starts'

    return {
        'has_sufficient': total_shortage == 0,
        'shortage_gallons': total_shortage,
        'by_type': by_type,
        'recommendation': recommendation,
    }
