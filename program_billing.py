"""Invoice line items for VPK, School Readiness and private tuition children."""
import math

PROGRAM_TYPES = ('private', 'vpk', 'vpk_wraparound', 'school_readiness', 'sr_copay')

VPK_SCHOOL_YEAR_HOURS_PER_DAY = 3
VPK_SUMMER_HOURS_PER_DAY = 6
DEFAULT_WRAPAROUND_HOURLY_RATE = 10
DEFAULT_SR_EXCESS_HOURLY_RATE = 12
DEFAULT_PRIVATE_WEEKLY_RATE = 250


def period_metrics(start, end):
    """Days (inclusive), weeks and approximate weekdays of a billing period."""
    days = (end - start).days + 1
    if days <= 0:
        raise ValueError("Period end must not be before period start")
    return {
        'days': days,
        'weeks': math.ceil(days / 7),
        'weekdays': math.ceil(days * 5 / 7),
    }


def school_year(today):
    """School years start in August, e.g. '2025-2026'."""
    if today.month >= 8:
        return f"{today.year}-{today.year + 1}"
    return f"{today.year - 1}-{today.year}"


def _item(child_data, item_type, description, quantity, unit_price, start, end, program_type=None):
    return {
        'item_type': item_type,
        'description': description,
        'quantity': quantity,
        'unit_price': unit_price,
        'total': round(quantity * unit_price, 2),
        'child_id': child_data.get('child_id'),
        'child_name': child_data.get('child_name'),
        'program_type': program_type or child_data.get('program_type'),
        'period_start': start.isoformat(),
        'period_end': end.isoformat(),
    }


def _plural_weeks(weeks):
    return f"{weeks} week{'s' if weeks > 1 else ''}"


def vpk_wraparound_item(child_data, start, end, weekdays):
    """Hours beyond the state-funded VPK hours are billed hourly."""
    if child_data.get('program_type') != 'vpk_wraparound':
        return None
    if child_data.get('vpk_schedule_type') == 'summer':
        hours_per_day = VPK_SUMMER_HOURS_PER_DAY
    else:
        hours_per_day = VPK_SCHOOL_YEAR_HOURS_PER_DAY
    wraparound_hours = max(0, (child_data.get('total_hours') or 0) - hours_per_day * weekdays)
    if wraparound_hours <= 0:
        return None
    rate = child_data.get('hourly_rate') or DEFAULT_WRAPAROUND_HOURLY_RATE
    item = _item(child_data, 'vpk_wraparound',
                 f"VPK Wrap-Around - {child_data.get('child_name')} ({start:%b %d} - {end:%b %d})",
                 round(wraparound_hours, 2), rate, start, end)
    item['total'] = round(wraparound_hours * rate, 2)
    return item


def sr_copay_item(child_data, start, end, weeks):
    if child_data.get('program_type') != 'sr_copay':
        return None
    copay = child_data.get('sr_copay_amount') or 0
    if copay <= 0:
        return None
    if child_data.get('sr_copay_frequency') == 'weekly':
        quantity = weeks
        description = f"SR Co-Pay - {child_data.get('child_name')} ({_plural_weeks(weeks)})"
    else:
        quantity = 1
        description = f"SR Monthly Co-Pay - {child_data.get('child_name')}"
    return _item(child_data, 'sr_copay', description, quantity, copay, start, end, 'sr_copay')


def sr_excess_hours_item(child_data, start, end, weeks):
    """Hours used beyond the authorized School Readiness hours."""
    if child_data.get('program_type') not in ('school_readiness', 'sr_copay'):
        return None
    authorized = (child_data.get('sr_authorized_hours_weekly') or 0) * weeks
    excess_hours = max(0, (child_data.get('sr_hours_used') or 0) - authorized)
    if excess_hours <= 0:
        return None
    rate = child_data.get('hourly_rate') or DEFAULT_SR_EXCESS_HOURLY_RATE
    item = _item(child_data, 'sr_excess_hours',
                 f"SR Additional Hours - {child_data.get('child_name')} ({round(excess_hours, 1)} hrs)",
                 round(excess_hours, 2), rate, start, end)
    item['total'] = round(excess_hours * rate, 2)
    return item


def private_tuition_item(child_data, start, end, weeks):
    if child_data.get('program_type') != 'private':
        return None
    rate = child_data.get('weekly_rate') or DEFAULT_PRIVATE_WEEKLY_RATE
    return _item(child_data, 'tuition',
                 f"Tuition - {child_data.get('child_name')} ({_plural_weeks(weeks)})",
                 weeks, rate, start, end, 'private')


def program_billing(child_data, start, end):
    """Line items, subtotal and per-category breakdown for one child."""
    metrics = period_metrics(start, end)
    weeks = metrics['weeks']
    program_type = child_data.get('program_type') or 'private'
    if program_type not in PROGRAM_TYPES:
        raise ValueError(f"Unknown program type: {program_type}")

    candidates = []
    if program_type == 'private':
        candidates.append(('private_tuition_total', private_tuition_item(child_data, start, end, weeks)))
    elif program_type == 'vpk_wraparound':
        candidates.append(('vpk_wraparound_total',
                           vpk_wraparound_item(child_data, start, end, metrics['weekdays'])))
    elif program_type == 'school_readiness':
        candidates.append(('sr_excess_hours_total', sr_excess_hours_item(child_data, start, end, weeks)))
    elif program_type == 'sr_copay':
        candidates.append(('sr_copay_total', sr_copay_item(child_data, start, end, weeks)))
        candidates.append(('sr_excess_hours_total', sr_excess_hours_item(child_data, start, end, weeks)))
    # plain VPK hours are state-funded and never billed to the family

    line_items = []
    breakdown = {}
    subtotal = 0.0
    for key, item in candidates:
        if item is None:
            continue
        line_items.append(item)
        subtotal += item['total']
        breakdown[key] = item['total']

    return {'line_items': line_items, 'subtotal': round(subtotal, 2), 'breakdown': breakdown}


def family_program_billing(children_data, start, end):
    line_items = []
    breakdown = {}
    subtotal = 0.0
    for child_data in children_data:
        result = program_billing(child_data, start, end)
        line_items.extend(result['line_items'])
        subtotal += result['subtotal']
        for key, amount in result['breakdown'].items():
            breakdown[key] = round(breakdown.get(key, 0) + amount, 2)
    return {'line_items': line_items, 'subtotal': round(subtotal, 2), 'breakdown': breakdown}


def attendance_hours(attendance_rows):
    """Hours between check-in and check-out; open records are skipped."""
    total = 0.0
    for row in attendance_rows:
        if row.check_in_time and row.check_out_time:
            total += (row.check_out_time - row.check_in_time).total_seconds() / 3600
    return round(total, 2)
