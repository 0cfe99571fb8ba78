"""Tuition invoices: multi-week totals, numbering, payments and late fees."""
import math
from datetime import timedelta

RATE_TEMPLATES = {
    'infant_fulltime': {'name': 'Infant - Full Time', 'weekly_rate': 350, 'age_group': 'infant', 'days_per_week': 5},
    'infant_parttime': {'name': 'Infant - Part Time', 'weekly_rate': 225, 'age_group': 'infant', 'days_per_week': 3},
    'toddler_fulltime': {'name': 'Toddler - Full Time', 'weekly_rate': 300, 'age_group': 'toddler', 'days_per_week': 5},
    'toddler_parttime': {'name': 'Toddler - Part Time', 'weekly_rate': 195, 'age_group': 'toddler', 'days_per_week': 3},
    'twos_fulltime': {'name': 'Twos - Full Time', 'weekly_rate': 285, 'age_group': 'twos', 'days_per_week': 5},
    'twos_parttime': {'name': 'Twos - Part Time', 'weekly_rate': 185, 'age_group': 'twos', 'days_per_week': 3},
    'preschool_fulltime': {'name': 'Preschool - Full Time', 'weekly_rate': 275, 'age_group': 'preschool', 'days_per_week': 5},
    'preschool_parttime': {'name': 'Preschool - Part Time', 'weekly_rate': 175, 'age_group': 'preschool', 'days_per_week': 3},
    'schoolage_fulltime': {'name': 'School Age - Full Time', 'weekly_rate': 200, 'age_group': 'school_age', 'days_per_week': 5},
    'schoolage_parttime': {'name': 'School Age - Part Time', 'weekly_rate': 125, 'age_group': 'school_age', 'days_per_week': 3},
    'school_age_afterschool': {'name': 'School Age - After School', 'weekly_rate': 150, 'age_group': 'school_age', 'days_per_week': 5},
}

INVOICE_STATUSES = ('draft', 'sent', 'partial', 'paid', 'overdue', 'cancelled')
OPEN_STATUSES = ('sent', 'partial', 'overdue')
PAYMENT_METHODS = ('cash', 'check', 'card', 'ach', 'other')


def _num(value):
    return float(value or 0)


def daily_rate(weekly_rate, days_per_week):
    if not days_per_week or days_per_week <= 0:
        raise ValueError("Days per week must be greater than zero")
    return _num(weekly_rate) / days_per_week


def child_multi_week_total(weekly_rate, days_per_week, weeks):
    """Sum of daily rate x days attended across the billed weeks."""
    rate = daily_rate(weekly_rate, days_per_week)
    return round(sum(rate * _num(week.get('days')) for week in weeks), 2)


def build_multi_week_invoice(child_rates, weeks, discount=0, discount_percent=0, additional_items=()):
    """Build the totals and line items of a multi-week tuition invoice.

    child_rates: dicts with child_id, child_name, weekly_rate, days_per_week.
    weeks: dicts with week_start, week_end (dates) and days attended.
    A percentage discount takes precedence over a flat discount.
    """
    if not weeks:
        raise ValueError("At least one billing week is required")

    period_start = weeks[0]['week_start']
    period_end = weeks[-1]['week_end']
    total_days = sum(_num(week.get('days')) for week in weeks)

    line_items = []
    subtotal = 0.0
    for child in child_rates:
        days_per_week = child.get('days_per_week') or 5
        child_total = child_multi_week_total(child.get('weekly_rate'), days_per_week, weeks)
        subtotal += child_total
        line_items.append({
            'item_type': 'tuition',
            'description': f"Tuition - {child['child_name']} ({len(weeks)} week{'s' if len(weeks) > 1 else ''})",
            'quantity': total_days,
            'unit_price': round(daily_rate(child.get('weekly_rate'), days_per_week), 2),
            'total': child_total,
            'child_id': child.get('child_id'),
            'child_name': child['child_name'],
            'period_start': period_start.isoformat(),
            'period_end': period_end.isoformat(),
        })

    for item in additional_items or ():
        item_total = round(_num(item.get('total')), 2)
        subtotal += item_total
        line_items.append(dict(item, total=item_total))

    subtotal = round(subtotal, 2)
    discount_total = 0.0
    if _num(discount_percent) > 0:
        discount_total = round(subtotal * _num(discount_percent) / 100, 2)
        description = f"Discount ({_num(discount_percent):g}%)"
    elif _num(discount) > 0:
        discount_total = round(_num(discount), 2)
        description = 'Discount applied'
    discount_total = min(discount_total, subtotal)
    if discount_total > 0:
        line_items.append({
            'item_type': 'discount',
            'description': description,
            'quantity': 1,
            'unit_price': -discount_total,
            'total': -discount_total,
        })

    return {
        'subtotal': subtotal,
        'discount': discount_total,
        'total': round(subtotal - discount_total, 2),
        'line_items': line_items,
        'period_start': period_start,
        'period_end': period_end,
        'due_date': default_due_date(period_start),
    }


def next_invoice_number(last_number, year):
    return f"INV-{year}-{(last_number or 0) + 1:04d}"


def default_due_date(period_start):
    return period_start - timedelta(days=3)


def weeks_between(start, end):
    days = (end - start).days
    return max(1, math.ceil(days / 7))


def full_weeks(start, end, days_per_week=5):
    """weeks_between(start, end) consecutive weeks from start, each billed in full."""
    if end < start:
        raise ValueError("Period end must not be before period start")
    weeks = []
    for index in range(weeks_between(start, end)):
        week_start = start + timedelta(days=7 * index)
        weeks.append({'week_start': week_start, 'week_end': week_start + timedelta(days=6),
                      'days': days_per_week})
    return weeks


def split_weeks(start, end, days_per_week):
    """Seven-day billing weeks covering start..end; a short final week is capped."""
    if end < start:
        raise ValueError("Period end must not be before period start")
    weeks = []
    week_start = start
    while week_start <= end:
        week_end = min(week_start + timedelta(days=6), end)
        length = (week_end - week_start).days + 1
        weeks.append({'week_start': week_start, 'week_end': week_end,
                      'days': min(days_per_week, length)})
        week_start = week_end + timedelta(days=1)
    return weeks


def apply_payment(total, amount_paid, amount):
    """Return the new amount paid and invoice status after a payment."""
    if amount is None or amount <= 0:
        raise ValueError("Payment amount must be greater than zero")
    new_amount_paid = round(_num(amount_paid) + amount, 2)
    status = 'paid' if new_amount_paid >= _num(total) else 'partial'
    return new_amount_paid, status


def late_fee(total, fee_amount, fee_percent=None):
    if fee_percent:
        return round(_num(total) * fee_percent / 100, 2)
    return round(_num(fee_amount), 2)


def has_late_fee(line_items):
    return any(item.get('item_type') == 'late_fee' for item in line_items or [])


def late_fee_item(fee):
    return {
        'item_type': 'late_fee',
        'description': 'Late Payment Fee',
        'quantity': 1,
        'unit_price': fee,
        'total': fee,
    }


def billing_summary(invoices, payments):
    total_invoiced = round(sum(_num(inv.total) for inv in invoices), 2)
    total_collected = round(sum(_num(p.amount) for p in payments), 2)

    by_payment_method = {}
    for payment in payments:
        method = payment.payment_method or 'other'
        by_payment_method[method] = round(by_payment_method.get(method, 0) + _num(payment.amount), 2)

    by_status = {}
    for invoice in invoices:
        status = invoice.status or 'draft'
        by_status[status] = by_status.get(status, 0) + 1

    return {
        'total_invoiced': total_invoiced,
        'total_collected': total_collected,
        'total_outstanding': round(total_invoiced - total_collected, 2),
        'invoice_count': len(invoices),
        'payment_count': len(payments),
        'by_payment_method': by_payment_method,
        'by_status': by_status,
    }


def families_with_balance(invoices):
    """Outstanding balance per family over open invoices, largest first."""
    families = {}
    for invoice in invoices:
        if invoice.status not in OPEN_STATUSES:
            continue
        balance = _num(invoice.total) - _num(invoice.amount_paid)
        if balance <= 0:
            continue
        family = invoice.family
        entry = families.get(invoice.family_id)
        if entry is None:
            families[invoice.family_id] = {
                'family_id': invoice.family_id,
                'family_name': family.primary_contact_name if family else 'Unknown',
                'total_owed': balance,
                'oldest_invoice_date': invoice.created_at,
                'invoice_count': 1,
            }
        else:
            entry['total_owed'] += balance
            entry['invoice_count'] += 1
            if invoice.created_at and (entry['oldest_invoice_date'] is None
                                       or invoice.created_at < entry['oldest_invoice_date']):
                entry['oldest_invoice_date'] = invoice.created_at

    result = sorted(families.values(), key=lambda f: f['total_owed'], reverse=True)
    for entry in result:
        entry['total_owed'] = round(entry['total_owed'], 2)
    return result
