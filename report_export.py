"""CSV export and printable invoice context."""
import csv
import io

INVOICE_STATUS_LABELS = {
    'draft': 'Draft',
    'sent': 'Sent',
    'partial': 'Partially Paid',
    'paid': 'Paid',
    'overdue': 'Overdue',
    'cancelled': 'Cancelled',
}

INVOICE_STATUS_COLORS = {
    'draft': '#6b7280',
    'sent': '#3b82f6',
    'partial': '#f59e0b',
    'paid': '#10b981',
    'overdue': '#ef4444',
    'cancelled': '#9ca3af',
}


def format_money(value):
    return "${:,.2f}".format(float(value or 0))


def to_csv(columns, rows, title=None, summary=None):
    """Render rows as CSV text.

    columns: list of (key, header) pairs. rows: dicts keyed by column key.
    summary: optional list of (label, value) pairs appended after a blank line.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\r\n')
    if title:
        writer.writerow([title])
        writer.writerow([])
    writer.writerow([header for _, header in columns])
    for row in rows:
        writer.writerow(['' if row.get(key) is None else row.get(key) for key, _ in columns])
    if summary:
        writer.writerow([])
        for label, value in summary:
            writer.writerow([label, value])
    return buffer.getvalue()


def invoice_context(invoice, organization):
    status = invoice.status or 'draft'
    family = invoice.family
    items = []
    for item in invoice.line_items or []:
        items.append(dict(item,
                          unit_price_display=format_money(item.get('unit_price')),
                          total_display=format_money(item.get('total'))))
    return {
        'invoice': invoice,
        'organization': organization,
        'family': family,
        'line_items': items,
        'status_label': INVOICE_STATUS_LABELS.get(status, status.title()),
        'status_color': INVOICE_STATUS_COLORS.get(status, INVOICE_STATUS_COLORS['draft']),
        'subtotal': format_money(invoice.subtotal),
        'discount': format_money(invoice.discount),
        'total': format_money(invoice.total),
        'amount_paid': format_money(invoice.amount_paid),
        'balance': format_money(invoice.balance),
        'has_discount': bool(invoice.discount),
        'has_payments': bool(invoice.amount_paid),
    }


def invoices_csv(invoices):
    columns = [
        ('invoice_number', 'Invoice #'),
        ('family', 'Family'),
        ('period', 'Period'),
        ('status', 'Status'),
        ('total', 'Total'),
        ('amount_paid', 'Paid'),
        ('balance', 'Balance'),
    ]
    rows = []
    for invoice in invoices:
        period = ''
        if invoice.period_start and invoice.period_end:
            period = f"{invoice.period_start:%m/%d/%Y} - {invoice.period_end:%m/%d/%Y}"
        rows.append({
            'invoice_number': invoice.invoice_number,
            'family': invoice.family.family_name if invoice.family else '',
            'period': period,
            'status': INVOICE_STATUS_LABELS.get(invoice.status, invoice.status),
            'total': f"{invoice.total or 0:.2f}",
            'amount_paid': f"{invoice.amount_paid or 0:.2f}",
            'balance': f"{invoice.balance:.2f}",
        })
    summary = [
        ('Total Invoiced', f"{sum(i.total or 0 for i in invoices):.2f}"),
        ('Total Paid', f"{sum(i.amount_paid or 0 for i in invoices):.2f}"),
        ('Outstanding', f"{sum(i.balance for i in invoices):.2f}"),
    ]
    return to_csv(columns, rows, title='Invoices', summary=summary)
