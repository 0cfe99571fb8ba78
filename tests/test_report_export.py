import csv
import io
from datetime import date
from types import SimpleNamespace

import report_export


def invoice(**overrides):
    values = dict(invoice_number='INV-2025-0001', status='partial', subtotal=500, discount=50, total=450,
                  amount_paid=200, balance=250, period_start=date(2025, 3, 3), period_end=date(2025, 3, 16),
                  family=SimpleNamespace(family_name='Garcia Family'),
                  line_items=[{'description': 'Tuition', 'quantity': 10, 'unit_price': 50, 'total': 500}])
    values.update(overrides)
    return SimpleNamespace(**values)


def test_format_money():
    assert report_export.format_money(1234.5) == '$1,234.50'
    assert report_export.format_money(None) == '$0.00'


def test_to_csv_with_title_and_summary():
    text = report_export.to_csv([('a', 'A'), ('b', 'B')], [{'a': 1, 'b': None}], title='Report',
                                summary=[('Total', '1.00')])
    assert text.split('\r\n')[:6] == ['Report', '', 'A,B', '1,', '', 'Total,1.00']


def test_invoice_context_formats_money_and_status():
    context = report_export.invoice_context(invoice(), organization=None)
    assert context['status_label'] == 'Partially Paid'
    assert context['balance'] == '$250.00'
    assert context['has_discount']
    assert context['line_items'][0]['unit_price_display'] == '$50.00'


def test_invoices_csv_rows_and_totals():
    rows = list(csv.reader(io.StringIO(report_export.invoices_csv([invoice()]))))
    assert rows[2] == ['Invoice #', 'Family', 'Period', 'Status', 'Total', 'Paid', 'Balance']
    assert rows[3] == ['INV-2025-0001', 'Garcia Family', '03/03/2025 - 03/16/2025', 'Partially Paid',
                       '450.00', '200.00', '250.00']
    assert ['Outstanding', '250.00'] in rows
