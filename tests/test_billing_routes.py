from datetime import date, timedelta

from app_models import db, Invoice, Payment
from conftest import make_child, make_family


def make_invoice(center, status='sent', total=500.0, **kwargs):
    invoice = Invoice(organization_id=center['organization'].id, family_id=center['family'].id,
                      invoice_number=kwargs.pop('invoice_number', 'INV-2025-0100'), subtotal=total,
                      total=total, amount_paid=0.0, status=status,
                      line_items=[{'item_type': 'tuition', 'description': 'Tuition', 'quantity': 10,
                                   'unit_price': 50, 'total': total}],
                      **kwargs)
    db.session.add(invoice)
    db.session.commit()
    return invoice


def test_create_multi_week_invoice(owner_client, center):
    response = owner_client.post('/billing/invoices/new', data={
        'family_id': center['family'].id,
        'child_ids': [c.id for c in center['children']],
        'period_start': '2025-03-03',
        'period_end': '2025-03-16',
        'days_per_week_attended': 5,
        'billing_period': 'weekly',
        'discount': 0,
        'discount_percent': 10,
        'registration_fee': 0,
    })
    assert response.status_code == 302

    invoice = Invoice.query.one()
    assert invoice.invoice_number == f'INV-{date.today().year}-0001'
    assert invoice.status == 'draft'
    assert invoice.subtotal == 1000
    assert invoice.discount == 100
    assert invoice.total == 900
    assert invoice.due_date == date(2025, 2, 28)
    assert len(invoice.line_items) == 3


def test_invoice_numbers_increase(owner_client, center):
    data = {'family_id': center['family'].id, 'child_ids': [center['children'][0].id],
            'period_start': '2025-03-03', 'period_end': '2025-03-09', 'days_per_week_attended': 5,
            'billing_period': 'weekly'}
    owner_client.post('/billing/invoices/new', data=data)
    owner_client.post('/billing/invoices/new', data=data)
    numbers = sorted(i.invoice_number for i in Invoice.query.all())
    assert numbers[-1].endswith('-0002')


def test_invoice_period_must_be_ordered(owner_client, center):
    response = owner_client.post('/billing/invoices/new', data={
        'family_id': center['family'].id, 'child_ids': [center['children'][0].id],
        'period_start': '2025-03-16', 'period_end': '2025-03-03', 'days_per_week_attended': 5,
        'billing_period': 'weekly'})
    assert response.status_code == 200
    assert Invoice.query.count() == 0


def test_partial_then_full_payment(owner_client, center):
    invoice = make_invoice(center)
    owner_client.post(f'/billing/invoices/{invoice.id}/payments', data={'amount': 200, 'payment_method': 'cash'})
    db.session.refresh(invoice)
    assert invoice.status == 'partial'
    assert invoice.amount_paid == 200

    owner_client.post(f'/billing/invoices/{invoice.id}/payments', data={'amount': 300, 'payment_method': 'check'})
    db.session.refresh(invoice)
    assert invoice.status == 'paid'
    assert invoice.paid_at is not None
    assert Payment.query.count() == 2


def test_payment_on_cancelled_invoice_is_refused(owner_client, center):
    invoice = make_invoice(center, status='cancelled')
    owner_client.post(f'/billing/invoices/{invoice.id}/payments', data={'amount': 50, 'payment_method': 'cash'})
    assert Payment.query.count() == 0


def test_send_and_cancel(owner_client, center):
    invoice = make_invoice(center, status='draft')
    owner_client.post(f'/billing/invoices/{invoice.id}/send')
    db.session.refresh(invoice)
    assert invoice.status == 'sent'
    owner_client.post(f'/billing/invoices/{invoice.id}/cancel')
    db.session.refresh(invoice)
    assert invoice.status == 'cancelled'


def test_late_fees_applied_once(owner_client, center):
    invoice = make_invoice(center, due_date=date.today() - timedelta(days=1))
    current = make_invoice(center, invoice_number='INV-2025-0101', due_date=date.today() + timedelta(days=5))

    owner_client.post('/billing/late-fees', data={'fee_amount': 25})
    owner_client.post('/billing/late-fees', data={'fee_amount': 25})
    db.session.refresh(invoice)
    db.session.refresh(current)
    assert invoice.status == 'overdue'
    assert invoice.total == 525
    assert [i['item_type'] for i in invoice.line_items].count('late_fee') == 1
    assert current.status == 'sent'
    assert current.total == 500


def test_invoice_document_and_exports(owner_client, center):
    invoice = make_invoice(center)
    page = owner_client.get(f'/billing/invoices/{invoice.id}/document')
    assert b'INV-2025-0100' in page.data

    download = owner_client.get(f'/billing/invoices/{invoice.id}/document?download=1')
    assert 'attachment' in download.headers['Content-Disposition']

    export = owner_client.get('/billing/export.csv')
    assert export.mimetype == 'text/csv'
    assert b'INV-2025-0100' in export.data


def test_summary_page(owner_client, center):
    make_invoice(center)
    response = owner_client.get('/billing/summary')
    assert response.status_code == 200
    assert b'Families with a Balance' in response.data


def test_program_billing_creates_invoice(owner_client, center):
    query = f"family_id={center['family'].id}&start=2025-03-01&end=2025-03-31"
    preview = owner_client.get(f'/billing/program-billing?{query}')
    assert preview.status_code == 200
    assert b'Tuition - Ava' in preview.data

    owner_client.post('/billing/program-billing', data={'family_id': center['family'].id,
                                                        'start': '2025-03-01', 'end': '2025-03-31'})
    invoice = Invoice.query.one()
    assert invoice.total == 2500
    assert invoice.billing_period == 'monthly'


def test_income_page(owner_client, center):
    response = owner_client.get('/billing/income?year=2025&month=4')
    assert response.status_code == 200
    assert b'Projected Income' in response.data


def test_income_rejects_out_of_range_year(owner_client, center):
    response = owner_client.get('/billing/income?year=0&month=4')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/billing/income')


def test_invoice_sequence_is_numeric_past_9999(owner_client, center):
    year = date.today().year
    for sequence in ('0002', '9999', '10000'):
        make_invoice(center, invoice_number=f'INV-{year}-{sequence}')
    assert Invoice.last_sequence(center['organization'].id, year) == 10000

    owner_client.post('/billing/invoices/new', data={
        'family_id': center['family'].id, 'child_ids': [center['children'][0].id],
        'period_start': '2025-03-03', 'period_end': '2025-03-09', 'days_per_week_attended': 5,
        'billing_period': 'weekly'})
    assert Invoice.query.filter_by(invoice_number=f'INV-{year}-10001').count() == 1


def test_bulk_invoices_one_per_family(owner_client, center):
    organization = center['organization']
    other = make_family(organization, 'Nguyen')
    make_child(organization, other, 'Mai', weekly_rate=300.0, days_per_week=3)
    empty = make_family(organization, 'Smith')
    db.session.commit()

    response = owner_client.post('/billing/invoices/bulk', data={
        'family_ids': [center['family'].id, other.id, empty.id],
        'period_start': '2025-03-03',
        'period_end': '2025-03-14',
        'billing_period': 'biweekly',
    })
    assert response.status_code == 200
    assert b'2 invoice(s) created, 1 failed.' in response.data
    assert b'Smith Family: No active children found' in response.data

    garcia = Invoice.query.filter_by(family_id=center['family'].id).one()
    assert garcia.total == 1000
    assert garcia.period_start == date(2025, 3, 3)
    assert garcia.period_end == date(2025, 3, 16)
    assert garcia.billing_period == 'biweekly'
    nguyen = Invoice.query.filter_by(family_id=other.id).one()
    assert nguyen.total == 600
    assert nguyen.invoice_number != garcia.invoice_number


def test_bulk_invoice_page_renders(owner_client, center):
    response = owner_client.get('/billing/invoices/bulk')
    assert response.status_code == 200
    assert b'Garcia Family' in response.data
