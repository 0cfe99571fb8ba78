from app import create_default_superadmin
from app_models import db, SalesLead, Invoice
from conftest import login


def superadmin_client(client, app):
    create_default_superadmin()
    login(client, app.config['SUPERADMIN_USERNAME'], app.config['SUPERADMIN_PASSWORD'])
    return client


def test_capture_lead(client, app):
    response = client.post('/api/leads', json={
        'name': 'Dana Brooks',
        'email': 'dana@littlesprouts.com',
        'company_name': 'Little Sprouts',
        'daycare_size': '50-100',
        'current_pain_points': ['billing takes too long'],
        'source': 'landing_page',
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body['success'] is True
    assert body['lead']['status'] == 'new'
    assert body['lead']['score'] > 0
    assert SalesLead.query.count() == 1


def test_invalid_lead_is_rejected(client, app):
    response = client.post('/api/leads', json={'email': 'not-an-email'})
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'Invalid lead data'
    assert 'Invalid email format' in body['details']

    non_json = client.post('/api/leads', data='name=Dana')
    assert non_json.status_code == 400
    assert SalesLead.query.count() == 0


def test_listing_leads_requires_superadmin(client, app):
    response = client.get('/api/leads')
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Authentication required'


def test_list_leads_with_filters(client, app):
    db.session.add_all([
        SalesLead(name='A', email='a@example.com', source='chat_widget', score=20, status='new'),
        SalesLead(name='B', email='b@example.com', source='referral', score=80, status='contacted'),
        SalesLead(name='C', email='c@example.com', source='referral', score=50, status='new'),
    ])
    db.session.commit()
    superadmin_client(client, app)

    body = client.get('/api/leads?source=referral&sortBy=score&sortOrder=asc').get_json()
    assert body['total'] == 2
    assert [lead['name'] for lead in body['leads']] == ['C', 'B']

    assert client.get('/api/leads?limit=500').status_code == 400
    assert client.get('/api/leads?status=bogus').status_code == 400


def test_plan_pricing(client, app):
    body = client.get('/api/plans/pricing?plan=professional&children=40').get_json()
    assert body['monthly'] == 100
    assert body['annual'] == 996
    assert body['savings'] == 204
    assert 'food_program' in body['features']

    minimum = client.get('/api/plans/pricing?plan=starter&children=3').get_json()
    assert minimum['monthly'] == 29

    assert client.get('/api/plans/pricing?plan=platinum').status_code == 400


def test_billing_summary(owner_client, center):
    db.session.add(Invoice(organization_id=center['organization'].id, family_id=center['family'].id,
                           invoice_number='INV-2025-0001', total=400, amount_paid=100, status='partial'))
    db.session.commit()
    body = owner_client.get('/api/billing/summary').get_json()
    assert body['total_invoiced'] == 400
    assert body['families_with_balance'][0]['total_owed'] == 300


def test_cacfp_summary(owner_client, center):
    body = owner_client.get('/api/food-program/cacfp?year=2025&month=3').get_json()
    assert body['month'] == '2025-03'
    assert body['total_reimbursement'] == 0
    assert owner_client.get('/api/food-program/cacfp?month=13').status_code == 400


def test_health(client, app):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['database'] == 'ok'


def test_cacfp_summary_rejects_out_of_range_year(owner_client, center):
    response = owner_client.get('/api/food-program/cacfp?year=0&month=3')
    assert response.status_code == 400
    assert 'year' in response.get_json()['error']
