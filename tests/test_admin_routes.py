from datetime import datetime

from app import create_default_superadmin
from app_models import db, Organization, SalesLead, Subscription, User
from conftest import login, make_organization


def superadmin_login(client, app):
    create_default_superadmin()
    login(client, app.config['SUPERADMIN_USERNAME'], app.config['SUPERADMIN_PASSWORD'])


def test_create_organization_starts_trial(client, app):
    superadmin_login(client, app)
    response = client.post('/admin/organizations/new', data={
        'name': 'Bright Beginnings',
        'owner_first_name': 'Tasha',
        'owner_last_name': 'Reid',
        'owner_username': 'tasha',
        'owner_password': 'temporary-pass',
        'cacfp_tier': 'tier2',
    })
    assert response.status_code == 302

    organization = Organization.query.filter_by(name='Bright Beginnings').one()
    assert organization.subscription_status == 'trial'
    assert organization.cacfp_tier == 'tier2'
    owner = User.query.filter_by(username='tasha').one()
    assert owner.organization_id == organization.id
    assert owner.first_login is True
    subscription = Subscription.query.filter_by(organization_id=organization.id).one()
    assert subscription.plan == 'trial'
    assert subscription.created_by == app.config['SUPERADMIN_USERNAME']

    duplicate = client.post('/admin/organizations/new', data={
        'name': 'Another', 'owner_first_name': 'T', 'owner_last_name': 'R',
        'owner_username': 'tasha', 'owner_password': 'temporary-pass', 'cacfp_tier': 'tier1'})
    assert b'already exists' in duplicate.data


def test_block_and_unblock(client, app):
    organization = make_organization(name='Blocked Center')
    db.session.commit()
    superadmin_login(client, app)

    client.post(f'/admin/organizations/{organization.id}/block')
    db.session.refresh(organization)
    assert organization.is_blocked is True

    client.post(f'/admin/organizations/{organization.id}/unblock')
    db.session.refresh(organization)
    assert organization.is_blocked is False


def test_update_subscription(client, app):
    organization = make_organization(name='Upgrading Center', plan='trial', subscription_status='trial')
    db.session.add(Subscription(organization_id=organization.id, plan='trial',
                                start_date=datetime.utcnow(),
                                created_by='superadmin'))
    db.session.commit()
    superadmin_login(client, app)

    client.post(f'/admin/organizations/{organization.id}/subscription', data={
        'plan': 'enterprise', 'billing_cycle': 'annual', 'amount_paid': 1200})
    db.session.refresh(organization)
    assert organization.plan == 'enterprise'
    assert organization.subscription_status == 'active'
    active = Subscription.query.filter_by(organization_id=organization.id, is_active=True).all()
    assert [s.plan for s in active] == ['enterprise']
    assert active[0].days_remaining() >= 364


def test_lead_status_update(client, app):
    lead = SalesLead(name='Dana', email='dana@example.com', status='new')
    db.session.add(lead)
    db.session.commit()
    superadmin_login(client, app)

    assert client.get(f'/admin/leads/{lead.id}').status_code == 200
    client.post(f'/admin/leads/{lead.id}', data={'status': 'contacted', 'notes': 'Called Tuesday'})
    db.session.refresh(lead)
    assert lead.status == 'contacted'
    assert lead.notes == 'Called Tuesday'


def test_admin_pages_need_superadmin(owner_client):
    response = owner_client.get('/admin/')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
