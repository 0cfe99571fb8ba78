from datetime import datetime, timedelta

from app_models import db, Guardian, Invoice
from conftest import GUARDIAN_PASSWORD, make_family, login
from portal_tokens import create_portal_token


def add_invoice(organization, family, number, status='sent', total=300):
    invoice = Invoice(organization_id=organization.id, family_id=family.id, invoice_number=number,
                      total=total, subtotal=total, status=status, line_items=[])
    db.session.add(invoice)
    db.session.commit()
    return invoice


def portal_login(client, email='maria@example.com', password=GUARDIAN_PASSWORD):
    return client.post('/portal/login', data={'email': email, 'password': password})


def test_guardian_sees_only_sent_family_invoices(client, center):
    organization, family = center['organization'], center['family']
    add_invoice(organization, family, 'INV-2025-0001')
    add_invoice(organization, family, 'INV-2025-0002', status='draft')
    other = add_invoice(organization, make_family(organization, 'Smith'), 'INV-2025-0003')

    response = portal_login(client)
    assert response.headers['Location'].endswith('/portal/')

    page = client.get('/portal/')
    assert b'INV-2025-0001' in page.data
    assert b'INV-2025-0002' not in page.data
    assert b'INV-2025-0003' not in page.data
    assert b'$300.00' in page.data
    assert client.get(f'/portal/invoices/{other.id}').status_code == 404


def test_wrong_portal_password(client, center):
    response = portal_login(client, password='nope-nope')
    assert response.status_code == 200
    assert b'Invalid email or password' in response.data


def test_guardian_cannot_use_staff_pages(client, center):
    portal_login(client)
    response = client.get('/billing/')
    assert response.status_code == 302
    assert '/login' in response.headers['Location']


def test_invite_leads_to_password_setup(client, app, center):
    guardian = Guardian(organization_id=center['organization'].id, family_id=center['family'].id,
                        first_name='Jose', last_name='Garcia', email='jose@example.com')
    db.session.add(guardian)
    db.session.commit()

    token = create_portal_token(guardian, app.config['SECRET_KEY'])
    response = client.get(f'/portal/invite/{token}')
    assert response.headers['Location'].endswith('/portal/set-password')

    client.post('/portal/set-password', data={'new_password': 'sunny-days-42',
                                              'confirm_password': 'sunny-days-42'})
    db.session.refresh(guardian)
    assert guardian.check_password('sunny-days-42')


def test_invalid_invite_token(client, center):
    response = client.get('/portal/invite/not-a-real-token')
    assert response.headers['Location'].endswith('/portal/login')


def test_staff_issue_invite_link(client, center):
    login(client, 'owner1')
    response = client.post(f"/portal/invites/{center['guardian'].id}", follow_redirects=True)
    assert response.status_code == 200
    assert b'/portal/invite/' in response.data


def test_invite_cannot_be_reused_after_password_is_set(client, app, center):
    guardian = Guardian(organization_id=center['organization'].id, family_id=center['family'].id,
                        first_name='Jose', last_name='Garcia', email='jose@example.com')
    db.session.add(guardian)
    db.session.commit()
    token = create_portal_token(guardian, app.config['SECRET_KEY'],
                                now=datetime.utcnow() - timedelta(minutes=5))

    client.get(f'/portal/invite/{token}')
    client.post('/portal/set-password', data={'new_password': 'sunny-days-42',
                                              'confirm_password': 'sunny-days-42'})
    client.get('/portal/logout')

    response = client.get(f'/portal/invite/{token}')
    assert response.headers['Location'].endswith('/portal/login')
    with client.session_transaction() as sess:
        assert 'guardian_id' not in sess


def test_invite_refused_for_blocked_center(client, app, center):
    token = create_portal_token(center['guardian'], app.config['SECRET_KEY'])
    center['organization'].is_blocked = True
    db.session.commit()

    response = client.get(f'/portal/invite/{token}')
    assert response.headers['Location'].endswith('/portal/login')
    with client.session_transaction() as sess:
        assert 'guardian_id' not in sess


def test_open_portal_session_ends_when_center_is_blocked(client, center):
    portal_login(client)
    assert client.get('/portal/').status_code == 200

    center['organization'].is_blocked = True
    db.session.commit()
    assert client.get('/portal/').status_code == 403
    with client.session_transaction() as sess:
        assert 'guardian_id' not in sess


def test_staff_invite_returns_to_family_page(client, center):
    login(client, 'owner1')
    response = client.post(f"/portal/invites/{center['guardian'].id}")
    assert response.headers['Location'].endswith(f"/families/{center['family'].id}")
