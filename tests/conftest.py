from datetime import date, datetime, timedelta

import pytest

from app import create_app
from app_models import db, Child, Family, Guardian, Organization, User

OWNER_PASSWORD = 'owner-pass-123'
GUARDIAN_PASSWORD = 'guardian-pass-123'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_organization(name='Sunshine Learning Center', plan='enterprise', **kwargs):
    organization = Organization(
        name=name,
        plan=plan,
        subscription_status=kwargs.pop('subscription_status', 'active'),
        subscription_end_date=kwargs.pop('subscription_end_date', datetime.utcnow() + timedelta(days=365)),
        **kwargs
    )
    db.session.add(organization)
    db.session.flush()
    return organization


def make_user(organization, username, role='owner', password=OWNER_PASSWORD, **kwargs):
    user = User(
        organization_id=organization.id if organization else None,
        username=username,
        first_name=kwargs.pop('first_name', username.title()),
        last_name=kwargs.pop('last_name', 'Staff'),
        role=role,
        first_login=kwargs.pop('first_login', False),
        password_change_required=kwargs.pop('password_change_required', False),
        **kwargs
    )
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    return user


def make_family(organization, name='Garcia'):
    family = Family(organization_id=organization.id, family_name=f'{name} Family',
                    primary_contact_name=f'Maria {name}', primary_contact_email=f'{name.lower()}@example.com')
    db.session.add(family)
    db.session.flush()
    return family


def make_child(organization, family, first_name, **kwargs):
    child = Child(
        organization_id=organization.id,
        family_id=family.id,
        first_name=first_name,
        last_name=family.family_name.split()[0],
        date_of_birth=kwargs.pop('date_of_birth', date.today() - timedelta(days=3 * 365)),
        weekly_rate=kwargs.pop('weekly_rate', 250.0),
        days_per_week=kwargs.pop('days_per_week', 5),
        **kwargs
    )
    db.session.add(child)
    db.session.flush()
    return child


@pytest.fixture
def center(app):
    """An enterprise organization with an owner, one family, two children and a guardian."""
    organization = make_organization()
    owner = make_user(organization, 'owner1', role='owner')
    family = make_family(organization)
    children = [make_child(organization, family, 'Ava'), make_child(organization, family, 'Leo')]
    guardian = Guardian(organization_id=organization.id, family_id=family.id, first_name='Maria',
                        last_name='Garcia', email='maria@example.com')
    guardian.set_password(GUARDIAN_PASSWORD)
    db.session.add(guardian)
    db.session.commit()
    return {'organization': organization, 'owner': owner, 'family': family,
            'children': children, 'guardian': guardian}


def login(client, username, password=OWNER_PASSWORD):
    return client.post('/login', data={'username': username, 'password': password})


@pytest.fixture
def owner_client(client, center):
    login(client, center['owner'].username)
    return client
