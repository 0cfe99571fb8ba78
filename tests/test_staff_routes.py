from app_models import db, User
from conftest import login, make_user


def staff_data(**overrides):
    data = {'first_name': 'Rosa', 'last_name': 'Diaz', 'email': 'rosa@example.com', 'role': 'teacher',
            'hire_date': '2024-08-01', 'status': 'active'}
    data.update(overrides)
    return data


def test_staff_list_shows_compliance(owner_client, center):
    make_user(center['organization'], 'teacher1', role='teacher', first_name='Rosa')
    db.session.commit()
    page = owner_client.get('/staff/')
    assert page.status_code == 200
    assert b'Rosa Staff' in page.data
    assert b'Background Check' in page.data


def test_create_staff_requires_password_change(owner_client, center):
    response = owner_client.post('/staff/new', data=staff_data(username='rosa', password='temporary-pass'))
    assert response.headers['Location'].endswith('/staff/')

    member = User.query.filter_by(username='rosa').one()
    assert member.organization_id == center['organization'].id
    assert member.first_login and member.password_change_required
    assert member.check_password('temporary-pass')


def test_duplicate_username_rejected(owner_client, center):
    response = owner_client.post('/staff/new', data=staff_data(username='owner1', password='temporary-pass'))
    assert response.status_code == 200
    assert b'already taken' in response.data
    assert User.query.filter_by(username='owner1').count() == 1


def test_owner_cannot_be_deactivated(owner_client, center):
    owner = center['owner']
    response = owner_client.post(f'/staff/{owner.id}/edit', data=staff_data(
        first_name=owner.first_name, role='owner', status='inactive'))
    assert response.status_code == 200
    db.session.refresh(owner)
    assert owner.status == 'active'
    assert owner.role == 'owner'


def test_edit_staff_role(owner_client, center):
    member = make_user(center['organization'], 'teacher1', role='teacher')
    db.session.commit()
    owner_client.post(f'/staff/{member.id}/edit', data=staff_data(role='lead_teacher', is_director='y'))
    db.session.refresh(member)
    assert member.role == 'lead_teacher'
    assert member.is_director is True


def test_teacher_cannot_add_staff(client, center):
    make_user(center['organization'], 'teacher1', role='teacher')
    db.session.commit()
    login(client, 'teacher1')
    response = client.post('/staff/new', data=staff_data(username='sneaky', password='temporary-pass'))
    assert response.headers['Location'].endswith('/')
    assert User.query.filter_by(username='sneaky').count() == 0
