from app_models import db, Family, Guardian
from conftest import login, make_family, make_organization, make_user


def test_family_list_search_and_balance(owner_client, center):
    make_family(center['organization'], 'Nguyen')
    db.session.commit()

    page = owner_client.get('/families/')
    assert page.status_code == 200
    assert b'Garcia Family' in page.data
    assert b'Nguyen Family' in page.data

    filtered = owner_client.get('/families/?q=nguyen')
    assert b'Nguyen Family' in filtered.data
    assert b'Garcia Family' not in filtered.data


def test_create_and_edit_family(owner_client, center):
    response = owner_client.post('/families/new', data={
        'family_name': 'Lopez Family', 'primary_contact_name': 'Ana Lopez',
        'primary_contact_email': 'ana@example.com', 'status': 'active'})
    family = Family.query.filter_by(family_name='Lopez Family').one()
    assert response.headers['Location'].endswith(f'/families/{family.id}')
    assert family.organization_id == center['organization'].id

    owner_client.post(f'/families/{family.id}/edit', data={
        'family_name': 'Lopez-Diaz Family', 'primary_contact_name': 'Ana Lopez', 'status': 'inactive'})
    db.session.refresh(family)
    assert family.family_name == 'Lopez-Diaz Family'
    assert family.status == 'inactive'


def test_family_with_children_cannot_be_deleted(owner_client, center):
    family_id = center['family'].id
    response = owner_client.post(f'/families/{family_id}/delete', follow_redirects=True)
    assert b'cannot be deleted' in response.data
    assert db.session.get(Family, family_id) is not None

    empty = make_family(center['organization'], 'Smith')
    db.session.commit()
    empty_id = empty.id
    owner_client.post(f'/families/{empty_id}/delete')
    assert db.session.get(Family, empty_id) is None


def test_add_guardian_lowercases_and_rejects_duplicate_email(owner_client, center):
    family_id = center['family'].id
    owner_client.post(f'/families/{family_id}/guardians', data={
        'first_name': 'Jose', 'last_name': 'Garcia', 'email': 'Jose@Example.com', 'relationship_type': 'parent'})
    guardian = Guardian.query.filter_by(email='jose@example.com').one()
    assert guardian.family_id == family_id
    assert guardian.password_hash is None

    response = owner_client.post(f'/families/{family_id}/guardians', data={
        'first_name': 'Maria', 'last_name': 'Other', 'email': 'MARIA@example.com',
        'relationship_type': 'parent'}, follow_redirects=True)
    assert b'already uses maria@example.com' in response.data
    assert Guardian.query.count() == 2


def test_toggle_guardian_portal_access(owner_client, center):
    guardian_id = center['guardian'].id
    owner_client.post(f'/families/guardians/{guardian_id}/toggle')
    assert db.session.get(Guardian, guardian_id).is_active is False


def test_teacher_cannot_delete_family(client, center):
    make_user(center['organization'], 'teacher1', role='teacher')
    empty = make_family(center['organization'], 'Smith')
    db.session.commit()
    login(client, 'teacher1')
    client.post(f'/families/{empty.id}/delete')
    assert db.session.get(Family, empty.id) is not None


def test_other_organization_family_is_not_found(owner_client, center):
    other = make_organization(name='Other Center')
    family = make_family(other, 'Hidden')
    db.session.commit()
    assert owner_client.get(f'/families/{family.id}').status_code == 404
