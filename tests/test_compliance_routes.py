from datetime import date, timedelta

from app_models import db, FireDrill, StaffCertification
from conftest import login, make_user


def test_record_fire_drill(owner_client, center):
    response = owner_client.post('/compliance/fire-drills', data={
        'drill_date': date.today().isoformat(),
        'drill_type': 'fire',
        'duration_seconds': 95,
        'total_children': 12,
        'total_staff': 3,
        'evacuation_successful': 'y',
        'headcount_verified': 'y',
    })
    assert response.status_code == 302

    drill = FireDrill.query.one()
    assert drill.organization_id == center['organization'].id
    assert drill.duration_seconds == 95
    assert drill.headcount_verified is True
    assert drill.all_exits_used is False

    status = owner_client.get('/api/compliance/fire-drills').get_json()
    assert status['last_drill_date'] == date.today().isoformat()
    assert status['drills_this_month'] == 1


def test_annual_log_page(owner_client, center):
    db.session.add(FireDrill(organization_id=center['organization'].id, drill_date=date(2025, 3, 12),
                             drill_type='fire'))
    db.session.commit()
    response = owner_client.get('/compliance/fire-drills/annual?year=2025')
    assert response.status_code == 200
    assert b'Annual Drill Log' in response.data


def test_only_managers_delete_drills(client, center):
    drill = FireDrill(organization_id=center['organization'].id, drill_date=date.today() - timedelta(days=3),
                      drill_type='tornado')
    db.session.add(drill)
    make_user(center['organization'], 'teacher1', role='teacher')
    db.session.commit()

    login(client, 'teacher1')
    client.post(f'/compliance/fire-drills/{drill.id}/delete')
    assert db.session.get(FireDrill, drill.id) is not None

    client.get('/logout')
    login(client, 'owner1')
    client.post(f'/compliance/fire-drills/{drill.id}/delete')
    assert db.session.get(FireDrill, drill.id) is None


def test_background_screening_updates_profile(owner_client, center):
    teacher = make_user(center['organization'], 'teacher2', role='teacher')
    db.session.commit()
    owner_client.post('/compliance/staff', data={'user_id': teacher.id,
                                                 'certification_type': 'background_screening'})
    db.session.refresh(teacher)
    assert teacher.background_check_clear is True
    assert teacher.background_check_date == date.today()
    assert StaffCertification.query.filter_by(user_id=teacher.id).count() == 1


def test_in_service_hours_accumulate(owner_client, center):
    teacher = make_user(center['organization'], 'teacher3', role='teacher')
    db.session.commit()
    for hours in (4, 3.5):
        owner_client.post('/compliance/staff', data={'user_id': teacher.id,
                                                     'certification_type': 'annual_in_service',
                                                     'hours_completed': hours})
    db.session.refresh(teacher)
    assert teacher.annual_training_hours_completed == 7.5
    assert teacher.annual_training_fiscal_year is not None

    page = owner_client.get('/compliance/staff')
    assert page.status_code == 200
    assert b'Teacher3' in page.data
