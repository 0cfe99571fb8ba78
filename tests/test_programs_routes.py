from app_models import db, SchoolCalendar, SREnrollment
from conftest import login, make_organization, make_user


def enrollment_data(child, **overrides):
    data = {'child_id': child.id, 'case_number': 'SR-1001', 'school_year': '2025-2026',
            'rate_type': 'after_school', 'authorized_hours_weekly': 25, 'copay_amount': 15,
            'copay_frequency': 'weekly'}
    data.update(overrides)
    return data


def test_enroll_school_readiness_child_once(owner_client, center):
    ava = center['children'][0]
    ava.program_type = 'school_readiness'
    db.session.commit()

    owner_client.post('/programs/sr-enrollments', data=enrollment_data(ava))
    enrollment = SREnrollment.query.one()
    assert enrollment.status == 'active'
    assert enrollment.organization_id == center['organization'].id

    duplicate = owner_client.post('/programs/sr-enrollments', data=enrollment_data(ava), follow_redirects=True)
    assert b'already has an active enrollment' in duplicate.data
    assert SREnrollment.query.count() == 1

    page = owner_client.get('/programs/sr-enrollments')
    assert b'SR-1001' in page.data
    assert b'$137.50' in page.data


def test_private_child_cannot_be_enrolled(owner_client, center):
    response = owner_client.post('/programs/sr-enrollments', data=enrollment_data(center['children'][0]))
    assert response.status_code == 200
    assert SREnrollment.query.count() == 0


def test_end_enrollment(owner_client, center):
    ava = center['children'][0]
    enrollment = SREnrollment(organization_id=center['organization'].id, child_id=ava.id,
                              school_year='2025-2026', status='active')
    db.session.add(enrollment)
    db.session.commit()
    owner_client.post(f'/programs/sr-enrollments/{enrollment.id}/end')
    db.session.refresh(enrollment)
    assert enrollment.status == 'ended'


def test_saving_calendar_activates_only_that_year(owner_client, center):
    owner_client.post('/programs/calendar', data={
        'school_year': '2024-2025', 'christmas_break_start': '2024-12-20', 'christmas_break_end': '2025-01-03'})
    owner_client.post('/programs/calendar', data={
        'school_year': '2025-2026', 'summer_start': '2026-06-01', 'summer_end': '2026-08-09'})

    calendars = {c.school_year: c for c in SchoolCalendar.query.all()}
    assert not calendars['2024-2025'].is_active
    assert calendars['2025-2026'].is_active
    assert calendars['2025-2026'].summer_end.isoformat() == '2026-08-09'


def test_calendar_break_needs_both_dates(owner_client, center):
    response = owner_client.post('/programs/calendar', data={
        'school_year': '2025-2026', 'spring_break_start': '2026-03-16'})
    assert response.status_code == 200
    assert b'Enter both the start and end dates' in response.data
    assert SchoolCalendar.query.count() == 0


def test_starter_plan_has_no_programs(client, app):
    organization = make_organization(name='Small Center', plan='starter')
    make_user(organization, 'starterowner')
    db.session.commit()
    login(client, 'starterowner')
    response = client.get('/programs/sr-enrollments')
    assert response.status_code == 302
    assert client.get('/families/').status_code == 200
