from datetime import date

from app_models import Attendance


def test_check_in_and_out(owner_client, center):
    ava = center['children'][0]
    owner_client.post(f'/attendance/check-in/{ava.id}')
    record = Attendance.query.filter_by(child_id=ava.id, date=date.today()).one()
    assert record.status == 'present'
    assert record.check_in_time is not None

    again = owner_client.post(f'/attendance/check-in/{ava.id}', follow_redirects=True)
    assert b'already checked in' in again.data
    assert Attendance.query.filter_by(child_id=ava.id).count() == 1

    owner_client.post(f'/attendance/check-out/{ava.id}')
    assert Attendance.query.filter_by(child_id=ava.id).one().check_out_time is not None


def test_check_out_without_check_in(owner_client, center):
    leo = center['children'][1]
    response = owner_client.post(f'/attendance/check-out/{leo.id}', follow_redirects=True)
    assert b'is not checked in' in response.data
    assert Attendance.query.count() == 0


def test_mark_absent(owner_client, center):
    leo = center['children'][1]
    owner_client.post(f'/attendance/absent/{leo.id}', data={'date': '2025-03-04'})
    record = Attendance.query.one()
    assert record.date == date(2025, 3, 4)
    assert record.status == 'absent'


def test_manual_entry_upserts_day(owner_client, center):
    ava = center['children'][0]
    data = {'child_id': ava.id, 'date': '2025-03-04', 'check_in': '08:00', 'check_out': '17:30'}
    owner_client.post('/attendance/manual', data=data)
    owner_client.post('/attendance/manual', data=dict(data, check_out='16:00'))

    record = Attendance.query.one()
    assert record.check_in_time.hour == 8
    assert (record.check_out_time.hour, record.check_out_time.minute) == (16, 0)


def test_manual_entry_rejects_check_out_before_check_in(owner_client, center):
    ava = center['children'][0]
    response = owner_client.post('/attendance/manual', data={
        'child_id': ava.id, 'date': '2025-03-04', 'check_in': '09:00', 'check_out': '08:00'},
        follow_redirects=True)
    assert b'Check out must be after check in' in response.data
    assert Attendance.query.count() == 0


def test_day_view_lists_children(owner_client, center):
    page = owner_client.get('/attendance/?date=2025-03-04')
    assert page.status_code == 200
    assert b'Attendance for 2025-03-04' in page.data
    assert b'Ava' in page.data
