from datetime import date, timedelta
from types import SimpleNamespace

import pytest

import compliance


def staff(**overrides):
    profile = dict(role='teacher', is_director=False, has_45_hours_training=False, has_40_hours_initial=True,
                   hire_date=date(2020, 1, 1), background_check_clear=True, has_cda_credential=False,
                   cda_expiration_date=None, annual_training_hours_completed=10,
                   annual_training_fiscal_year='2024-2025')
    profile.update(overrides)
    return SimpleNamespace(**profile)


def test_fire_drill_status_reports_missed_months():
    drills = [date(2025, 1, 10), date(2025, 2, 5), date(2025, 3, 20), date(2024, 12, 1)]
    status = compliance.fire_drill_status(drills, date(2025, 3, 15))
    assert not status['is_compliant']
    assert status['months_missed'] == ['2025-03']
    assert status['drills_this_year'] == 2
    assert status['drills_this_month'] == 0
    assert status['last_drill_date'] == date(2025, 2, 5)


def test_fire_drill_status_compliant():
    status = compliance.fire_drill_status([date(2025, 1, 3), date(2025, 2, 3)], date(2025, 2, 20))
    assert status['is_compliant']
    assert status['months_missed'] == []


def test_fire_drill_status_without_drills():
    status = compliance.fire_drill_status([], date(2025, 2, 1))
    assert status['months_missed'] == ['2025-01', '2025-02']
    assert status['last_drill_date'] is None


def test_annual_drill_coverage():
    drills = [date(2025, m, 1) for m in range(1, 13)] + [date(2025, 5, 20), date(2024, 5, 1)]
    coverage = compliance.annual_drill_coverage(drills, 2025)
    assert coverage['is_complete']
    assert coverage['total_drills'] == 13
    assert coverage['drills_per_month'][5] == 2


def test_fiscal_year_starts_in_july():
    assert compliance.fiscal_year(date(2025, 7, 1)) == '2025-2026'
    assert compliance.fiscal_year(date(2025, 6, 30)) == '2024-2025'


def test_fully_trained_teacher_is_compliant():
    result = compliance.staff_compliance(staff(), date(2025, 1, 15))
    assert result == {'is_compliant': True, 'missing_requirements': [], 'expiring_soon': [],
                      'compliance_score': 100}


def test_director_missing_everything():
    today = date(2025, 1, 15)
    profile = staff(role='director', has_40_hours_initial=False, hire_date=today - timedelta(days=400),
                    background_check_clear=False)
    result = compliance.staff_compliance(profile, today)
    assert not result['is_compliant']
    assert len(result['missing_requirements']) == 3
    assert result['compliance_score'] == 25


def test_initial_training_due_soon_is_a_warning():
    today = date(2025, 1, 15)
    result = compliance.staff_compliance(staff(has_40_hours_initial=False, hire_date=today - timedelta(days=300)),
                                         today)
    assert result['is_compliant']
    assert result['compliance_score'] == 90


def test_expired_cda_is_missing():
    today = date(2025, 1, 15)
    result = compliance.staff_compliance(staff(has_cda_credential=True, cda_expiration_date=date(2025, 1, 1)), today)
    assert 'CDA Credential (EXPIRED)' in result['missing_requirements']
    assert result['compliance_score'] == 85


def test_in_service_hours_flagged_only_late_in_fiscal_year():
    behind = staff(annual_training_hours_completed=4)
    assert compliance.staff_compliance(behind, date(2025, 1, 15))['expiring_soon'] == []
    result = compliance.staff_compliance(behind, date(2025, 5, 1))
    assert result['expiring_soon'] == ['Annual In-Service (4/10 hours)']
    assert result['compliance_score'] == 95


def test_organization_compliance_stats():
    results = [
        {'is_compliant': True, 'missing_requirements': [], 'expiring_soon': []},
        {'is_compliant': False, 'missing_requirements': ['Background Check'], 'expiring_soon': ['x']},
    ]
    certs = [SimpleNamespace(expiration_date=date(2024, 1, 1)), SimpleNamespace(expiration_date=None)]
    stats = compliance.organization_compliance_stats(results, certs, date(2025, 1, 1))
    assert stats['compliance_rate'] == 50
    assert stats['expiring_soon'] == 1
    assert stats['missing_training'] == 1
    assert stats['expired_certs'] == 1


def test_certification_flags():
    today = date(2025, 1, 15)
    assert compliance.certification_flags('background_screening', today) == {
        'background_check_clear': True, 'background_check_date': today}
    assert compliance.certification_flags('cpr_first_aid', today) == {}


def test_add_in_service_hours_resets_each_fiscal_year():
    assert compliance.add_in_service_hours(4, '2024-2025', 3, date(2025, 5, 1)) == (7, '2024-2025')
    assert compliance.add_in_service_hours(9, '2024-2025', 3, date(2025, 7, 2)) == (3, '2025-2026')
    with pytest.raises(ValueError):
        compliance.add_in_service_hours(4, '2024-2025', 0)
