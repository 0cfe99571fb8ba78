from datetime import date
from types import SimpleNamespace

import pytest

import cacfp


def meal(day, meal_type, served=True):
    return SimpleNamespace(meal_date=day, meal_type=meal_type, served=served)


def test_calculate_reimbursement_tier1():
    result = cacfp.calculate_reimbursement({'breakfast': 10, 'lunch': 10}, 'tier1')
    assert result['breakfast'] == pytest.approx(20.4)
    assert result['lunch'] == pytest.approx(43.2)
    assert result['am_snack'] == 0
    assert result['total_reimbursement'] == pytest.approx(63.6)


def test_calculate_reimbursement_tier2_is_lower():
    tier1 = cacfp.calculate_reimbursement({'lunch': 20}, 'tier1')
    tier2 = cacfp.calculate_reimbursement({'lunch': 20}, 'tier2')
    assert tier2['total_reimbursement'] == pytest.approx(7.4)
    assert tier2['total_reimbursement'] < tier1['total_reimbursement']


def test_calculate_reimbursement_rejects_bad_input():
    with pytest.raises(ValueError):
        cacfp.calculate_reimbursement({'lunch': 1}, 'tier3')
    with pytest.raises(ValueError):
        cacfp.calculate_reimbursement({'lunch': -1})


def test_month_bounds_handles_leap_year():
    assert cacfp.month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))


def test_daily_counts_groups_by_date_and_skips_unserved():
    records = [
        meal(date(2025, 3, 4), 'lunch'),
        meal(date(2025, 3, 3), 'breakfast'),
        meal(date(2025, 3, 3), 'lunch'),
        meal(date(2025, 3, 3), 'lunch', served=False),
    ]
    days = cacfp.daily_counts(records)
    assert [d['date'] for d in days] == [date(2025, 3, 3), date(2025, 3, 4)]
    assert days[0]['breakfast_count'] == 1
    assert days[0]['lunch_count'] == 1
    assert days[0]['total_meals'] == 2


def test_monthly_report_totals_and_attendance():
    records = [meal(date(2025, 3, 3), 'lunch') for _ in range(3)]
    records += [meal(date(2025, 3, 3), 'breakfast') for _ in range(2)]
    records.append(meal(date(2025, 3, 4), 'lunch'))
    records.append(meal(date(2025, 4, 1), 'lunch'))

    report = cacfp.monthly_report(2025, 3, records, 'tier1')
    assert report['month'] == '2025-03'
    assert report['days_open'] == 2
    assert report['total_lunch'] == 4
    assert report['total_breakfast'] == 2
    assert report['average_daily_attendance'] == 2
    assert report['reimbursement_lunch'] == pytest.approx(17.28)
    assert report['total_reimbursement'] == pytest.approx(21.36)


def test_monthly_report_empty_month():
    report = cacfp.monthly_report(2025, 2, [], 'tier2')
    assert report['days_open'] == 0
    assert report['average_daily_attendance'] == 0
    assert report['total_reimbursement'] == 0


def test_valid_report_year():
    assert cacfp.valid_report_year(2025)
    assert not cacfp.valid_report_year(0)
    assert not cacfp.valid_report_year(10000)
    assert not cacfp.valid_report_year(None)
