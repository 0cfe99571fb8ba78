import logging
from datetime import date, datetime, timedelta

from flask import Blueprint, Response, flash, redirect, render_template, request, session, url_for

import cacfp
import milk_calculator
import report_export
from access_control import current_organization, feature_required
from app_models import db, Attendance, Child, MealAttendance
from data_isolation_helpers import get_current_org_id, get_org_filtered_query
from forms import MealAttendanceForm

logger = logging.getLogger(__name__)

food_program_bp = Blueprint('food_program', __name__, url_prefix='/food-program')


def _active_children():
    return get_org_filtered_query(Child).filter_by(status='active').order_by(Child.last_name).all()


def _monday(day):
    return day - timedelta(days=day.weekday())


def _report_params():
    today = date.today()
    year = request.args.get('year', today.year, type=int)
    month = request.args.get('month', today.month, type=int)
    tier = request.args.get('tier') or (current_organization().cacfp_tier or 'tier1')
    if tier not in cacfp.CACFP_REIMBURSEMENT_RATES:
        tier = 'tier1'
    if not 1 <= month <= 12:
        month = today.month
    if not cacfp.valid_report_year(year):
        year = today.year
    return year, month, tier


def _month_meals(year, month):
    start, end = cacfp.month_bounds(year, month)
    return get_org_filtered_query(MealAttendance).filter(
        MealAttendance.served.is_(True),
        MealAttendance.meal_date.between(start, end),
    ).all()


@food_program_bp.route('/meals', methods=['GET', 'POST'])
@feature_required('food_program')
def meals():
    form = MealAttendanceForm()
    children = _active_children()
    form.child_ids.choices = [(c.id, c.full_name) for c in children]
    if request.method == 'GET' and not form.meal_date.data:
        form.meal_date.data = date.today()

    if form.validate_on_submit():
        organization_id = get_current_org_id()
        recorded = 0
        try:
            existing = {
                m.child_id for m in get_org_filtered_query(MealAttendance).filter_by(
                    meal_date=form.meal_date.data, meal_type=form.meal_type.data).all()
            }
            for child_id in form.child_ids.data:
                if child_id in existing:
                    continue
                db.session.add(MealAttendance(
                    organization_id=organization_id,
                    child_id=child_id,
                    meal_date=form.meal_date.data,
                    meal_type=form.meal_type.data,
                    served=True,
                    served_at=datetime.utcnow(),
                    served_by=session.get('user_id'),
                ))
                recorded += 1
            db.session.commit()
            logger.info("Recorded %d %s meals for %s", recorded, form.meal_type.data, form.meal_date.data)
            flash(f'{recorded} meal(s) recorded for {cacfp.MEAL_LABELS[form.meal_type.data]}.', 'success')
            return redirect(url_for('food_program.meals', day=form.meal_date.data.isoformat()))
        except Exception as e:
            db.session.rollback()
            logger.exception("Meal attendance recording failed")
            flash(f'Error recording meals: {str(e)}', 'error')

    day = request.args.get('day')
    try:
        day = datetime.strptime(day, '%Y-%m-%d').date() if day else date.today()
    except ValueError:
        day = date.today()
    day_records = get_org_filtered_query(MealAttendance).filter_by(meal_date=day).all()
    counts = cacfp.daily_counts(day_records)
    return render_template('food_program/meals.html', form=form, day=day,
                           counts=counts[0] if counts else None, meal_labels=cacfp.MEAL_LABELS)


@food_program_bp.route('/cacfp-report')
@feature_required('food_program')
def cacfp_report():
    year, month, tier = _report_params()
    report = cacfp.monthly_report(year, month, _month_meals(year, month), tier)
    return render_template('food_program/cacfp_report.html', report=report, tier=tier,
                           rates=cacfp.CACFP_REIMBURSEMENT_RATES[tier], meal_types=cacfp.MEAL_TYPES,
                           meal_labels=cacfp.MEAL_LABELS)


@food_program_bp.route('/cacfp-report.csv')
@feature_required('food_program')
def cacfp_report_csv():
    year, month, tier = _report_params()
    report = cacfp.monthly_report(year, month, _month_meals(year, month), tier)

    columns = [('date', 'Date')] + [(f'{m}_count', cacfp.MEAL_LABELS[m]) for m in cacfp.MEAL_TYPES]
    columns.append(('total_meals', 'Total Meals'))
    rows = [dict(day, date=day['date'].isoformat()) for day in report['daily_counts']]
    summary = [(f"{cacfp.MEAL_LABELS[m]} Reimbursement", f"{report[f'reimbursement_{m}']:.2f}")
               for m in cacfp.MEAL_TYPES]
    summary += [
        ('Days Open', report['days_open']),
        ('Average Daily Attendance', report['average_daily_attendance']),
        ('Total Reimbursement', f"{report['total_reimbursement']:.2f}"),
    ]
    csv_text = report_export.to_csv(columns, rows, title=f"CACFP Monthly Report {report['month']} ({tier})",
                                     summary=summary)
    return Response(csv_text, mimetype='text/csv', headers={
        'Content-Disposition': f'attachment; filename="cacfp_{report["month"]}.csv"'
    })


@food_program_bp.route('/milk')
@feature_required('food_program')
def milk():
    today = date.today()
    week_start = request.args.get('week_start')
    try:
        week_start = datetime.strptime(week_start, '%Y-%m-%d').date() if week_start else _monday(today)
    except ValueError:
        week_start = _monday(today)

    children = _active_children()
    requirements = [milk_calculator.child_requirement(child, today) for child in children]
    forecast = milk_calculator.weekly_forecast(requirements, week_start)

    available = {}
    for milk_type in milk_calculator.MILK_PRICES:
        value = request.args.get(f'available_{milk_type}', type=float)
        if value is not None and value >= 0:
            available[milk_type] = value
    inventory = milk_calculator.inventory_status(forecast, available)

    # Only children checked in today (and not yet checked out) count for the daily figure
    present_ids = {
        a.child_id for a in get_org_filtered_query(Attendance).filter(
            Attendance.date == today, Attendance.check_out_time.is_(None)).all()
    }
    present = [c for c in children if c.id in present_ids] or children
    meals_planned = request.args.getlist('meals') or ['breakfast', 'lunch', 'pm_snack']
    daily = milk_calculator.daily_milk(present, meals_planned, today)

    return render_template('food_program/milk.html', requirements=requirements, forecast=forecast,
                           inventory=inventory, daily=daily, available=available,
                           by_age_group=milk_calculator.requirements_by_age_group(requirements),
                           milk_types=[t for t in milk_calculator.MILK_PRICES if t != 'formula'])
