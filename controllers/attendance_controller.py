import logging
from datetime import date, datetime

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

from access_control import feature_required
from app_models import db, Attendance, Child
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import AttendanceEntryForm

logger = logging.getLogger(__name__)

attendance_bp = Blueprint('attendance', __name__, url_prefix='/attendance')


def _parse_day(value):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date() if value else date.today()
    except ValueError:
        return date.today()


def _record_for(child, day):
    return get_org_filtered_query(Attendance).filter_by(child_id=child.id, date=day).first()


def _active_children():
    return get_org_filtered_query(Child).filter_by(status='active').order_by(
        Child.last_name, Child.first_name).all()


@attendance_bp.route('/')
@feature_required('attendance')
def index():
    day = _parse_day(request.args.get('date'))
    children = _active_children()
    records = {r.child_id: r for r in get_org_filtered_query(Attendance).filter_by(date=day).all()}
    present = sum(1 for r in records.values() if r.status == 'present' and r.check_in_time and not r.check_out_time)

    form = AttendanceEntryForm()
    form.child_id.choices = [(c.id, c.full_name) for c in children]
    form.date.data = day
    return render_template('attendance/index.html', day=day, children=children, records=records,
                           present=present, form=form, is_today=day == date.today())


@attendance_bp.route('/check-in/<int:child_id>', methods=['POST'])
@feature_required('attendance')
def check_in(child_id):
    child = get_org_record_or_404(Child, child_id)
    today = date.today()
    record = _record_for(child, today)
    if record and record.check_in_time and not record.check_out_time and record.status == 'present':
        flash(f'{child.full_name} is already checked in.', 'warning')
        return redirect(url_for('attendance.index'))

    try:
        if record is None:
            record = Attendance(organization_id=get_current_org_id(), child_id=child.id, date=today)
            db.session.add(record)
        record.status = 'present'
        record.check_in_time = datetime.now()
        record.check_out_time = None
        db.session.commit()
        logger.info("Child %s checked in by %s", child.id, session.get('username'))
        flash(f'{child.full_name} checked in.', 'success')
    except Exception as e:
        db.session.rollback()
        logger.exception("Check-in failed for child %s", child.id)
        flash(f'Error checking in: {str(e)}', 'error')
    return redirect(url_for('attendance.index'))


@attendance_bp.route('/check-out/<int:child_id>', methods=['POST'])
@feature_required('attendance')
def check_out(child_id):
    child = get_org_record_or_404(Child, child_id)
    record = _record_for(child, date.today())
    if record is None or not record.check_in_time or record.check_out_time:
        flash(f'{child.full_name} is not checked in.', 'error')
        return redirect(url_for('attendance.index'))

    try:
        record.check_out_time = datetime.now()
        db.session.commit()
        logger.info("Child %s checked out by %s", child.id, session.get('username'))
        flash(f'{child.full_name} checked out.', 'success')
    except Exception as e:
        db.session.rollback()
        logger.exception("Check-out failed for child %s", child.id)
        flash(f'Error checking out: {str(e)}', 'error')
    return redirect(url_for('attendance.index'))


@attendance_bp.route('/absent/<int:child_id>', methods=['POST'])
@feature_required('attendance')
def mark_absent(child_id):
    child = get_org_record_or_404(Child, child_id)
    day = _parse_day(request.form.get('date'))
    record = _record_for(child, day)
    try:
        if record is None:
            record = Attendance(organization_id=get_current_org_id(), child_id=child.id, date=day)
            db.session.add(record)
        record.status = 'absent'
        record.check_in_time = None
        record.check_out_time = None
        db.session.commit()
        logger.info("Child %s marked absent for %s", child.id, day)
        flash(f'{child.full_name} marked absent.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error marking absence: {str(e)}', 'error')
    return redirect(url_for('attendance.index', date=day.isoformat()))


@attendance_bp.route('/manual', methods=['POST'])
@feature_required('attendance')
def manual_entry():
    """Record or correct a past day's check-in and check-out times."""
    form = AttendanceEntryForm()
    form.child_id.choices = [(c.id, c.full_name) for c in _active_children()]
    if not form.validate_on_submit():
        for field, errors in form.errors.items():
            flash(f'{form[field].label.text}: {errors[0]}', 'error')
        return redirect(url_for('attendance.index', date=request.form.get('date')))

    child = get_org_record_or_404(Child, form.child_id.data)
    day = form.date.data
    if day > date.today():
        flash('Attendance cannot be recorded for a future date.', 'error')
        return redirect(url_for('attendance.index'))

    try:
        record = _record_for(child, day)
        if record is None:
            record = Attendance(organization_id=get_current_org_id(), child_id=child.id, date=day)
            db.session.add(record)
        record.status = 'present'
        record.check_in_time = datetime.combine(day, form.check_in.data)
        record.check_out_time = datetime.combine(day, form.check_out.data) if form.check_out.data else None
        db.session.commit()
        logger.info("Manual attendance for child %s on %s by %s", child.id, day, session.get('username'))
        flash(f'Attendance saved for {child.full_name}.', 'success')
    except Exception as e:
        db.session.rollback()
        logger.exception("Manual attendance failed")
        flash(f'Error saving attendance: {str(e)}', 'error')
    return redirect(url_for('attendance.index', date=day.isoformat()))
