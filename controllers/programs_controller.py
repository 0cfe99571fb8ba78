"""School Readiness enrollments and the school calendar used for holiday billing."""
import logging
from datetime import date, timedelta

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

import program_billing
import program_income
from access_control import feature_required, manager_required
from app_models import db, Child, SchoolCalendar, SREnrollment
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import SchoolCalendarForm, SREnrollmentForm

logger = logging.getLogger(__name__)

programs_bp = Blueprint('programs', __name__, url_prefix='/programs')

SR_PROGRAM_TYPES = ('school_readiness', 'sr_copay')


def _active_calendar():
    return get_org_filtered_query(SchoolCalendar).filter_by(is_active=True).first()


@programs_bp.route('/sr-enrollments', methods=['GET', 'POST'])
@feature_required('programs')
def sr_enrollments():
    today = date.today()
    form = SREnrollmentForm()
    eligible = get_org_filtered_query(Child).filter(
        Child.status == 'active', Child.program_type.in_(SR_PROGRAM_TYPES)
    ).order_by(Child.last_name, Child.first_name).all()
    form.child_id.choices = [(c.id, c.full_name) for c in eligible]
    if request.method == 'GET' and not form.school_year.data:
        form.school_year.data = program_billing.school_year(today)

    if form.validate_on_submit():
        child = get_org_record_or_404(Child, form.child_id.data)
        existing = get_org_filtered_query(SREnrollment).filter_by(
            child_id=child.id, school_year=form.school_year.data, status='active').first()
        if existing:
            flash(f'{child.full_name} already has an active enrollment for {form.school_year.data}.', 'error')
            return redirect(url_for('programs.sr_enrollments'))
        try:
            enrollment = SREnrollment(organization_id=get_current_org_id(), status='active')
            form.populate_obj(enrollment)
            enrollment.child_id = child.id
            db.session.add(enrollment)
            db.session.commit()
            logger.info("SR enrollment %s created for child %s", enrollment.id, child.id)
            flash(f'School Readiness enrollment saved for {child.full_name}.', 'success')
            return redirect(url_for('programs.sr_enrollments'))
        except Exception as e:
            db.session.rollback()
            logger.exception("SR enrollment failed")
            flash(f'Error saving enrollment: {str(e)}', 'error')

    enrollments = get_org_filtered_query(SREnrollment).order_by(
        SREnrollment.status, SREnrollment.created_at.desc()).all()
    calendar = _active_calendar()
    week_start = today - timedelta(days=today.weekday())
    billing = {e.id: program_income.sr_child_billing(e, week_start, calendar)
               for e in enrollments if e.status == 'active'}
    return render_template('programs/sr_enrollments.html', form=form, enrollments=enrollments,
                           billing=billing, calendar=calendar, week_start=week_start)


@programs_bp.route('/sr-enrollments/<int:enrollment_id>/end', methods=['POST'])
@feature_required('programs')
@manager_required
def end_sr_enrollment(enrollment_id):
    enrollment = get_org_record_or_404(SREnrollment, enrollment_id)
    try:
        enrollment.status = 'ended'
        db.session.commit()
        logger.info("SR enrollment %s ended by %s", enrollment.id, session.get('username'))
        flash('Enrollment ended.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error ending enrollment: {str(e)}', 'error')
    return redirect(url_for('programs.sr_enrollments'))


@programs_bp.route('/calendar', methods=['GET', 'POST'])
@feature_required('programs')
def school_calendar():
    """One calendar per school year; saving a year makes it the active one."""
    current = _active_calendar()
    form = SchoolCalendarForm(obj=current if request.method == 'GET' else None)
    if request.method == 'GET' and current is None:
        form.school_year.data = program_billing.school_year(date.today())

    if form.validate_on_submit():
        try:
            record = get_org_filtered_query(SchoolCalendar).filter_by(school_year=form.school_year.data).first()
            if record is None:
                record = SchoolCalendar(organization_id=get_current_org_id())
                db.session.add(record)
            form.populate_obj(record)
            record.is_active = True
            db.session.flush()
            get_org_filtered_query(SchoolCalendar).filter(SchoolCalendar.id != record.id).update(
                {'is_active': False}, synchronize_session=False)
            db.session.commit()
            logger.info("School calendar %s saved by %s", record.school_year, session.get('username'))
            flash(f'School calendar {record.school_year} saved.', 'success')
            return redirect(url_for('programs.school_calendar'))
        except Exception as e:
            db.session.rollback()
            logger.exception("School calendar save failed")
            flash(f'Error saving calendar: {str(e)}', 'error')

    calendars = get_org_filtered_query(SchoolCalendar).order_by(SchoolCalendar.school_year.desc()).all()
    return render_template('programs/calendar.html', form=form, calendars=calendars)
