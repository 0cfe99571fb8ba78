import logging
from datetime import date

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

import compliance
from access_control import feature_required, manager_required
from app_models import db, User
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import NewStaffForm, StaffForm

logger = logging.getLogger(__name__)

staff_bp = Blueprint('staff', __name__, url_prefix='/staff')


@staff_bp.route('/')
@feature_required('staff')
def index():
    status = request.args.get('status', 'active')
    query = get_org_filtered_query(User).filter(User.role.in_(compliance.STAFF_ROLES))
    if status in ('active', 'inactive'):
        query = query.filter(User.status == status)
    members = query.order_by(User.last_name, User.first_name).all()

    today = date.today()
    rows = [dict(compliance.staff_compliance(member, today), staff=member) for member in members]
    return render_template('staff/index.html', rows=rows, status=status)


@staff_bp.route('/new', methods=['GET', 'POST'])
@feature_required('staff')
@manager_required
def create():
    form = NewStaffForm()
    if form.validate_on_submit():
        username = form.username.data.strip()
        if User.query.filter_by(username=username).first():
            form.username.errors.append('That username is already taken')
            return render_template('staff/form.html', form=form, member=None)
        try:
            member = User(
                organization_id=get_current_org_id(),
                username=username,
                first_name=form.first_name.data.strip(),
                last_name=form.last_name.data.strip(),
                email=form.email.data or None,
                role=form.role.data,
                is_director=form.is_director.data,
                hire_date=form.hire_date.data,
                status=form.status.data,
                first_login=True,
                password_change_required=True,
            )
            member.set_password(form.password.data)
            db.session.add(member)
            db.session.commit()
            logger.info("Staff user %s created by %s", member.username, session.get('username'))
            flash(f'{member.full_name} added. They will choose a new password at first login.', 'success')
            return redirect(url_for('staff.index'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Staff creation failed")
            flash(f'Error adding staff member: {str(e)}', 'error')
    return render_template('staff/form.html', form=form, member=None)


@staff_bp.route('/<int:user_id>/edit', methods=['GET', 'POST'])
@feature_required('staff')
@manager_required
def edit(user_id):
    member = get_org_record_or_404(User, user_id)
    form = StaffForm(obj=member)
    if member.role == 'owner':
        form.role.choices = [('owner', 'Owner')]

    if form.validate_on_submit():
        if form.status.data != 'active' and (member.role == 'owner' or member.id == session.get('user_id')):
            form.status.errors.append('The owner and your own account cannot be deactivated')
            return render_template('staff/form.html', form=form, member=member)
        try:
            member.first_name = form.first_name.data.strip()
            member.last_name = form.last_name.data.strip()
            member.email = form.email.data or None
            member.role = form.role.data
            member.is_director = form.is_director.data
            member.hire_date = form.hire_date.data
            member.status = form.status.data
            db.session.commit()
            logger.info("Staff user %s updated by %s", member.username, session.get('username'))
            flash('Staff member updated successfully!', 'success')
            return redirect(url_for('staff.index'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Staff update failed")
            flash(f'Error updating staff member: {str(e)}', 'error')
    return render_template('staff/form.html', form=form, member=member)
