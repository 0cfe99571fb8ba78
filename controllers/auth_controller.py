import logging
from datetime import datetime

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

from access_control import login_required
from app_models import db, User
from forms import LoginForm, PasswordChangeForm

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    # Credentials must never travel in the query string
    if request.method == 'GET' and request.args:
        return redirect(url_for('auth.login'))

    form = LoginForm()
    if form.validate_on_submit():
        user = User.query.filter_by(username=form.username.data.strip(), status='active').first()
        if not user or not user.check_password(form.password.data):
            logger.info("Failed login for %s", form.username.data)
            flash('Invalid username or password!', 'error')
            return render_template('login.html', form=form)

        if user.role != 'superadmin':
            organization = user.organization
            if not organization or not organization.is_active:
                flash('Organization account is inactive. Please contact support.', 'error')
                return render_template('login.html', form=form)
            if organization.is_blocked:
                flash('Organization account is suspended. Please contact support.', 'error')
                return render_template('login.html', form=form)

        session.clear()
        session['logged_in'] = True
        session['user_id'] = user.id
        session['username'] = user.username
        session['user_role'] = user.role
        session['organization_id'] = user.organization_id
        logger.info("User %s logged in (organization %s)", user.username, user.organization_id)

        if user.first_login or user.password_change_required:
            return redirect(url_for('auth.first_login_setup'))

        flash('Login successful!', 'success')
        if user.role == 'superadmin':
            return redirect(url_for('admin.index'))
        return redirect(url_for('dashboard.index'))

    return render_template('login.html', form=form)


@auth_bp.route('/logout')
def logout():
    session.clear()
    flash('You have been logged out successfully!', 'info')
    return redirect(url_for('auth.login'))


@auth_bp.route('/first_login_setup', methods=['GET', 'POST'])
@login_required
def first_login_setup():
    user = db.session.get(User, session['user_id'])
    form = PasswordChangeForm()
    if form.validate_on_submit():
        try:
            user.set_password(form.new_password.data)
            user.first_login = False
            user.password_change_required = False
            user.updated_at = datetime.utcnow()
            db.session.commit()
            flash('Password updated successfully!', 'success')
            if user.role == 'superadmin':
                return redirect(url_for('admin.index'))
            return redirect(url_for('dashboard.index'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Password change failed for %s", user.username)
            flash(f'Error updating password: {str(e)}', 'error')

    return render_template('first_login_setup.html', form=form, user=user)
