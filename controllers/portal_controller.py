import logging
from datetime import date, datetime, timedelta

from flask import (Blueprint, abort, current_app, flash, redirect, render_template, session, url_for)

import report_export
from access_control import guardian_required, manager_required
from app_models import db, Attendance, Child, Guardian, Invoice, Organization
from data_isolation_helpers import get_org_record_or_404
from forms import PortalLoginForm, PortalPasswordForm
from portal_tokens import InvalidPortalToken, create_portal_token, decode_portal_token, issued_before

logger = logging.getLogger(__name__)

portal_bp = Blueprint('portal', __name__, url_prefix='/portal')

ATTENDANCE_DAYS = 30


def _start_guardian_session(guardian):
    _end_guardian_session()
    session['guardian_id'] = guardian.id
    session['guardian_family_id'] = guardian.family_id
    session['guardian_org_id'] = guardian.organization_id
    guardian.last_login_at = datetime.utcnow()


def _organization_available(organization_id):
    organization = db.session.get(Organization, organization_id)
    return organization is not None and organization.is_active and not organization.is_blocked


def _end_guardian_session():
    for key in ('guardian_id', 'guardian_family_id', 'guardian_org_id'):
        session.pop(key, None)


def _current_guardian():
    guardian = db.session.get(Guardian, session['guardian_id'])
    if (guardian is None or not guardian.is_active
            or not _organization_available(guardian.organization_id)):
        _end_guardian_session()
        abort(403)
    return guardian


@portal_bp.route('/login', methods=['GET', 'POST'])
def login():
    form = PortalLoginForm()
    if form.validate_on_submit():
        guardian = Guardian.query.filter_by(email=form.email.data.strip().lower(), is_active=True).first()
        if guardian and guardian.check_password(form.password.data):
            if not _organization_available(guardian.organization_id):
                flash('This center is not currently available. Please contact the center.', 'error')
                return render_template('portal/login.html', form=form)
            _start_guardian_session(guardian)
            db.session.commit()
            logger.info("Guardian %s logged in to the portal", guardian.id)
            return redirect(url_for('portal.index'))
        flash('Invalid email or password!', 'error')
    return render_template('portal/login.html', form=form)


@portal_bp.route('/invite/<token>')
def accept_invite(token):
    try:
        claims = decode_portal_token(token, current_app.config['SECRET_KEY'])
    except InvalidPortalToken as e:
        logger.info("Rejected portal invite: %s", e)
        flash('This invitation link is invalid or has expired.', 'error')
        return redirect(url_for('portal.login'))

    guardian = db.session.get(Guardian, int(claims['sub']))
    if (guardian is None or not guardian.is_active
            or guardian.organization_id != claims.get('org') or guardian.family_id != claims.get('family')):
        flash('This invitation link is invalid or has expired.', 'error')
        return redirect(url_for('portal.login'))
    if issued_before(claims, guardian.password_set_at):
        logger.info("Rejected portal invite for guardian %s issued before the password was set", guardian.id)
        flash('This invitation link has already been used. Sign in with your email and password.', 'error')
        return redirect(url_for('portal.login'))
    if not _organization_available(guardian.organization_id):
        flash('This center is not currently available. Please contact the center.', 'error')
        return redirect(url_for('portal.login'))

    _start_guardian_session(guardian)
    db.session.commit()
    if not guardian.password_hash:
        return redirect(url_for('portal.set_password'))
    return redirect(url_for('portal.index'))


@portal_bp.route('/set-password', methods=['GET', 'POST'])
@guardian_required
def set_password():
    guardian = _current_guardian()
    form = PortalPasswordForm()
    if form.validate_on_submit():
        try:
            guardian.set_password(form.new_password.data)
            db.session.commit()
            flash('Password saved. You can now sign in with your email.', 'success')
            return redirect(url_for('portal.index'))
        except Exception as e:
            db.session.rollback()
            flash(f'Error saving password: {str(e)}', 'error')
    return render_template('portal/set_password.html', form=form, guardian=guardian)


@portal_bp.route('/')
@guardian_required
def index():
    guardian = _current_guardian()
    children = Child.query.filter_by(family_id=guardian.family_id,
                                     organization_id=guardian.organization_id).all()
    invoices = Invoice.query.filter(
        Invoice.family_id == guardian.family_id,
        Invoice.organization_id == guardian.organization_id,
        Invoice.status != 'draft',
    ).order_by(Invoice.created_at.desc()).all()
    since = date.today() - timedelta(days=ATTENDANCE_DAYS)
    attendance = Attendance.query.filter(
        Attendance.child_id.in_([c.id for c in children]),
        Attendance.organization_id == guardian.organization_id,
        Attendance.date >= since,
    ).order_by(Attendance.date.desc()).all() if children else []
    balance = round(sum(i.balance for i in invoices if i.status in ('sent', 'partial', 'overdue')), 2)
    return render_template('portal/index.html', guardian=guardian, children=children, invoices=invoices,
                           attendance=attendance, balance=balance,
                           status_labels=report_export.INVOICE_STATUS_LABELS)


@portal_bp.route('/invoices/<int:invoice_id>')
@guardian_required
def invoice(invoice_id):
    guardian = _current_guardian()
    record = Invoice.query.filter_by(id=invoice_id, family_id=guardian.family_id,
                                     organization_id=guardian.organization_id).first()
    if record is None or record.status == 'draft':
        abort(404)
    organization = db.session.get(Organization, guardian.organization_id)
    return render_template('billing/invoice_document.html', **report_export.invoice_context(record, organization))


@portal_bp.route('/logout')
def logout():
    _end_guardian_session()
    flash('You have been logged out successfully!', 'info')
    return redirect(url_for('portal.login'))


@portal_bp.route('/invites/<int:guardian_id>', methods=['POST'])
@manager_required
def create_invite(guardian_id):
    """Staff action: produce a signed invite link for a guardian."""
    guardian = get_org_record_or_404(Guardian, guardian_id)
    token = create_portal_token(guardian, current_app.config['SECRET_KEY'],
                                current_app.config.get('PORTAL_TOKEN_TTL_HOURS', 72))
    link = url_for('portal.accept_invite', token=token, _external=True)
    logger.info("Portal invite issued for guardian %s", guardian.id)
    flash(f'Portal invite link for {guardian.first_name} {guardian.last_name}: {link}', 'success')
    return redirect(url_for('families.detail', family_id=guardian.family_id))
