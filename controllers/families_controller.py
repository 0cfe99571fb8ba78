import logging

from flask import Blueprint, flash, redirect, render_template, request, session, url_for
from sqlalchemy import or_

import report_export
import tuition_billing
from access_control import feature_required, manager_required
from app_models import db, Child, Family, Guardian, Invoice
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import FamilyForm, GuardianForm

logger = logging.getLogger(__name__)

families_bp = Blueprint('families', __name__, url_prefix='/families')


@families_bp.route('/')
@feature_required('families')
def index():
    status = request.args.get('status', 'active')
    search = request.args.get('q', '').strip()
    query = get_org_filtered_query(Family)
    if status in ('active', 'inactive'):
        query = query.filter(Family.status == status)
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Family.family_name.ilike(pattern),
                                 Family.primary_contact_name.ilike(pattern),
                                 Family.primary_contact_email.ilike(pattern)))
    families = query.order_by(Family.family_name).all()

    balances = {entry['family_id']: entry['total_owed']
                for entry in tuition_billing.families_with_balance(get_org_filtered_query(Invoice).all())}
    return render_template('families/index.html', families=families, balances=balances,
                           status=status, search=search)


@families_bp.route('/new', methods=['GET', 'POST'])
@feature_required('families')
def create():
    form = FamilyForm()
    if form.validate_on_submit():
        try:
            family = Family(organization_id=get_current_org_id())
            form.populate_obj(family)
            db.session.add(family)
            db.session.commit()
            logger.info("Family %s created by %s", family.id, session.get('username'))
            flash(f'{family.family_name} added successfully!', 'success')
            return redirect(url_for('families.detail', family_id=family.id))
        except Exception as e:
            db.session.rollback()
            logger.exception("Family creation failed")
            flash(f'Error adding family: {str(e)}', 'error')
    return render_template('families/form.html', form=form, family=None)


@families_bp.route('/<int:family_id>')
@feature_required('families')
def detail(family_id):
    family = get_org_record_or_404(Family, family_id)
    invoices = get_org_filtered_query(Invoice).filter_by(family_id=family.id).order_by(
        Invoice.created_at.desc()).all()
    balance = round(sum(i.balance for i in invoices if i.status in tuition_billing.OPEN_STATUSES), 2)
    return render_template('families/detail.html', family=family, invoices=invoices, balance=balance,
                           guardian_form=GuardianForm(),
                           status_colors=report_export.INVOICE_STATUS_COLORS)


@families_bp.route('/<int:family_id>/edit', methods=['GET', 'POST'])
@feature_required('families')
def edit(family_id):
    family = get_org_record_or_404(Family, family_id)
    form = FamilyForm(obj=family)
    if form.validate_on_submit():
        try:
            form.populate_obj(family)
            db.session.commit()
            logger.info("Family %s updated by %s", family.id, session.get('username'))
            flash('Family updated successfully!', 'success')
            return redirect(url_for('families.detail', family_id=family.id))
        except Exception as e:
            db.session.rollback()
            logger.exception("Family update failed")
            flash(f'Error updating family: {str(e)}', 'error')
    return render_template('families/form.html', form=form, family=family)


@families_bp.route('/<int:family_id>/delete', methods=['POST'])
@feature_required('families')
@manager_required
def delete(family_id):
    family = get_org_record_or_404(Family, family_id)
    if (get_org_filtered_query(Child).filter_by(family_id=family.id).count()
            or get_org_filtered_query(Invoice).filter_by(family_id=family.id).count()):
        flash('Families with children or invoices cannot be deleted. Mark the family inactive instead.', 'error')
        return redirect(url_for('families.detail', family_id=family.id))

    try:
        for guardian in get_org_filtered_query(Guardian).filter_by(family_id=family.id).all():
            db.session.delete(guardian)
        db.session.delete(family)
        db.session.commit()
        logger.info("Family %s deleted by %s", family_id, session.get('username'))
        flash('Family deleted.', 'success')
    except Exception as e:
        db.session.rollback()
        logger.exception("Family deletion failed")
        flash(f'Error deleting family: {str(e)}', 'error')
        return redirect(url_for('families.detail', family_id=family_id))
    return redirect(url_for('families.index'))


@families_bp.route('/<int:family_id>/guardians', methods=['POST'])
@feature_required('families')
def add_guardian(family_id):
    family = get_org_record_or_404(Family, family_id)
    form = GuardianForm()
    if not form.validate_on_submit():
        for field, errors in form.errors.items():
            flash(f'{form[field].label.text}: {errors[0]}', 'error')
        return redirect(url_for('families.detail', family_id=family.id))

    email = form.email.data.strip().lower()
    # Portal logins are looked up by email across all centers
    if Guardian.query.filter_by(email=email).first():
        flash(f'A portal account already uses {email}.', 'error')
        return redirect(url_for('families.detail', family_id=family.id))

    try:
        guardian = Guardian(organization_id=get_current_org_id(), family_id=family.id)
        form.populate_obj(guardian)
        guardian.email = email
        db.session.add(guardian)
        db.session.commit()
        logger.info("Guardian %s added to family %s", guardian.id, family.id)
        flash(f'{guardian.first_name} {guardian.last_name} added. Send a portal invite to give access.', 'success')
    except Exception as e:
        db.session.rollback()
        logger.exception("Guardian creation failed")
        flash(f'Error adding guardian: {str(e)}', 'error')
    return redirect(url_for('families.detail', family_id=family.id))


@families_bp.route('/guardians/<int:guardian_id>/toggle', methods=['POST'])
@feature_required('families')
@manager_required
def toggle_guardian(guardian_id):
    guardian = get_org_record_or_404(Guardian, guardian_id)
    try:
        guardian.is_active = not guardian.is_active
        db.session.commit()
        state = 'enabled' if guardian.is_active else 'disabled'
        logger.info("Portal access %s for guardian %s by %s", state, guardian.id, session.get('username'))
        flash(f'Portal access {state} for {guardian.first_name} {guardian.last_name}.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error updating guardian: {str(e)}', 'error')
    return redirect(url_for('families.detail', family_id=guardian.family_id))
