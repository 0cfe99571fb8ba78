import logging
from datetime import date

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

import compliance
from access_control import feature_required, manager_required
from app_models import db, FireDrill, StaffCertification, User
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import CertificationForm, FireDrillForm

logger = logging.getLogger(__name__)

compliance_bp = Blueprint('compliance', __name__, url_prefix='/compliance')


def _active_staff():
    return get_org_filtered_query(User).filter(
        User.role.in_(compliance.STAFF_ROLES), User.status == 'active'
    ).order_by(User.last_name).all()


@compliance_bp.route('/fire-drills', methods=['GET', 'POST'])
@feature_required('compliance')
def fire_drills():
    form = FireDrillForm()
    if form.validate_on_submit():
        try:
            drill = FireDrill(organization_id=get_current_org_id(),
                              conducted_by=session.get('user_id'),
                              created_by=session.get('user_id'))
            form.populate_obj(drill)
            db.session.add(drill)
            db.session.commit()
            logger.info("%s drill recorded for %s", drill.drill_type, drill.drill_date)
            flash('Drill recorded successfully!', 'success')
            return redirect(url_for('compliance.fire_drills'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Fire drill recording failed")
            flash(f'Error recording drill: {str(e)}', 'error')

    drills = get_org_filtered_query(FireDrill).order_by(FireDrill.drill_date.desc()).all()
    status = compliance.fire_drill_status([d.drill_date for d in drills], date.today())
    return render_template('compliance/fire_drills.html', form=form, drills=drills, status=status)


@compliance_bp.route('/fire-drills/<int:drill_id>/delete', methods=['POST'])
@feature_required('compliance')
@manager_required
def delete_fire_drill(drill_id):
    drill = get_org_record_or_404(FireDrill, drill_id)
    try:
        db.session.delete(drill)
        db.session.commit()
        logger.info("Drill %s deleted by %s", drill_id, session.get('username'))
        flash('Drill deleted.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error deleting drill: {str(e)}', 'error')
    return redirect(url_for('compliance.fire_drills'))


@compliance_bp.route('/fire-drills/annual')
@feature_required('compliance')
def annual_drills():
    year = request.args.get('year', date.today().year, type=int)
    drills = get_org_filtered_query(FireDrill).all()
    coverage = compliance.annual_drill_coverage([d.drill_date for d in drills], year)
    return render_template('compliance/annual_drills.html', coverage=coverage, year=year)


@compliance_bp.route('/staff', methods=['GET', 'POST'])
@feature_required('compliance')
def staff():
    today = date.today()
    staff_members = _active_staff()
    form = CertificationForm()
    form.user_id.choices = [(s.id, s.full_name) for s in staff_members]

    if form.validate_on_submit():
        member = get_org_record_or_404(User, form.user_id.data)
        cert_type = form.certification_type.data
        try:
            certification = StaffCertification(
                organization_id=get_current_org_id(),
                user_id=member.id,
                certification_type=cert_type,
                certification_name=form.certification_name.data
                or compliance.CERTIFICATION_TYPES[cert_type]['name'],
                issued_date=form.issued_date.data or today,
                expiration_date=form.expiration_date.data,
                hours_completed=form.hours_completed.data,
                notes=form.notes.data,
            )
            db.session.add(certification)

            for field, value in compliance.certification_flags(cert_type, today).items():
                setattr(member, field, value)
            if cert_type == 'cda' and form.expiration_date.data:
                member.cda_expiration_date = form.expiration_date.data
            if cert_type == 'annual_in_service' and form.hours_completed.data:
                hours, year = compliance.add_in_service_hours(
                    member.annual_training_hours_completed, member.annual_training_fiscal_year,
                    form.hours_completed.data, today)
                member.annual_training_hours_completed = hours
                member.annual_training_fiscal_year = year

            db.session.commit()
            logger.info("Certification %s recorded for user %s", cert_type, member.id)
            flash(f'{compliance.CERTIFICATION_TYPES[cert_type]["name"]} recorded for {member.full_name}.', 'success')
            return redirect(url_for('compliance.staff'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Certification recording failed")
            flash(f'Error recording certification: {str(e)}', 'error')

    results = []
    for member in staff_members:
        results.append(dict(compliance.staff_compliance(member, today), staff=member))
    certifications = get_org_filtered_query(StaffCertification).order_by(
        StaffCertification.created_at.desc()).all()
    stats = compliance.organization_compliance_stats(results, certifications, today)
    return render_template('compliance/staff.html', form=form, results=results,
                           certifications=certifications, stats=stats,
                           fiscal_year=compliance.fiscal_year(today))
