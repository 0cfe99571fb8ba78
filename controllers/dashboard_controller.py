from datetime import date

from flask import Blueprint, render_template, session, redirect, url_for

import compliance
import tuition_billing
from access_control import current_organization, login_required
from app_models import Child, Family, FireDrill, Invoice, Payment, User
from data_isolation_helpers import get_org_filtered_query

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/')
@login_required
def index():
    # The platform operator has no tenant data of their own
    if session.get('user_role') == 'superadmin':
        return redirect(url_for('admin.index'))

    organization = current_organization()
    today = date.today()

    invoices = get_org_filtered_query(Invoice).all()
    payments = get_org_filtered_query(Payment).all()
    summary = tuition_billing.billing_summary(invoices, payments)

    drill_dates = [d.drill_date for d in get_org_filtered_query(FireDrill).all()]
    drill_status = compliance.fire_drill_status(drill_dates, today)

    staff = get_org_filtered_query(User).filter(User.role.in_(compliance.STAFF_ROLES),
                                                User.status == 'active').all()
    staff_results = [compliance.staff_compliance(member, today) for member in staff]
    compliant_staff = sum(1 for r in staff_results if r['is_compliant'])

    return render_template(
        'index.html',
        organization=organization,
        children_count=get_org_filtered_query(Child).filter_by(status='active').count(),
        families_count=get_org_filtered_query(Family).filter_by(status='active').count(),
        summary=summary,
        families_with_balance=tuition_billing.families_with_balance(invoices)[:5],
        drill_status=drill_status,
        staff_count=len(staff),
        compliant_staff=compliant_staff,
        days_remaining=organization.days_remaining() if organization else 0,
    )
