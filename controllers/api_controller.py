import logging
from datetime import date

from flask import Blueprint, jsonify, request

import cacfp
import compliance
import leads
import plans
import tuition_billing
from access_control import current_organization, feature_required, superadmin_required
from app_models import db, FireDrill, Invoice, MealAttendance, Payment, SalesLead
from data_isolation_helpers import get_org_filtered_query

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')

LEAD_SORT_COLUMNS = {
    'created_at': SalesLead.created_at,
    'updated_at': SalesLead.updated_at,
    'score': SalesLead.score,
    'name': SalesLead.name,
}


@api_bp.route('/leads', methods=['POST'])
def create_lead():
    """Public endpoint for the marketing lead form"""
    payload = request.get_json(silent=True)
    try:
        cleaned = leads.validate_lead(payload)
    except leads.LeadValidationError as e:
        return jsonify({'error': 'Invalid lead data', 'details': e.errors}), 400

    score, priority = leads.score_lead(cleaned)
    try:
        lead = SalesLead(
            name=cleaned['name'],
            email=cleaned['email'],
            phone=cleaned['phone'],
            company_name=cleaned['company_name'],
            source=cleaned['source'],
            daycare_size=cleaned['daycare_size'],
            location=cleaned['location'],
            current_pain_points=cleaned['current_pain_points'],
            interested_features=cleaned['interested_features'],
            total_messages=cleaned['total_messages'],
            utm_source=cleaned['utm_source'],
            utm_medium=cleaned['utm_medium'],
            utm_campaign=cleaned['utm_campaign'],
            notes=cleaned['notes'],
            score=score,
            priority=priority,
            status='new',
        )
        db.session.add(lead)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Lead creation failed")
        return jsonify({'error': 'Failed to save lead'}), 500

    logger.info("Lead %s captured from %s (score %s, %s priority)", lead.id, lead.source, score, priority)
    return jsonify({'success': True, 'lead': lead.to_dict()}), 201


@api_bp.route('/leads', methods=['GET'])
@superadmin_required
def list_leads():
    limit = request.args.get('limit', 50, type=int)
    offset = request.args.get('offset', 0, type=int)
    if not 1 <= limit <= 100 or offset < 0:
        return jsonify({'error': 'limit must be 1-100 and offset non-negative'}), 400

    query = SalesLead.query
    status = request.args.get('status')
    if status:
        if status not in leads.LEAD_STATUSES:
            return jsonify({'error': f'Unknown status: {status}'}), 400
        query = query.filter_by(status=status)
    source = request.args.get('source')
    if source:
        query = query.filter_by(source=source)

    column = LEAD_SORT_COLUMNS.get(request.args.get('sortBy', 'created_at'), SalesLead.created_at)
    ordering = column.asc() if request.args.get('sortOrder') == 'asc' else column.desc()

    total = query.count()
    rows = query.order_by(ordering).offset(offset).limit(limit).all()
    return jsonify({'leads': [lead.to_dict() for lead in rows], 'total': total,
                    'limit': limit, 'offset': offset})


@api_bp.route('/plans/pricing')
def plan_pricing():
    plan = request.args.get('plan', 'professional')
    children = request.args.get('children', 0, type=int)
    try:
        monthly = plans.monthly_price(plan, children)
        annual = plans.annual_price(plan, children)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'plan': plan, 'children': children, 'monthly': monthly, **annual,
                    'features': plans.PLAN_FEATURES[plan]})


@api_bp.route('/billing/summary')
@feature_required('billing')
def billing_summary():
    invoices = get_org_filtered_query(Invoice).all()
    payments = get_org_filtered_query(Payment).all()
    summary = tuition_billing.billing_summary(invoices, payments)
    families = tuition_billing.families_with_balance(invoices)
    for family in families:
        oldest = family['oldest_invoice_date']
        family['oldest_invoice_date'] = oldest.isoformat() if oldest else None
    summary['families_with_balance'] = families
    return jsonify(summary)


@api_bp.route('/compliance/fire-drills')
@feature_required('compliance')
def fire_drill_compliance():
    drill_dates = [d.drill_date for d in get_org_filtered_query(FireDrill).all()]
    status = compliance.fire_drill_status(drill_dates, date.today())
    last = status['last_drill_date']
    status['last_drill_date'] = last.isoformat() if last else None
    return jsonify(status)


@api_bp.route('/food-program/cacfp')
@feature_required('food_program')
def cacfp_summary():
    today = date.today()
    year = request.args.get('year', today.year, type=int)
    month = request.args.get('month', today.month, type=int)
    tier = request.args.get('tier') or current_organization().cacfp_tier or 'tier1'
    if not 1 <= month <= 12:
        return jsonify({'error': 'month must be between 1 and 12'}), 400
    if not cacfp.valid_report_year(year):
        return jsonify({'error': 'year is out of range'}), 400
    try:
        start, end = cacfp.month_bounds(year, month)
        records = get_org_filtered_query(MealAttendance).filter(
            MealAttendance.served.is_(True),
            MealAttendance.meal_date.between(start, end),
        ).all()
        report = cacfp.monthly_report(year, month, records, tier)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    report['daily_counts'] = [dict(d, date=d['date'].isoformat()) for d in report['daily_counts']]
    return jsonify(report)
