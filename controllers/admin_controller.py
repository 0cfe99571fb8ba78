import logging
from datetime import datetime, timedelta

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

import leads
import plans
from access_control import superadmin_required
from app_models import db, Child, Organization, SalesLead, Subscription, User, subscription_end
from forms import CreateOrganizationForm, LeadStatusForm, SubscriptionForm

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route('/')
@superadmin_required
def index():
    organizations = Organization.query.all()
    stats = {
        'organizations': len(organizations),
        'active': sum(1 for o in organizations if o.is_active and not o.is_blocked),
        'blocked': sum(1 for o in organizations if o.is_blocked),
        'trials': sum(1 for o in organizations if o.subscription_status == 'trial'),
        'leads_total': SalesLead.query.count(),
        'leads_new': SalesLead.query.filter_by(status='new').count(),
        'leads_high_priority': SalesLead.query.filter_by(priority='high').count(),
        'leads_converted': SalesLead.query.filter_by(status='converted').count(),
    }
    recent_leads = SalesLead.query.order_by(SalesLead.created_at.desc()).limit(5).all()
    return render_template('admin/index.html', stats=stats, recent_leads=recent_leads)


@admin_bp.route('/leads')
@superadmin_required
def leads_list():
    status = request.args.get('status', '').strip()
    source = request.args.get('source', '').strip()
    sort_by = request.args.get('sort', 'created_at')

    query = SalesLead.query
    if status in leads.LEAD_STATUSES:
        query = query.filter_by(status=status)
    if source in leads.LEAD_SOURCES:
        query = query.filter_by(source=source)

    if sort_by == 'score':
        query = query.order_by(SalesLead.score.desc())
    elif sort_by == 'name':
        query = query.order_by(SalesLead.name.asc())
    else:
        query = query.order_by(SalesLead.created_at.desc())

    return render_template('admin/leads.html', leads=query.all(), status=status, source=source,
                           statuses=leads.LEAD_STATUSES, sources=leads.LEAD_SOURCES, sort_by=sort_by)


@admin_bp.route('/leads/<int:lead_id>', methods=['GET', 'POST'])
@superadmin_required
def lead_detail(lead_id):
    lead = SalesLead.query.get_or_404(lead_id)
    form = LeadStatusForm(obj=lead)
    if form.validate_on_submit():
        try:
            lead.status = form.status.data
            lead.notes = form.notes.data
            db.session.commit()
            logger.info("Lead %s moved to %s", lead.id, lead.status)
            flash('Lead updated successfully!', 'success')
            return redirect(url_for('admin.leads_list'))
        except Exception as e:
            db.session.rollback()
            flash(f'Error updating lead: {str(e)}', 'error')
    return render_template('admin/lead_detail.html', lead=lead, form=form)


@admin_bp.route('/organizations')
@superadmin_required
def organizations():
    organizations_data = []
    for organization in Organization.query.order_by(Organization.created_at.desc()).all():
        owner = User.query.filter_by(organization_id=organization.id, role='owner').first()
        current_subscription = Subscription.query.filter_by(
            organization_id=organization.id, is_active=True
        ).order_by(Subscription.created_at.desc()).first()
        children = Child.query.filter_by(organization_id=organization.id, status='active').count()
        organizations_data.append({
            'organization': organization,
            'owner': owner,
            'subscription': current_subscription,
            'children': children,
            'days_remaining': organization.days_remaining(),
        })
    return render_template('admin/organizations.html', organizations_data=organizations_data,
                           subscription_form=SubscriptionForm(), plan_names=plans.PLAN_NAMES)


@admin_bp.route('/organizations/new', methods=['GET', 'POST'])
@superadmin_required
def create_organization():
    form = CreateOrganizationForm()
    if form.validate_on_submit():
        if User.query.filter_by(username=form.owner_username.data).first():
            flash(f'Username "{form.owner_username.data}" already exists! Please choose a different username.', 'error')
            return render_template('admin/create_organization.html', form=form)
        try:
            now = datetime.utcnow()
            organization = Organization(
                name=form.name.data,
                cacfp_tier=form.cacfp_tier.data,
                plan='trial',
                subscription_status='trial',
                trial_start_date=now,
            )
            db.session.add(organization)
            db.session.flush()

            owner = User(
                organization_id=organization.id,
                username=form.owner_username.data,
                first_name=form.owner_first_name.data,
                last_name=form.owner_last_name.data,
                role='owner',
                is_director=True,
                first_login=True,
                password_change_required=True,
            )
            owner.set_password(form.owner_password.data)
            db.session.add(owner)

            db.session.add(Subscription(
                organization_id=organization.id,
                plan='trial',
                start_date=now,
                end_date=now + timedelta(days=plans.TRIAL_DAYS),
                amount_paid=0.0,
                created_by=session['username'],
                notes=f'Initial {plans.TRIAL_DAYS}-day trial subscription',
            ))
            db.session.commit()
            logger.info("Organization %s created with owner %s", organization.id, owner.username)
            flash(f'Organization {organization.name} created! Owner username: {owner.username} '
                  '(one-time password - must be changed on first login)', 'success')
            return redirect(url_for('admin.organizations'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Organization creation failed")
            flash(f'Error creating organization: {str(e)}', 'error')
    return render_template('admin/create_organization.html', form=form)


@admin_bp.route('/organizations/<int:organization_id>/block', methods=['POST'])
@superadmin_required
def block_organization(organization_id):
    organization = Organization.query.get_or_404(organization_id)
    try:
        organization.is_blocked = True
        db.session.commit()
        logger.warning("Organization %s blocked by %s", organization.id, session.get('username'))
        flash(f'Organization "{organization.name}" has been blocked!', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error blocking organization: {str(e)}', 'error')
    return redirect(url_for('admin.organizations'))


@admin_bp.route('/organizations/<int:organization_id>/unblock', methods=['POST'])
@superadmin_required
def unblock_organization(organization_id):
    organization = Organization.query.get_or_404(organization_id)
    try:
        organization.is_blocked = False
        db.session.commit()
        logger.info("Organization %s unblocked by %s", organization.id, session.get('username'))
        flash(f'Organization "{organization.name}" has been unblocked!', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error unblocking organization: {str(e)}', 'error')
    return redirect(url_for('admin.organizations'))


@admin_bp.route('/organizations/<int:organization_id>/subscription', methods=['POST'])
@superadmin_required
def update_subscription(organization_id):
    organization = Organization.query.get_or_404(organization_id)
    form = SubscriptionForm()
    if not form.validate_on_submit():
        flash('Invalid subscription details.', 'error')
        return redirect(url_for('admin.organizations'))

    try:
        Subscription.query.filter_by(organization_id=organization_id, is_active=True).update({'is_active': False})

        start_date = datetime.utcnow()
        end_date = subscription_end(start_date, form.billing_cycle.data)
        db.session.add(Subscription(
            organization_id=organization_id,
            plan=form.plan.data,
            billing_cycle=form.billing_cycle.data,
            start_date=start_date,
            end_date=end_date,
            amount_paid=form.amount_paid.data or 0.0,
            payment_reference=form.payment_reference.data,
            created_by=session['username'],
            notes=form.notes.data,
        ))

        organization.plan = form.plan.data
        organization.subscription_status = 'active'
        organization.subscription_end_date = end_date
        organization.is_blocked = False
        db.session.commit()
        logger.info("Organization %s moved to plan %s", organization.id, organization.plan)
        flash(f'Subscription updated successfully for {organization.name}!', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error updating subscription: {str(e)}', 'error')

    return redirect(url_for('admin.organizations'))
