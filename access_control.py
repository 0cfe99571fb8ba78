"""Login, role and plan-feature guards for staff and guardian routes."""
import logging
from functools import wraps

from flask import flash, jsonify, redirect, request, session, url_for

from app_models import db, Organization

logger = logging.getLogger(__name__)

MANAGER_ROLES = ('owner', 'director')


def current_organization():
    organization_id = session.get('organization_id')
    if not organization_id:
        return None
    return db.session.get(Organization, organization_id)


def validate_tenant_access():
    """Validate current user's tenant access"""
    if session.get('user_role') == 'superadmin':
        return True

    organization = current_organization()
    if not organization or not organization.is_active or organization.is_blocked:
        return False

    if organization.is_subscription_expired():
        return False

    return True


def _wants_json():
    return request.path.startswith('/api/')


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'logged_in' not in session:
            if _wants_json():
                return jsonify({'error': 'Authentication required'}), 401
            return redirect(url_for('auth.login'))

        if not validate_tenant_access():
            logger.info("Tenant access denied for user %s", session.get('username'))
            session.clear()
            if _wants_json():
                return jsonify({'error': 'Access denied or subscription expired'}), 403
            flash('Access denied or subscription expired. Please contact support.', 'error')
            return redirect(url_for('auth.login'))

        return f(*args, **kwargs)
    return decorated_function


def superadmin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if session.get('user_role') != 'superadmin':
            flash('Access denied. Superadmin privileges required.', 'error')
            return redirect(url_for('dashboard.index'))
        return f(*args, **kwargs)
    return decorated_function


def manager_required(f):
    """Owners and directors only."""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if session.get('user_role') not in MANAGER_ROLES:
            flash('Access denied. Director privileges required.', 'error')
            return redirect(url_for('dashboard.index'))
        return f(*args, **kwargs)
    return decorated_function


def feature_required(feature):
    """Restrict a view to organizations whose plan includes `feature`."""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            organization = current_organization()
            if organization is None or not organization.has_feature(feature):
                if _wants_json():
                    return jsonify({'error': f'Your plan does not include {feature}'}), 403
                flash('This feature is not included in your current plan.', 'warning')
                return redirect(url_for('dashboard.index'))
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def guardian_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'guardian_id' not in session:
            return redirect(url_for('portal.login'))
        return f(*args, **kwargs)
    return decorated_function
