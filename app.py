import logging
import os
import sys
from datetime import datetime

from flask import Flask, jsonify, render_template, request, session
from flask_wtf.csrf import generate_csrf

import plans
from access_control import current_organization
from app_models import db, User
from controllers.admin_controller import admin_bp
from controllers.api_controller import api_bp
from controllers.attendance_controller import attendance_bp
from controllers.auth_controller import auth_bp
from controllers.billing_controller import billing_bp
from controllers.children_controller import children_bp
from controllers.compliance_controller import compliance_bp
from controllers.dashboard_controller import dashboard_bp
from controllers.families_controller import families_bp
from controllers.food_program_controller import food_program_bp
from controllers.portal_controller import portal_bp
from controllers.programs_controller import programs_bp
from controllers.staff_controller import staff_bp
from health import health_bp
from production_config import BASE_DIR, INSTANCE_PATH, get_config
from security import csrf, init_security

logger = logging.getLogger(__name__)

SOFTWARE_NAME = 'ChildCare Pro'
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def configure_logging(app):
    """Root logger to stdout, plus logs/application.log when LOG_DIR is set."""
    root = logging.getLogger()
    root.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
    if root.handlers:
        return  # respect existing setup (gunicorn, pytest)

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    log_dir = app.config.get('LOG_DIR')
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, 'application.log'), encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def comma_filter(value):
    """Format number with comma separators (2 decimal places)"""
    try:
        return "{:,.2f}".format(float(value))
    except (ValueError, TypeError):
        return value


def comma_int_filter(value):
    """Format number with comma separators (no decimal places)"""
    try:
        return "{:,}".format(int(float(value)))
    except (ValueError, TypeError):
        return value


def money_filter(value):
    try:
        return "${:,.2f}".format(float(value or 0))
    except (ValueError, TypeError):
        return value


def inject_globals():
    # Never fail template rendering, the login page renders before tables exist
    try:
        organization = current_organization()
    except Exception as e:
        logger.warning("inject_globals could not load organization: %s", e)
        organization = None

    return {
        'datetime': datetime,
        'csrf_token': generate_csrf,
        'current_org': organization,
        'organization_name': organization.name if organization else SOFTWARE_NAME,
        'plan_names': plans.PLAN_NAMES,
        'software_name': SOFTWARE_NAME,
        'session': session,
    }


def _error_response(status_code, message):
    if request.path.startswith('/api/'):
        return jsonify({'error': message}), status_code
    return render_template('error.html', status_code=status_code, message=message), status_code


def register_error_handlers(app):
    @app.errorhandler(403)
    def forbidden(e):
        return _error_response(403, 'You do not have access to this page.')

    @app.errorhandler(404)
    def not_found(e):
        return _error_response(404, 'The page you requested was not found.')

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("Unhandled server error on %s: %s", request.path, e)
        return _error_response(500, 'Something went wrong. Please try again.')


def create_default_superadmin():
    """Creates the platform superadmin from SUPERADMIN_USERNAME/PASSWORD if no such user exists."""
    from flask import current_app

    username = current_app.config.get('SUPERADMIN_USERNAME')
    password = current_app.config.get('SUPERADMIN_PASSWORD')
    if not username or not password:
        logger.warning("SUPERADMIN_USERNAME and/or SUPERADMIN_PASSWORD are not set. Skipping superadmin creation.")
        return None

    existing = User.query.filter_by(username=username).first()
    if existing:
        return existing

    superadmin = User(
        username=username,
        first_name='Platform',
        last_name='Admin',
        role='superadmin',
        organization_id=None,
        first_login=False,
        password_change_required=False,
    )
    superadmin.set_password(password)
    db.session.add(superadmin)
    db.session.commit()
    logger.info("Default superadmin '%s' created", username)
    return superadmin


def init_database(app):
    with app.app_context():
        db.create_all()
        create_default_superadmin()


def create_app(config_name=None):
    config_class = get_config(config_name)
    app = Flask(
        __name__,
        template_folder=os.path.join(BASE_DIR, 'templates'),
        instance_path=INSTANCE_PATH,
    )
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///') and not app.testing:
        os.makedirs(app.instance_path, exist_ok=True)

    db.init_app(app)
    init_security(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(families_bp)
    app.register_blueprint(children_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(food_program_bp)
    app.register_blueprint(compliance_bp)
    app.register_blueprint(programs_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(health_bp)
    csrf.exempt(api_bp)
    csrf.exempt(health_bp)

    app.add_template_filter(comma_filter, 'comma')
    app.add_template_filter(comma_int_filter, 'comma_int')
    app.add_template_filter(money_filter, 'money')
    app.context_processor(inject_globals)
    register_error_handlers(app)

    @app.cli.command('init-db')
    def init_db_command():
        """Create tables and the default superadmin."""
        db.create_all()
        create_default_superadmin()
        print("Database initialized.")

    logger.info("%s started with %s", SOFTWARE_NAME, config_class.__name__)
    return app


def main():
    """Local development server. Production runs gunicorn against 'app:create_app()'."""
    app = create_app()
    init_database(app)
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.config.get('DEBUG', False))


if __name__ == '__main__':
    main()
